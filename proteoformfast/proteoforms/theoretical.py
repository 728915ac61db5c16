"""Theoretical (reference) proteoforms.

Helpers to compute intact masses from sequence and to assemble reference
tables handed over by the database-parsing layer.
"""

import logging
from typing import Iterable, List, Optional, Tuple

from ..constants import AA_MASSES_DICT, AA_MASSES_NONSTANDARD, H2O_MASS
from ..exceptions import DataError
from .model import Proteoform
from .modifications import PtmSet

logger = logging.getLogger(__name__)


def calculate_proteoform_mass(sequence: str) -> float:
    """Unmodified monoisotopic mass of an intact sequence.

    Water plus residue masses. Characters without a known residue mass are
    ignored.

    Examples
    --------
    >>> round(calculate_proteoform_mass("PEPTIDE"), 6)
    799.359964
    """
    mass = H2O_MASS
    for aa in sequence:
        if aa in AA_MASSES_DICT:
            mass += AA_MASSES_DICT[aa]
        elif aa in AA_MASSES_NONSTANDARD:
            mass += AA_MASSES_NONSTANDARD[aa]
    return mass


def theoretical_from_sequence(
    accession: str,
    sequence: str,
    ptm_set: Optional[PtmSet] = None,
    is_target: bool = True,
    begin: int = 1,
    end: Optional[int] = None,
    **reference_fields,
) -> Proteoform:
    """Theoretical proteoform whose masses and lysine count come from sequence.

    Parameters
    ----------
    accession : str
        Proteoform accession
    sequence : str
        Residues covered by this proteoform (begin..end, 1-based inclusive)
    ptm_set : PtmSet, optional
        Modifications; unmodified when omitted
    is_target : bool, default=True
        Target/decoy status
    begin, end : int
        Coordinates in the parent protein; ``end`` defaults to
        ``begin + len(sequence) - 1``
    **reference_fields
        name, description, fragment, psm_count_bu, psm_count_td

    Returns
    -------
    Proteoform
        Theoretical proteoform with ``modified_mass = unmodified_mass + ptm_set.mass``
    """
    if ptm_set is None:
        ptm_set = PtmSet()
    if end is None:
        end = begin + len(sequence) - 1

    return Proteoform.theoretical(
        accession,
        lysine_count=sequence.count('K'),
        is_target=is_target,
        sequence=sequence,
        begin=begin,
        end=end,
        unmodified_mass=calculate_proteoform_mass(sequence),
        ptm_set=ptm_set,
        **reference_fields,
    )


def deduplicate_theoreticals(
    proteoforms: Iterable[Proteoform],
    existing_accessions: Iterable[str] = (),
) -> Tuple[List[Proteoform], int]:
    """Drop reference entries that clash on accession or are not theoretical.

    The first entry for an accession wins; accessions in
    ``existing_accessions`` are already taken.

    Returns
    -------
    kept : List[Proteoform]
        Valid entries in input order
    n_skipped : int
        Number of entries rejected
    """
    kept = []
    seen = set(existing_accessions)
    n_skipped = 0

    for proteoform in proteoforms:
        try:
            if not proteoform.is_theoretical:
                raise DataError(f"{proteoform.accession!r} is not a theoretical proteoform")
            if proteoform.accession in seen:
                raise DataError(f"duplicate accession {proteoform.accession!r}")
        except DataError as err:
            n_skipped += 1
            logger.debug(f"Skipping reference entry: {err}")
            continue
        seen.add(proteoform.accession)
        kept.append(proteoform)

    if n_skipped:
        logger.warning(f"Skipped {n_skipped:,} reference entries (duplicate or malformed)")

    return kept, n_skipped
