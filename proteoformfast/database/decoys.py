"""Decoy theoretical databases for proteoform FDR estimation.

Each decoy group is a full copy of the theoretical database with scrambled
sequences. Relating every experimental proteoform to each group (ED
relations) gives the background against which ET peaks are judged.

Methods
-------
- proteome_shuffle: Pool the residues of every target, shuffle them with a
  seeded generator and cut the pool back into the original lengths
  (DEFAULT). Masses and lysine counts change, so decoys populate the
  delta-mass histogram like unrelated sequences would.
- reverse: Simple reversal. Mass and lysine count preserved.
- kr_swap: Reverse and swap K↔R. Shifts mass by 28.006 Da per K/R imbalance.

Examples
--------
>>> groups = generate_decoy_groups(theoreticals, n_groups=3, seed=7)
>>> sorted(groups)
['DecoyDatabase_0', 'DecoyDatabase_1', 'DecoyDatabase_2']
"""

import logging
from typing import Dict, List, Sequence

import numpy as np

from ..proteoforms.model import Proteoform
from ..proteoforms.theoretical import theoretical_from_sequence

logger = logging.getLogger(__name__)

DECOY_GROUP_PREFIX = "DecoyDatabase_"
DECOY_METHODS = ('proteome_shuffle', 'reverse', 'kr_swap')


def generate_kr_swap_decoy(sequence: str) -> str:
    """Reverse the sequence and swap K↔R.

    Examples
    --------
    >>> generate_kr_swap_decoy("PEPTADEK")
    'REDATPEP'
    """
    swap = {'K': 'R', 'R': 'K'}
    return ''.join(swap.get(aa, aa) for aa in sequence[::-1])


def generate_reverse_decoy(sequence: str) -> str:
    """Reverse the sequence (composition and mass preserved).

    Examples
    --------
    >>> generate_reverse_decoy("PEPTIDEK")
    'KEDITPEP'
    """
    return sequence[::-1]


def shuffle_proteome(sequences: Sequence[str], rng: np.random.Generator) -> List[str]:
    """Shuffle the pooled residues of all sequences, keeping each length.

    Parameters
    ----------
    sequences : Sequence[str]
        Target sequences
    rng : np.random.Generator
        Seeded generator

    Returns
    -------
    List[str]
        Decoy sequences, same order and lengths as the input
    """
    pooled = np.array(list(''.join(sequences)), dtype='<U1')
    rng.shuffle(pooled)

    decoys = []
    start = 0
    for sequence in sequences:
        end = start + len(sequence)
        decoys.append(''.join(pooled[start:end]))
        start = end
    return decoys


def generate_decoy_sequences(
    sequences: Sequence[str],
    method: str = 'proteome_shuffle',
    rng: np.random.Generator = None,
) -> List[str]:
    """Decoy sequences for a list of targets.

    Raises
    ------
    ValueError
        If method is not recognized
    """
    if method == 'proteome_shuffle':
        if rng is None:
            rng = np.random.default_rng()
        return shuffle_proteome(sequences, rng)
    elif method == 'reverse':
        return [generate_reverse_decoy(s) for s in sequences]
    elif method == 'kr_swap':
        return [generate_kr_swap_decoy(s) for s in sequences]
    raise ValueError(
        f"Unknown decoy method: {method}. Must be one of {', '.join(DECOY_METHODS)}"
    )


def decoy_group_key(index: int) -> str:
    return f"{DECOY_GROUP_PREFIX}{index}"


def generate_decoy_groups(
    theoreticals: Sequence[Proteoform],
    n_groups: int = 1,
    method: str = 'proteome_shuffle',
    seed: int = 0,
) -> Dict[str, List[Proteoform]]:
    """Generate decoy theoretical databases.

    Parameters
    ----------
    theoreticals : Sequence[Proteoform]
        Target theoretical proteoforms
    n_groups : int, default=1
        Number of independent decoy databases
    method : str, default='proteome_shuffle'
        One of 'proteome_shuffle', 'reverse', 'kr_swap'
    seed : int, default=0
        Group i is shuffled with ``np.random.default_rng(seed + i)``

    Returns
    -------
    Dict[str, List[Proteoform]]
        ``DecoyDatabase_{i}`` → decoy proteoforms. Decoys keep the target's
        coordinates, name and PTM set; accession becomes
        ``{accession}_DECOY_{i}``; mass and lysine count are recomputed
        from the decoy sequence.

    Raises
    ------
    ValueError
        If method is not recognized or n_groups is negative
    """
    if method not in DECOY_METHODS:
        raise ValueError(
            f"Unknown decoy method: {method}. Must be one of {', '.join(DECOY_METHODS)}"
        )
    if n_groups < 0:
        raise ValueError(f"n_groups must be >= 0, got {n_groups}")

    targets = [pf for pf in theoreticals if pf.is_theoretical and pf.is_target]
    sequences = [pf.reference.sequence for pf in targets]

    logger.info(
        f"Generating {n_groups} decoy database(s) of {len(targets):,} proteoforms "
        f"(method: {method})..."
    )

    groups = {}
    for i in range(n_groups):
        rng = np.random.default_rng(seed + i)
        decoy_sequences = generate_decoy_sequences(sequences, method, rng)

        decoys = []
        for target, sequence in zip(targets, decoy_sequences):
            reference = target.reference
            decoys.append(theoretical_from_sequence(
                f"{target.accession}_DECOY_{i}",
                sequence,
                ptm_set=reference.ptm_set,
                is_target=False,
                begin=reference.begin,
                end=reference.end,
                name=reference.name,
                description=reference.description,
                fragment=reference.fragment,
            ))
        groups[decoy_group_key(i)] = decoys

    logger.info(f"✓ Generated {n_groups * len(targets):,} decoy proteoforms")

    return groups
