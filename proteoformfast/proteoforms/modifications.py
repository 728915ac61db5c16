"""Post-translational modification sets for theoretical proteoforms.

Key Features
------------
- Parse modification strings from reference tables ("Acetyl@M;Phospho@S")
- Ordered, de-duplicated PTM sets with combined mass
- Human-readable descriptions ("unmodified" for an empty set)

Examples
--------
>>> ptm_set = parse_ptm_set("Acetyl@M;Phospho@S", "1;12")
>>> round(ptm_set.mass, 6)
121.976896
>>> ptm_set.description
'Acetyl; Phospho'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from ..constants import MODIFICATION_MASSES


@dataclass(frozen=True)
class Modification:
    """A mass shift with a name (Unimod-style) and display description."""
    name: str
    mass: float
    description: str = ""

    @property
    def label(self) -> str:
        return self.description or self.name

    @classmethod
    def from_name(cls, name: str) -> 'Modification':
        """Look up a common modification by name.

        Raises
        ------
        ValueError
            If the name is not in MODIFICATION_MASSES
        """
        if name not in MODIFICATION_MASSES:
            raise ValueError(
                f"Unknown modification: {name}. "
                f"Must be one of {sorted(MODIFICATION_MASSES)}"
            )
        return cls(name=name, mass=MODIFICATION_MASSES[name], description=name)


@dataclass(frozen=True)
class Ptm:
    """A modification placed at a 0-based residue position."""
    position: int
    modification: Modification


class PtmSet:
    """Ordered, de-duplicated combination of PTMs.

    Duplicates (same position and same modification) are dropped, first
    occurrence wins, so construction order is preserved.
    """

    __slots__ = ('ptms', 'mass')

    def __init__(self, ptms: Iterable[Ptm] = ()):
        seen = set()
        ordered = []
        for ptm in ptms:
            if ptm in seen:
                continue
            seen.add(ptm)
            ordered.append(ptm)
        self.ptms: Tuple[Ptm, ...] = tuple(ordered)
        self.mass: float = float(sum(p.modification.mass for p in self.ptms))

    def __len__(self):
        return len(self.ptms)

    def __iter__(self):
        return iter(self.ptms)

    def __eq__(self, other):
        if not isinstance(other, PtmSet):
            return NotImplemented
        return self.ptms == other.ptms

    def __hash__(self):
        return hash(self.ptms)

    def __repr__(self):
        return f"PtmSet({self.description!r}, mass={self.mass:.6f})"

    @property
    def description(self) -> str:
        if not self.ptms:
            return "unmodified"
        return "; ".join(p.modification.label for p in self.ptms)


def parse_ptm_set(mods: str, mod_sites: str) -> PtmSet:
    """Parse a modification string into a PtmSet.

    Parameters
    ----------
    mods : str
        Modification string, e.g. "Acetyl@M;Phospho@S"
    mod_sites : str
        1-based positions, e.g. "1;12"

    Returns
    -------
    PtmSet
        Empty set for empty input. Entries with an unknown modification
        name or a non-numeric site are skipped.
    """
    if not mods:
        return PtmSet()

    mod_list = mods.split(";")
    site_list = str(mod_sites).split(";")

    ptms = []
    for mod, site in zip(mod_list, site_list):
        mod = mod.strip()
        site = site.strip()

        # Byte strings from numpy/h5py tables
        if site.startswith("b'") and site.endswith("'"):
            site = site[2:-1]

        name = mod.split("@")[0]
        if name in MODIFICATION_MASSES and site.isdigit():
            ptms.append(Ptm(int(site) - 1, Modification.from_name(name)))

    return PtmSet(ptms)
