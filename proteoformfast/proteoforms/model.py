"""Proteoform entities as a tagged variant.

A :class:`Proteoform` carries the shared identity (accession, mass, lysine
count, target/decoy status) plus exactly one payload selected by ``kind``:

- ``ProteoformKind.EXPERIMENTAL`` → :class:`ExperimentalEvidence`
  (aggregated observations, intensity-weighted aggregates, user flags)
- ``ProteoformKind.THEORETICAL`` → :class:`TheoreticalReference`
  (sequence coordinates, PTM set, evidence counts)

Most operations only need the :class:`MassAnchor` capability; the few that
differ by variant check ``kind``.

Relations are not stored on the proteoform. The community keeps an index
from ``pid`` to relation ids instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from ..matching.tolerance import MassAnchor
from .modifications import PtmSet
from .observations import Observation


class ProteoformKind(Enum):
    """Variant discriminator."""
    EXPERIMENTAL = "experimental"
    THEORETICAL = "theoretical"


@dataclass(eq=False)
class ExperimentalEvidence:
    """Aggregated observations behind an experimental proteoform."""

    root: Optional[Observation] = None
    aggregated_components: Tuple[Observation, ...] = ()
    light_components: Tuple[Observation, ...] = ()
    heavy_components: Tuple[Observation, ...] = ()

    agg_mass: float = 0.0
    agg_intensity: float = 0.0
    agg_rt: float = 0.0

    missed_mono: bool = False
    mass_shifted: bool = False

    @property
    def observation_count(self) -> int:
        return len(self.aggregated_components)


@dataclass(eq=False)
class TheoreticalReference:
    """Reference coordinates and provenance of a theoretical proteoform."""

    name: Optional[str] = None
    description: Optional[str] = None
    fragment: Optional[str] = None
    begin: int = 0
    end: int = 0
    sequence: str = ""
    unmodified_mass: float = 0.0
    ptm_set: PtmSet = field(default_factory=PtmSet)
    psm_count_bu: int = 0  # bottom-up evidence
    psm_count_td: int = 0  # top-down evidence

    @property
    def ptm_mass(self) -> float:
        return self.ptm_set.mass

    @property
    def ptm_description(self) -> str:
        return self.ptm_set.description


@dataclass(eq=False)
class Proteoform:
    """A proteoform of either kind.

    Identity is object identity within a community; ``pid`` is assigned
    when the proteoform is registered in a community's arena.
    """

    accession: str
    kind: ProteoformKind
    modified_mass: float = 0.0
    lysine_count: int = -1
    is_decoy: bool = False
    evidence: Optional[ExperimentalEvidence] = None
    reference: Optional[TheoreticalReference] = None
    pid: int = field(default=-1, repr=False)

    def __post_init__(self):
        if self.kind is ProteoformKind.EXPERIMENTAL:
            if self.evidence is None:
                self.evidence = ExperimentalEvidence()
            if self.reference is not None:
                raise ValueError("Experimental proteoforms cannot carry a theoretical reference")
        elif self.kind is ProteoformKind.THEORETICAL:
            if self.reference is None:
                self.reference = TheoreticalReference()
            if self.evidence is not None:
                raise ValueError("Theoretical proteoforms cannot carry experimental evidence")
        else:
            raise ValueError(f"Unknown proteoform kind: {self.kind}")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def experimental(
        cls,
        accession: str,
        modified_mass: float = 0.0,
        lysine_count: int = -1,
        is_target: bool = True,
    ) -> 'Proteoform':
        """Experimental proteoform with no observations (placeholders, tests)."""
        return cls(
            accession=accession,
            kind=ProteoformKind.EXPERIMENTAL,
            modified_mass=modified_mass,
            lysine_count=lysine_count,
            is_decoy=not is_target,
        )

    @classmethod
    def theoretical(
        cls,
        accession: str,
        modified_mass: Optional[float] = None,
        lysine_count: int = -1,
        is_target: bool = True,
        **reference_fields,
    ) -> 'Proteoform':
        """Theoretical proteoform.

        If ``modified_mass`` is omitted it is computed as
        ``unmodified_mass + ptm_set.mass``.
        """
        reference = TheoreticalReference(**reference_fields)
        if modified_mass is None:
            modified_mass = reference.unmodified_mass + reference.ptm_mass
        return cls(
            accession=accession,
            kind=ProteoformKind.THEORETICAL,
            modified_mass=modified_mass,
            lysine_count=lysine_count,
            is_decoy=not is_target,
            reference=reference,
        )

    # ------------------------------------------------------------------
    # Shared capability
    # ------------------------------------------------------------------

    @property
    def is_target(self) -> bool:
        return not self.is_decoy

    @property
    def is_experimental(self) -> bool:
        return self.kind is ProteoformKind.EXPERIMENTAL

    @property
    def is_theoretical(self) -> bool:
        return self.kind is ProteoformKind.THEORETICAL

    @property
    def anchor(self) -> MassAnchor:
        rt = self.evidence.agg_rt if self.is_experimental else None
        return MassAnchor(self.modified_mass, rt, self.lysine_count)

    # Aggregates resolve to zero for entities without observations
    @property
    def agg_intensity(self) -> float:
        return self.evidence.agg_intensity if self.is_experimental else 0.0

    @property
    def agg_rt(self) -> float:
        return self.evidence.agg_rt if self.is_experimental else 0.0

    @property
    def agg_mass(self) -> float:
        return self.evidence.agg_mass if self.is_experimental else 0.0

    @property
    def observation_count(self) -> int:
        return self.evidence.observation_count if self.is_experimental else 0

    @property
    def missed_mono(self) -> bool:
        return self.is_experimental and self.evidence.missed_mono

    @missed_mono.setter
    def missed_mono(self, value: bool) -> None:
        if not self.is_experimental:
            raise ValueError("missed_mono only applies to experimental proteoforms")
        self.evidence.missed_mono = bool(value)

    @property
    def mass_shifted(self) -> bool:
        return self.is_experimental and self.evidence.mass_shifted

    def __repr__(self):
        target = "decoy" if self.is_decoy else "target"
        return (
            f"Proteoform({self.accession!r}, {self.kind.value}, {target}, "
            f"mass={self.modified_mass:.4f}, K={self.lysine_count})"
        )
