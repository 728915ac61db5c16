"""Observation records (deconvoluted components) and input validation.

Observations arrive from the excluded parsing layer either as
:class:`Observation` objects or as plain mappings. Malformed records are
skipped and counted rather than aborting the run: datasets are large and
partial omission is acceptable.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple, Union

from ..exceptions import DataError
from ..matching.tolerance import MassAnchor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Observation:
    """One deconvoluted observation of an intact proteoform.

    For NeuCode data this is a light/heavy pair and ``lysine_count`` holds
    the count inferred from the pair spacing; otherwise it is -1.
    """

    observation_id: str
    mass: float        # Da, corrected monoisotopic mass
    intensity: float   # summed over charge states
    rt: float          # apex retention time (min)
    lysine_count: int = -1
    input_file: str = ""

    @property
    def anchor(self) -> MassAnchor:
        return MassAnchor(self.mass, self.rt, self.lysine_count)

    @classmethod
    def from_record(cls, record: Mapping[str, Any], default_id: str = "") -> 'Observation':
        """Build an observation from a mapping.

        Required keys: ``mass``, ``intensity``, ``rt``. Optional:
        ``observation_id``, ``lysine_count``, ``input_file``.

        Raises
        ------
        DataError
            If a required value is missing, non-numeric or out of range
        """
        try:
            mass = float(record['mass'])
            intensity = float(record['intensity'])
            rt = float(record['rt'])
            lysine_count = int(record.get('lysine_count', -1))
        except KeyError as err:
            raise DataError(f"missing field {err.args[0]!r} in record {default_id!r}") from err
        except (TypeError, ValueError) as err:
            raise DataError(f"non-numeric value in record {default_id!r}: {err}") from err

        observation = cls(
            observation_id=str(record.get('observation_id', default_id)),
            mass=mass,
            intensity=intensity,
            rt=rt,
            lysine_count=lysine_count,
            input_file=str(record.get('input_file', "")),
        )
        observation.check()
        return observation

    def check(self) -> None:
        """Raise DataError if mass/intensity/rt cannot be used for weighting."""
        if not math.isfinite(self.mass) or self.mass <= 0:
            raise DataError(f"observation {self.observation_id!r} has invalid mass {self.mass}")
        if not math.isfinite(self.intensity) or self.intensity < 0:
            raise DataError(
                f"observation {self.observation_id!r} has invalid intensity {self.intensity}"
            )
        if not math.isfinite(self.rt):
            raise DataError(f"observation {self.observation_id!r} has invalid rt {self.rt}")


ObservationLike = Union[Observation, Mapping[str, Any]]


def validate_observations(records: Iterable[ObservationLike]) -> Tuple[List[Observation], int]:
    """Convert and check input records, skipping malformed ones.

    Parameters
    ----------
    records : Iterable[Observation | Mapping]
        Raw observation records

    Returns
    -------
    observations : List[Observation]
        Valid observations in input order
    n_skipped : int
        Number of records rejected with DataError
    """
    observations = []
    n_skipped = 0

    for i, record in enumerate(records):
        try:
            if isinstance(record, Observation):
                record.check()
                observations.append(record)
            else:
                observations.append(Observation.from_record(record, default_id=str(i)))
        except DataError as err:
            n_skipped += 1
            logger.debug(f"Skipping record {i}: {err}")

    if n_skipped:
        logger.warning(f"Skipped {n_skipped:,} malformed observation records")

    return observations, n_skipped
