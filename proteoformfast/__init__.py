"""ProteoformFast - proteoform relation building and delta-mass peak FDR.

Relates intact-mass proteoform observations to each other and to reference
proteoforms, tolerating missed monoisotopic assignments and missed NeuCode
lysine labels, clusters the relations into delta-mass peaks and estimates
the false discovery rate against decoy databases.

Numba-compiled kernels handle tolerance selection and pair enumeration.
"""

__version__ = "0.1.0"

from proteoformfast import config
from proteoformfast import matching
from proteoformfast import proteoforms
from proteoformfast import database
from proteoformfast import relations
from proteoformfast import community
from proteoformfast import scoring
from proteoformfast import io

from proteoformfast.community import ProteoformCommunity
from proteoformfast.config import ClusteringParams, CommunityParams, ToleranceParams
from proteoformfast.exceptions import ConfigurationError, DataError, ProteoformError

__all__ = [
    "config",
    "matching",
    "proteoforms",
    "database",
    "relations",
    "community",
    "scoring",
    "io",
    "ProteoformCommunity",
    "ToleranceParams",
    "ClusteringParams",
    "CommunityParams",
    "ProteoformError",
    "ConfigurationError",
    "DataError",
]
