"""HDF5 persistence of proteoform communities."""

from .results import FORMAT_VERSION, load_community, save_community

__all__ = [
    'FORMAT_VERSION',
    'save_community',
    'load_community',
]
