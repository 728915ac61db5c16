"""Decoy theoretical databases.

Decoy groups are full scrambled copies of the theoretical database used as
the ED background for FDR estimation.
"""

from .decoys import (
    DECOY_GROUP_PREFIX,
    DECOY_METHODS,
    decoy_group_key,
    generate_decoy_groups,
    generate_decoy_sequences,
    generate_kr_swap_decoy,
    generate_reverse_decoy,
    shuffle_proteome,
)

__all__ = [
    'DECOY_GROUP_PREFIX',
    'DECOY_METHODS',
    'decoy_group_key',
    'generate_decoy_groups',
    'generate_decoy_sequences',
    'generate_kr_swap_decoy',
    'generate_reverse_decoy',
    'shuffle_proteome',
]
