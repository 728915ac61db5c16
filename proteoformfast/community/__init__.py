"""Proteoform community: relation building, full rebuilds and bulk edits."""

from .batch import run_batch, unique_by_identity
from .community import CommunityBuild, ProteoformCommunity

__all__ = [
    'ProteoformCommunity',
    'CommunityBuild',
    'run_batch',
    'unique_by_identity',
]
