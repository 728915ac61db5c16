"""Decoy-based FDR estimation for delta-mass peaks."""

from .fdr import DecoyFdrSummary, estimate_decoy_fdr, identified_relation_count

__all__ = [
    "DecoyFdrSummary",
    "estimate_decoy_fdr",
    "identified_relation_count",
]
