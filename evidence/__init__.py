"""Server-side evidence merged from the intel lookups."""

from .normalizer import build_verified_evidence, compute_geo_mismatch, merge_evidence

__all__ = [
    "build_verified_evidence",
    "compute_geo_mismatch",
    "merge_evidence",
]
