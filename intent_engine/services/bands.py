"""Threshold bands on the 7-day score and the upward-only emission rule."""

from typing import Optional

from intent_engine.core.constants import BAND_BREAKPOINTS, BAND_RANK


def band_from_score(score: int) -> str:
    """Map a score onto ``cold | warm | hot | critical``.

    ``<10`` cold, ``10-19`` warm, ``20-29`` hot, ``>=30`` critical.
    Negative scores are treated as cold.
    """
    for lower_bound, band in BAND_BREAKPOINTS:
        if score >= lower_bound:
            return band
    return BAND_BREAKPOINTS[-1][1]


def should_emit(previous: Optional[str], new: str) -> bool:
    """Return ``True`` on first classification or a strictly upward move."""
    if previous is None:
        return True
    # An unrecognised stored band is treated as no history
    if previous not in BAND_RANK:
        return True
    return BAND_RANK[new] > BAND_RANK[previous]
