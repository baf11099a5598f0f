"""Weighted authenticity confidence score."""

from __future__ import annotations

from veritas.constants import (
    FORENSIC_FLAG_CEILING,
    FORENSIC_WEIGHT,
    MODEL_WEIGHT,
    REVERSE_MATCH_CEILING,
    REVERSE_WEIGHT,
)


def calculate_confidence(model_score: float, forensic_flags: int, reverse_matches: int) -> int:
    """Combine the three signals into a 0-100 authenticity confidence.

    Fewer forensic flags and fewer reverse-search matches both count towards
    authenticity; each component bottoms out at zero at its ceiling.
    """
    forensic_score = max(0.0, 1 - forensic_flags / FORENSIC_FLAG_CEILING)
    reverse_score = max(0.0, 1 - reverse_matches / REVERSE_MATCH_CEILING)

    weighted = (
        model_score * MODEL_WEIGHT
        + forensic_score * FORENSIC_WEIGHT
        + reverse_score * REVERSE_WEIGHT
    )
    return round(weighted * 100)
