"""
Label geometry derived from the oversize (bleed) setting
"""
import math
import logging
from typing import Optional

from .config import CardSheetConfig
from .models import LabelGeometry

logger = logging.getLogger(__name__)


def compute_geometry(oversize_mm: Optional[float], config: Optional[CardSheetConfig] = None) -> LabelGeometry:
    """Derive label, trim and bleed sizes. Negative oversize is clamped to zero."""
    config = config or CardSheetConfig()

    if oversize_mm is None or not math.isfinite(oversize_mm) or oversize_mm < 0:
        logger.debug(f"Oversize {oversize_mm!r} clamped to 0")
        oversize_mm = 0.0

    return LabelGeometry(
        oversize_mm=float(oversize_mm),
        base_width_mm=config.base_card_width_mm,
        base_height_mm=config.base_card_height_mm,
        base_radius_mm=config.base_card_radius_mm,
        px_per_mm=config.px_per_mm,
    )
