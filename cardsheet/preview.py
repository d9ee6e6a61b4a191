# -*- coding: utf-8 -*-
# cardsheet/preview.py
import logging
from io import BytesIO
from typing import Optional, Sequence

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.figure import Figure
from matplotlib.patches import FancyBboxPatch, Rectangle
from PIL import Image

from .exceptions import DecodeFailure
from .layout_calculator import SheetPaginator
from .models import CardSlot
from .services.image_loader import decode_data_url

logger = logging.getLogger(__name__)

PREVIEW_DPI = 100


def _raster_array(slot: CardSlot) -> Optional[np.ndarray]:
    try:
        _, data = decode_data_url(slot.raster)
        with Image.open(BytesIO(data)) as img:
            return np.asarray(img.convert('RGB'))
    except (DecodeFailure, OSError) as e:
        logger.warning(f"Preview skipped card {slot.id}: {e}")
        return None


def render_sheet_preview(slots: Sequence[Optional[CardSlot]], paginator: SheetPaginator,
                         page_index: int = 0, width_px: int = 420,
                         height_px: Optional[int] = None) -> bytes:
    """Draw one page of the sheet as PNG, using proportional placements."""
    layout = paginator.layout
    if height_px is None:
        height_px = round(width_px * layout.page_height_mm / layout.page_width_mm)

    fig = Figure(figsize=(width_px / PREVIEW_DPI, height_px / PREVIEW_DPI), dpi=PREVIEW_DPI)
    FigureCanvasAgg(fig)
    ax = fig.add_axes((0, 0, 1, 1))
    ax.set_axis_off()
    ax.add_patch(Rectangle((0, 0), 1, 1, facecolor='white', edgecolor='#cccccc', linewidth=1, zorder=0))

    placements = [p for p in paginator.preview_layout(len(slots)) if p.page == page_index]
    for placement in placements:
        slot = slots[placement.index]
        x, y, w, h = placement.x, placement.y, placement.width, placement.height
        pixels = _raster_array(slot) if slot is not None else None
        if pixels is not None:
            ax.imshow(pixels, extent=(x, x + w, y + h, y), aspect='auto', interpolation='bilinear', zorder=1)
        else:
            ax.add_patch(FancyBboxPatch(
                (x, y), w, h, boxstyle='round,pad=0,rounding_size=0.01',
                facecolor='none', edgecolor='#9aa8a7', linestyle='--', linewidth=1, zorder=1,
            ))

    # imshow autoscales; pin the page frame with the y axis pointing down
    ax.set_xlim(0, 1)
    ax.set_ylim(1, 0)

    buffer = BytesIO()
    fig.savefig(buffer, format='png', dpi=PREVIEW_DPI)
    logger.debug(f"Preview page {page_index}: {len(placements)} slot(s), {width_px}x{height_px}px")
    return buffer.getvalue()
