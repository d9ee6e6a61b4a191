"""
Pan / zoom state of the image being framed
"""
import math
import logging
from dataclasses import replace
from typing import Optional, Tuple

from .models import ImageTransformState

logger = logging.getLogger(__name__)

NUDGE_DIRECTIONS = {
    'left': (-1, 0),
    'right': (1, 0),
    'up': (0, -1),
    'down': (0, 1),
}


def cover_fit_scale(image_width: float, image_height: float,
                    label_width: float, label_height: float) -> float:
    return max(label_width / image_width, label_height / image_height)


def reset_view(image_width: float, image_height: float,
               label_width: float, label_height: float) -> ImageTransformState:
    return ImageTransformState(
        base_scale=cover_fit_scale(image_width, image_height, label_width, label_height),
        zoom=1.0,
        offset_x=0.0,
        offset_y=0.0,
    )


def offset_bounds(state: ImageTransformState, image_size: Optional[Tuple[int, int]],
                  label_size: Tuple[float, float]) -> Tuple[float, float]:
    """Largest allowed |offset_x| and |offset_y|; (0, 0) when no image is loaded."""
    if image_size is None:
        return 0.0, 0.0
    scale = state.scale
    max_x = max(0.0, (image_size[0] * scale - label_size[0]) / 2)
    max_y = max(0.0, (image_size[1] * scale - label_size[1]) / 2)
    return max_x, max_y


def clamp_state(state: ImageTransformState, image_size: Optional[Tuple[int, int]],
                label_size: Tuple[float, float]) -> ImageTransformState:
    max_x, max_y = offset_bounds(state, image_size, label_size)
    return replace(
        state,
        offset_x=min(max(state.offset_x, -max_x), max_x),
        offset_y=min(max(state.offset_y, -max_y), max_y),
    )


def refit_state(state: ImageTransformState, image_size: Tuple[int, int],
                label_size: Tuple[float, float]) -> ImageTransformState:
    """Re-derive the cover-fit base scale for a new label size, keeping zoom and relative pan."""
    base_scale = cover_fit_scale(image_size[0], image_size[1], label_size[0], label_size[1])
    ratio = base_scale / state.base_scale if state.base_scale > 0 else 1.0
    refitted = ImageTransformState(
        base_scale=base_scale,
        zoom=state.zoom,
        offset_x=state.offset_x * ratio,
        offset_y=state.offset_y * ratio,
    )
    return clamp_state(refitted, image_size, label_size)


class ImageTransform:
    def __init__(self, label_width: float, label_height: float,
                 zoom_min: float = 1.0, zoom_max: float = 4.0,
                 pan_step: float = 10.0, pan_step_large: float = 50.0):
        self.label_size = (label_width, label_height)
        self.zoom_min = zoom_min
        self.zoom_max = zoom_max
        self.pan_step = pan_step
        self.pan_step_large = pan_step_large
        self.image_size: Optional[Tuple[int, int]] = None
        self.state = ImageTransformState()
        self._drag_origin: Optional[Tuple[float, float, float, float]] = None

    @property
    def has_image(self) -> bool:
        return self.image_size is not None

    @property
    def dragging(self) -> bool:
        return self._drag_origin is not None

    def snapshot(self) -> ImageTransformState:
        return replace(self.state)

    def reset_view(self, image_width: Optional[int] = None,
                   image_height: Optional[int] = None) -> ImageTransformState:
        if image_width is not None and image_height is not None:
            self.image_size = (image_width, image_height)
        if self.image_size is None:
            return self.snapshot()
        self.state = reset_view(*self.image_size, *self.label_size)
        self.clamp()
        return self.snapshot()

    def clear(self):
        self.image_size = None
        self.state = ImageTransformState()
        self._drag_origin = None

    def set_zoom(self, value: float):
        value = float(value)
        if not math.isfinite(value):
            logger.debug(f"Ignoring non-finite zoom {value}")
            return
        self.state.zoom = min(max(value, self.zoom_min), self.zoom_max)
        self.clamp()

    def pan(self, delta_x: float, delta_y: float):
        self.state.offset_x += delta_x
        self.state.offset_y += delta_y
        self.clamp()

    def nudge(self, direction: str, large: bool = False):
        """Keyboard movement with a fixed step."""
        dx, dy = NUDGE_DIRECTIONS[direction]
        step = self.pan_step_large if large else self.pan_step
        self.pan(dx * step, dy * step)

    def begin_drag(self, x: float, y: float):
        if not self.has_image:
            return
        self._drag_origin = (x, y, self.state.offset_x, self.state.offset_y)

    def drag_to(self, x: float, y: float):
        if self._drag_origin is None:
            return
        start_x, start_y, start_offset_x, start_offset_y = self._drag_origin
        self.state.offset_x = start_offset_x + (x - start_x)
        self.state.offset_y = start_offset_y + (y - start_y)
        self.clamp()

    def end_drag(self):
        self._drag_origin = None

    def offset_bounds(self) -> Tuple[float, float]:
        return offset_bounds(self.state, self.image_size, self.label_size)

    def clamp(self):
        self.state = clamp_state(self.state, self.image_size, self.label_size)

    def resize_label(self, label_width: float, label_height: float):
        """Follow a geometry change: refit base scale, keep zoom, clamp offsets."""
        self.label_size = (label_width, label_height)
        if self.image_size is None:
            return
        self.state = refit_state(self.state, self.image_size, self.label_size)

    def restore(self, state: ImageTransformState, image_width: int, image_height: int):
        self.image_size = (image_width, image_height)
        fit = cover_fit_scale(image_width, image_height, *self.label_size)
        self.state = ImageTransformState(
            base_scale=max(state.base_scale, fit),
            zoom=min(max(state.zoom, self.zoom_min), self.zoom_max),
            offset_x=state.offset_x,
            offset_y=state.offset_y,
        )
        self.clamp()

    def covers_label(self) -> bool:
        if self.image_size is None:
            return False
        scale = self.state.scale
        left = self.label_size[0] / 2 - self.image_size[0] * scale / 2 + self.state.offset_x
        top = self.label_size[1] / 2 - self.image_size[1] * scale / 2 + self.state.offset_y
        right = left + self.image_size[0] * scale
        bottom = top + self.image_size[1] * scale
        eps = 1e-6
        return (left <= eps and top <= eps
                and right >= self.label_size[0] - eps and bottom >= self.label_size[1] - eps)
