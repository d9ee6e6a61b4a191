"""
Data classes and Enum for card sheet composition
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Tuple


class RasterFormat(Enum):
    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"

    @property
    def mime(self) -> str:
        return self.value

    @property
    def has_alpha(self) -> bool:
        return self is not RasterFormat.JPEG

    @classmethod
    def from_name(cls, name: str) -> 'RasterFormat':
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unsupported raster format: {name}")


class Rect(NamedTuple):
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class LabelGeometry:
    oversize_mm: float
    base_width_mm: float
    base_height_mm: float
    base_radius_mm: float
    px_per_mm: float

    @property
    def label_width_mm(self) -> float:
        return self.base_width_mm + 2 * self.oversize_mm

    @property
    def label_height_mm(self) -> float:
        return self.base_height_mm + 2 * self.oversize_mm

    @property
    def oversize_px(self) -> float:
        return self.oversize_mm * self.px_per_mm

    @property
    def label_width_px(self) -> float:
        return self.label_width_mm * self.px_per_mm

    @property
    def label_height_px(self) -> float:
        return self.label_height_mm * self.px_per_mm

    @property
    def radius_px(self) -> float:
        return self.base_radius_mm * self.px_per_mm

    @property
    def has_bleed(self) -> bool:
        return self.oversize_mm > 0

    @property
    def clip_radius_px(self) -> float:
        # Once bleed exists the trim guide carries the rounding
        return 0.0 if self.has_bleed else self.radius_px

    @property
    def canvas_size(self) -> tuple:
        return (round(self.label_width_px), round(self.label_height_px))

    @property
    def trim_rect(self) -> Rect:
        return Rect(
            self.oversize_px,
            self.oversize_px,
            self.base_width_mm * self.px_per_mm,
            self.base_height_mm * self.px_per_mm,
        )


@dataclass
class ImageTransformState:
    base_scale: float = 1.0
    zoom: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    @property
    def scale(self) -> float:
        return self.base_scale * self.zoom

    def to_dict(self) -> Dict[str, float]:
        return {
            'baseScale': self.base_scale,
            'zoom': self.zoom,
            'offsetX': self.offset_x,
            'offsetY': self.offset_y,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ImageTransformState':
        state = cls(
            base_scale=float(data.get('baseScale', 1.0)),
            zoom=float(data.get('zoom', 1.0)),
            offset_x=float(data.get('offsetX', 0.0)),
            offset_y=float(data.get('offsetY', 0.0)),
        )
        if not all(math.isfinite(v) for v in (state.base_scale, state.zoom, state.offset_x, state.offset_y)):
            raise ValueError("Transform values must be finite")
        if state.base_scale <= 0 or state.zoom <= 0:
            raise ValueError("Transform scale must be positive")
        return state


@dataclass(frozen=True)
class CardSlot:
    id: str
    raster: str
    source_raster: Optional[str] = None
    transform: Optional[ImageTransformState] = None


@dataclass
class SheetLayout:
    columns: int = 2
    rows_per_page: int = 4
    page_width_mm: float = 210
    page_height_mm: float = 297
    margin_mm: float = 10.0
    loose_rows_per_page: Optional[int] = None
    loose_margin_mm: Optional[float] = None

    @property
    def capacity(self) -> int:
        return self.columns * self.rows_per_page

    @property
    def loose_capacity(self) -> int:
        if self.loose_rows_per_page is None:
            return 0
        return self.columns * self.loose_rows_per_page


@dataclass(frozen=True)
class SlotPlacement:
    index: int
    page: int
    column: int
    row: int
    x: float
    y: float
    width: float
    height: float
    gap_x: float
    gap_y: float


@dataclass
class BatchImportResult:
    succeeded: List[str] = field(default_factory=list)
    # (url, error) per attempt; a URL listed twice counts twice
    failed: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def get_report(self) -> str:
        report = f"Imported {len(self.succeeded)} of {self.total} image URLs."
        if self.failed:
            report += f" {len(self.failed)} failed."
        return report
