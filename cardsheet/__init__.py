"""
Card sheet composer: frame images into card-sized labels and lay them out on printable pages
"""

from .models import (
    RasterFormat, LabelGeometry, ImageTransformState, CardSlot,
    SheetLayout, SlotPlacement, BatchImportResult
)
from .config import CardSheetConfig
from .geometry import compute_geometry
from .transform import ImageTransform
from .slot_store import CardSlotStore
from .layout_calculator import SheetPaginator
from .renderer import CardBaker
from .pdf_generator import PDFGenerator
from .persistence import PersistedSnapshot, AutosaveScheduler
from .session import CardSheetSession

__version__ = '1.0.0'

__all__ = [
    'RasterFormat',
    'LabelGeometry',
    'ImageTransformState',
    'CardSlot',
    'SheetLayout',
    'SlotPlacement',
    'BatchImportResult',
    'CardSheetConfig',
    'compute_geometry',
    'ImageTransform',
    'CardSlotStore',
    'SheetPaginator',
    'CardBaker',
    'PDFGenerator',
    'PersistedSnapshot',
    'AutosaveScheduler',
    'CardSheetSession'
]
