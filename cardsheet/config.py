# -*- coding: utf-8 -*-
# cardsheet/config.py
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path

from .models import RasterFormat, SheetLayout

logger = logging.getLogger(__name__)

# ISO/IEC 7810 ID-1 card (width x height, corner radius, mm)
BASE_CARD_WIDTH_MM = 85.6
BASE_CARD_HEIGHT_MM = 53.98
BASE_CARD_RADIUS_MM = 3.18

# Standard sheet sizes (width x height, mm)
SHEET_SIZES = {
    'A4': (210, 297),
    'A3': (297, 420),
    'A5': (148, 210),
    'Letter': (215.9, 279.4),
    'Legal': (215.9, 355.6),
}

SNAPSHOT_VERSION = 1
STORAGE_KEY = 'card-sheet-state'
PDF_FILENAME = 'card-labels.pdf'


@dataclass
class CardSheetConfig:
    px_per_mm: float = 10.0
    base_card_width_mm: float = BASE_CARD_WIDTH_MM
    base_card_height_mm: float = BASE_CARD_HEIGHT_MM
    base_card_radius_mm: float = BASE_CARD_RADIUS_MM
    default_oversize_mm: float = 0.0
    zoom_min: float = 1.0
    zoom_max: float = 4.0
    pan_step: float = 10.0
    pan_step_large: float = 50.0
    raster_format: RasterFormat = RasterFormat.JPEG
    raster_quality: int = 92
    background_color: str = '#ffffff'
    card_fill_color: str = '#f7f1e6'
    autosave_delay: float = 0.6
    snapshot_version: int = SNAPSHOT_VERSION
    storage_key: str = STORAGE_KEY
    fetch_timeout: float = 15.0
    storage_dir: Path = Path('state')
    log_dir: Path = Path('logs')
    sheet: SheetLayout = field(default_factory=SheetLayout)

    @classmethod
    def from_env(cls) -> 'CardSheetConfig':
        config = cls()
        try:
            sheet_name = os.getenv('CARDSHEET_SHEET_SIZE', 'A4')
            width, height = SHEET_SIZES.get(sheet_name, SHEET_SIZES['A4'])
            config.sheet = SheetLayout(
                columns=int(os.getenv('CARDSHEET_COLUMNS', config.sheet.columns)),
                rows_per_page=int(os.getenv('CARDSHEET_ROWS', config.sheet.rows_per_page)),
                page_width_mm=width,
                page_height_mm=height,
                margin_mm=float(os.getenv('CARDSHEET_MARGIN_MM', config.sheet.margin_mm)),
            )
            config.px_per_mm = float(os.getenv('CARDSHEET_PX_PER_MM', config.px_per_mm))
            config.autosave_delay = float(os.getenv('CARDSHEET_AUTOSAVE_DELAY', config.autosave_delay))
            config.raster_quality = int(os.getenv('CARDSHEET_RASTER_QUALITY', config.raster_quality))
            config.raster_format = RasterFormat.from_name(
                os.getenv('CARDSHEET_RASTER_FORMAT', config.raster_format.name))
        except ValueError as e:
            logger.error(f"Invalid CARDSHEET_* environment value, using defaults: {e}")
            return cls()

        config.storage_dir = Path(os.getenv('CARDSHEET_STATE_DIR', str(config.storage_dir)))
        config.log_dir = Path(os.getenv('CARDSHEET_LOG_DIR', str(config.log_dir)))
        logger.debug(f"Config from environment: sheet={sheet_name}, px_per_mm={config.px_per_mm}")
        return config
