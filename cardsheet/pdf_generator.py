"""
Export document: baked card rasters laid out on physical pages
"""
import asyncio
import logging
from io import BytesIO
from typing import Callable, Optional, Sequence

from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from .exceptions import DocumentBuildFailure
from .layout_calculator import SheetPaginator
from .models import CardSlot, LabelGeometry, SheetLayout
from .services.image_loader import decode_data_url
from .utils.helpers import format_file_size

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class PDFGenerator:
    def __init__(self, layout: SheetLayout, geometry: LabelGeometry, title: str = "Card labels"):
        self.layout = layout
        self.geometry = geometry
        self.title = title
        self.paginator = SheetPaginator(layout, geometry.label_width_mm, geometry.label_height_mm)

    async def build(self, slots: Sequence[Optional[CardSlot]],
                    progress: Optional[ProgressCallback] = None) -> bytes:
        """Build the whole document in memory. Raises DocumentBuildFailure, never returns partial output."""
        if not any(slot is not None for slot in slots):
            raise ValueError("No cards to place on the sheet")

        page_width = self.layout.page_width_mm * mm
        page_height = self.layout.page_height_mm * mm
        placements = self.paginator.layout_for(len(slots))
        occupied_total = sum(1 for slot in slots if slot is not None)

        logger.info(f"Building PDF: {occupied_total} cards, "
                    f"{self.paginator.page_count(len(slots))} page(s)")
        try:
            buffer = BytesIO()
            c = canvas.Canvas(buffer, pagesize=(page_width, page_height))
            c.setTitle(self.title)

            current_page = 0
            placed = 0
            for placement in placements:
                while placement.page > current_page:
                    c.showPage()
                    current_page += 1

                slot = slots[placement.index]
                if slot is None:
                    continue

                _, data = decode_data_url(slot.raster)
                await asyncio.sleep(0)
                c.drawImage(
                    ImageReader(BytesIO(data)),
                    placement.x * mm, placement.y * mm,
                    width=placement.width * mm, height=placement.height * mm,
                )
                placed += 1
                if progress:
                    progress(placed, occupied_total)

            c.showPage()
            c.save()
        except Exception as e:
            logger.error(f"❌ Error building PDF: {e}")
            raise DocumentBuildFailure(f"Could not build the PDF: {e}") from e

        pdf_bytes = buffer.getvalue()
        logger.info(f"✅ PDF built: {format_file_size(len(pdf_bytes))}")
        return pdf_bytes
