"""
Session controller: owns the mutable state of one card sheet
"""
import logging
import os
import uuid
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Union

import aiofiles
from PIL import Image

from .config import CardSheetConfig
from .exceptions import (DecodeFailure, DocumentBuildFailure, FetchFailure,
                         ImportSchemaInvalid, LayoutCalculationError)
from .geometry import compute_geometry
from .layout_calculator import SheetPaginator
from .models import BatchImportResult, CardSlot, ImageTransformState, LabelGeometry, SlotPlacement
from .pdf_generator import PDFGenerator
from .persistence import (AutosaveScheduler, PersistedSnapshot, apply, export_snapshot,
                          import_snapshot, parse, serialize)
from .preview import render_sheet_preview
from .renderer import CardBaker, GenerationCounter, compose, compose_placeholder, rebake_all
from .services.image_loader import DecodedImage, decode_image, fetch_image_bytes, read_image_file
from .services.storage import KeyValueStorage, MemoryStorage
from .slot_store import CardSlotStore
from .transform import ImageTransform, reset_view

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


class CardSheetSession:
    def __init__(self, config: Optional[CardSheetConfig] = None,
                 storage: Optional[KeyValueStorage] = None,
                 decoder=decode_image, fetcher=fetch_image_bytes,
                 status_callback: Optional[StatusCallback] = None):
        self.config = config or CardSheetConfig()
        self.storage = storage if storage is not None else MemoryStorage()
        self.decoder = decoder
        self.fetcher = fetcher
        self.status_callback = status_callback
        self.status = ''

        self.geometry = compute_geometry(self.config.default_oversize_mm, self.config)
        self.paginator = self._paginator_for(self.geometry)
        self.transform = self._new_transform(self.geometry)
        self.edit_image: Optional[DecodedImage] = None
        self.editing_card_id: Optional[str] = None
        self.store = CardSlotStore()
        self.include_trim_in_export = False

        self.baker = CardBaker(self.config)
        self.generations = GenerationCounter()
        self.autosave = AutosaveScheduler(
            self.storage, self.config.storage_key, self._snapshot_payload,
            delay=self.config.autosave_delay, on_failure=self.set_status,
        )
        self._exporting = False

    def _paginator_for(self, geometry: LabelGeometry) -> SheetPaginator:
        return SheetPaginator(self.config.sheet, geometry.label_width_mm, geometry.label_height_mm)

    def _new_transform(self, geometry: LabelGeometry) -> ImageTransform:
        return ImageTransform(
            *geometry.canvas_size,
            zoom_min=self.config.zoom_min, zoom_max=self.config.zoom_max,
            pan_step=self.config.pan_step, pan_step_large=self.config.pan_step_large,
        )

    @property
    def oversize_mm(self) -> float:
        return self.geometry.oversize_mm

    @property
    def exporting(self) -> bool:
        return self._exporting

    def set_status(self, message: str):
        self.status = message
        logger.info(f"Status: {message}")
        if self.status_callback:
            self.status_callback(message)

    def _changed(self):
        self.autosave.schedule()

    # --- image being framed ---

    def _set_edit_image(self, decoded: DecodedImage):
        self.edit_image = decoded
        self.editing_card_id = None
        self.transform.reset_view(decoded.width, decoded.height)
        self._changed()

    async def load_image_bytes(self, data: bytes, success_message: Optional[str] = None,
                               error_message: Optional[str] = None) -> bool:
        """Clipboard, drag-drop and file bytes all land here"""
        try:
            decoded = await self.decoder(data)
        except DecodeFailure as e:
            logger.warning(f"Image decode failed: {e}")
            self.set_status(error_message or "Could not load that image. Try another file or URL.")
            return False
        self._set_edit_image(decoded)
        self.set_status(success_message or "Drag the image to position it inside the card.")
        return True

    async def load_image_file(self, path: Union[str, Path]) -> bool:
        try:
            data = await read_image_file(path)
        except DecodeFailure as e:
            logger.warning(f"{e}")
            self.set_status("Could not read that file. Try another one.")
            return False
        return await self.load_image_bytes(data)

    async def load_image_url(self, url: str) -> bool:
        if not (url or '').strip():
            self.set_status("Paste an image URL to load.")
            return False
        self.set_status("Loading image from URL...")
        try:
            data = await self.fetcher(url.strip(), self.config.fetch_timeout)
        except FetchFailure as e:
            logger.warning(f"Fetch failed for {url[:120]}: {e}")
            self.set_status(str(e))
            return False
        return await self.load_image_bytes(
            data,
            success_message="Image loaded from URL. Drag to position it inside the card.",
            error_message="Could not load that image. Try another URL.",
        )

    async def import_urls(self, urls: Iterable[str]) -> BatchImportResult:
        """Fetch, frame (cover-fit) and add each URL in turn; failures are counted, not fatal."""
        result = BatchImportResult()
        for raw in urls:
            url = (raw or '').strip()
            if not url:
                continue
            self.set_status(f"Importing image {result.total + 1}...")
            try:
                data = await self.fetcher(url, self.config.fetch_timeout)
                decoded = await self.decoder(data)
            except (FetchFailure, DecodeFailure) as e:
                logger.warning(f"Batch import skipped {url[:120]}: {e}")
                result.failed.append((url, str(e)))
                continue
            # Geometry may have changed while fetching
            state = reset_view(decoded.width, decoded.height, *self.geometry.canvas_size)
            self._add_card(decoded, state)
            result.succeeded.append(url)

        self.set_status(result.get_report())
        return result

    def set_zoom(self, value: float):
        self.transform.set_zoom(value)
        self._changed()

    def pan(self, delta_x: float, delta_y: float):
        self.transform.pan(delta_x, delta_y)
        self._changed()

    def nudge(self, direction: str, large: bool = False):
        self.transform.nudge(direction, large)
        self._changed()

    def begin_drag(self, x: float, y: float):
        self.transform.begin_drag(x, y)

    def drag_to(self, x: float, y: float):
        self.transform.drag_to(x, y)
        self._changed()

    def end_drag(self):
        self.transform.end_drag()

    def reset_view(self):
        if self.edit_image is None:
            return
        self.transform.reset_view()
        self._changed()

    def render_editor(self) -> Image.Image:
        """Live canvas: current framing with the trim guide always visible"""
        if self.edit_image is None:
            return compose_placeholder(self.geometry)
        return compose(self.edit_image.image, self.transform.state, self.geometry,
                       include_trim_guide=True, fill=self.config.card_fill_color)

    # --- sheet ---

    def _add_card(self, decoded: DecodedImage, state: ImageTransformState) -> int:
        raster = self.baker.bake(decoded.image, state, self.geometry, self.include_trim_in_export)
        card = CardSlot(id=uuid.uuid4().hex, raster=raster,
                        source_raster=decoded.source_data_url, transform=state)
        index = self.store.append(card)
        self._changed()
        return index

    def add_to_sheet(self) -> Optional[int]:
        if self.edit_image is None:
            self.set_status("Upload, paste, or load an image URL before adding it to the sheet.")
            return None

        state = self.transform.snapshot()
        if self.editing_card_id is not None:
            raster = self.baker.bake(self.edit_image.image, state, self.geometry, self.include_trim_in_export)
            card_id, self.editing_card_id = self.editing_card_id, None
            if self.store.replace(card_id, raster=raster, source_raster=self.edit_image.source_data_url,
                                  transform=state):
                index = self.store.index_of(card_id)
                self._changed()
                self.set_status(f"Updated card {index + 1}.")
                return index
            logger.info(f"Card {card_id} was removed while editing, adding as new")

        index = self._add_card(self.edit_image, state)
        count = self.store.count()
        self.set_status(f"Added {count} card{'' if count == 1 else 's'} to the sheet.")
        return index

    async def edit_card(self, index: int) -> bool:
        """Reopen a baked card for framing; add_to_sheet then replaces it in place."""
        card = self.store.get(index)
        if card is None or card.source_raster is None:
            self.set_status("That card cannot be edited.")
            return False
        try:
            decoded = await self.decoder(card.source_raster)
        except DecodeFailure as e:
            logger.warning(f"Could not reopen card {card.id}: {e}")
            self.set_status("That card cannot be edited.")
            return False
        if self.store.index_of(card.id) is None:
            return False

        self.edit_image = decoded
        if card.transform is not None:
            self.transform.restore(card.transform, decoded.width, decoded.height)
        else:
            self.transform.reset_view(decoded.width, decoded.height)
        self.editing_card_id = card.id
        self._changed()
        self.set_status(f"Editing card {index + 1}. Add to sheet to save changes.")
        return True

    def remove_card(self, index: int):
        self.store.remove_at(index)
        self._changed()
        if self.store.count() == 0:
            self.set_status("Sheet cleared. Add a new card when ready.")

    def move_card(self, from_index: int, to_index: int):
        self.store.move_to(from_index, to_index)
        self._changed()

    def clear_sheet(self):
        self.store.clear()
        self.editing_card_id = None
        self._changed()
        self.set_status("Sheet cleared.")

    # --- geometry and overlays ---

    async def set_oversize(self, oversize_mm: float) -> int:
        """Change the bleed and rebake every card. Returns the number of cards rebaked."""
        geometry = compute_geometry(oversize_mm, self.config)
        try:
            paginator = self._paginator_for(geometry)
        except LayoutCalculationError as e:
            logger.warning(f"Oversize {oversize_mm} rejected: {e}")
            self.set_status("Cards with that bleed no longer fit the page.")
            return 0

        self.geometry = geometry
        self.paginator = paginator
        self.transform.resize_label(*geometry.canvas_size)
        self._changed()
        return await self.rebake()

    async def set_include_trim_in_export(self, include: bool) -> int:
        self.include_trim_in_export = bool(include)
        self._changed()
        return await self.rebake()

    async def rebake(self) -> int:
        token = self.generations.advance()
        rebaked = await rebake_all(self.store, self.geometry, self.include_trim_in_export,
                                   token, self.baker, self.decoder)
        if rebaked:
            self._changed()
        return rebaked

    # --- export ---

    def preview_layout(self) -> List[SlotPlacement]:
        return self.paginator.preview_layout(len(self.store))

    def render_preview(self, page_index: int = 0, width_px: int = 420) -> bytes:
        return render_sheet_preview(self.store.slots(), self.paginator, page_index, width_px)

    async def export_pdf(self) -> Optional[bytes]:
        if self._exporting:
            self.set_status("A PDF export is already running. Please wait.")
            return None
        if self.store.count() == 0:
            self.set_status("Add at least one card before downloading the PDF.")
            return None

        self._exporting = True
        self.set_status("Building PDF...")
        try:
            generator = PDFGenerator(self.config.sheet, self.geometry)
            pdf_bytes = await generator.build(self.store.slots())
        except DocumentBuildFailure as e:
            logger.error(f"PDF export failed: {e}")
            self.set_status("Could not create the PDF. Please try again.")
            return None
        finally:
            self._exporting = False

        self.set_status("PDF ready. Print at 100% scale for accurate labels.")
        return pdf_bytes

    async def write_pdf(self, path: Union[str, Path]) -> Optional[Path]:
        pdf_bytes = await self.export_pdf()
        if pdf_bytes is None:
            return None
        path = Path(path)
        temp_path = path.with_name(path.name + '.part')
        try:
            async with aiofiles.open(temp_path, 'wb') as f:
                await f.write(pdf_bytes)
            os.replace(temp_path, path)
        except OSError as e:
            logger.error(f"Could not write {path}: {e}")
            if temp_path.exists():
                temp_path.unlink()
            self.set_status("Could not save the PDF. Please try again.")
            return None
        logger.info(f"PDF saved: {path}")
        return path

    # --- persistence ---

    def snapshot(self) -> PersistedSnapshot:
        return serialize(self)

    def _snapshot_payload(self) -> str:
        return serialize(self).to_json()

    def restore_state(self, oversize_mm: float, include_trim_in_export: bool,
                      cards: Sequence[Optional[CardSlot]], edit_image: Optional[DecodedImage],
                      transform: Optional[ImageTransformState]):
        geometry = compute_geometry(oversize_mm, self.config)
        try:
            paginator = self._paginator_for(geometry)
        except LayoutCalculationError as e:
            raise ImportSchemaInvalid(f"Saved oversize {oversize_mm} mm does not fit the sheet") from e

        # Any rebake still running belongs to the replaced state
        self.generations.advance()
        self.geometry = geometry
        self.paginator = paginator
        self.include_trim_in_export = bool(include_trim_in_export)
        self.store.load(cards)
        self.editing_card_id = None
        self.transform = self._new_transform(geometry)
        self.edit_image = edit_image
        if edit_image is not None:
            if transform is not None:
                self.transform.restore(transform, edit_image.width, edit_image.height)
            else:
                self.transform.reset_view(edit_image.width, edit_image.height)
        self._changed()

    async def restore(self) -> bool:
        """Load the autosaved snapshot, if any"""
        raw = self.storage.get(self.config.storage_key)
        if raw is None:
            return False
        snapshot = parse(raw, self.config.snapshot_version)
        if snapshot is None:
            logger.warning("Stored sheet ignored: unreadable or from another version")
            return False
        try:
            await apply(snapshot, self)
        except ImportSchemaInvalid as e:
            logger.warning(f"Stored sheet ignored: {e}")
            return False
        logger.info(f"Restored sheet with {self.store.count()} card(s)")
        return True

    async def export_snapshot(self, directory: Union[str, Path]) -> Optional[Path]:
        try:
            path = await export_snapshot(self, Path(directory))
        except OSError as e:
            logger.error(f"Snapshot export failed: {e}")
            self.set_status("Could not export the sheet.")
            return None
        self.set_status(f"Sheet exported to {path.name}.")
        return path

    async def import_snapshot(self, path: Union[str, Path]) -> bool:
        try:
            await import_snapshot(Path(path), self)
        except ImportSchemaInvalid as e:
            logger.warning(f"{e}")
            self.set_status("That file is not a card sheet export for this version.")
            return False
        self.set_status(f"Imported {self.store.count()} card(s).")
        return True

    def save_now(self) -> bool:
        return self.autosave.flush()

    def close(self):
        """Teardown: always write the latest state"""
        self.autosave.flush()
