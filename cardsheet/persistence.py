"""
Versioned snapshot codec, debounced autosave and JSON export/import
"""
import asyncio
import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional

import aiofiles

from .config import SNAPSHOT_VERSION
from .exceptions import DecodeFailure, ImportSchemaInvalid, StorageWriteFailure
from .models import CardSlot, ImageTransformState
from .services.storage import KeyValueStorage
from .utils.helpers import dated_filename, ensure_directory

logger = logging.getLogger(__name__)


@dataclass
class EditImageSnapshot:
    data_url: str
    transform: ImageTransformState

    def to_dict(self) -> dict:
        return {'dataUrl': self.data_url, **self.transform.to_dict()}


@dataclass
class PersistedSnapshot:
    version: int = SNAPSHOT_VERSION
    saved_at: str = ''
    oversize_mm: float = 0.0
    include_trim_in_export: bool = False
    image: Optional[EditImageSnapshot] = None
    cards: List[Optional[CardSlot]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'version': self.version,
            'savedAt': self.saved_at,
            'layout': {'oversizeMm': self.oversize_mm},
            'settings': {'includeTrimInExport': self.include_trim_in_export},
            'image': self.image.to_dict() if self.image else None,
            'cards': [_card_to_dict(card) for card in self.cards],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def _card_to_dict(card: Optional[CardSlot]) -> Optional[dict]:
    if card is None:
        return None
    return {
        'id': card.id,
        'dataUrl': card.raster,
        'sourceDataUrl': card.source_raster,
        'imageState': card.transform.to_dict() if card.transform else None,
    }


def _card_from_dict(data: Any) -> Optional[CardSlot]:
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"Card entry must be an object, got {type(data).__name__}")
    card_id, raster = data.get('id'), data.get('dataUrl')
    if not isinstance(card_id, str) or not card_id or not isinstance(raster, str):
        raise ValueError("Card entry needs a string id and dataUrl")
    source = data.get('sourceDataUrl')
    if source is not None and not isinstance(source, str):
        raise ValueError("sourceDataUrl must be a string or null")
    state = data.get('imageState')
    if state is not None and not isinstance(state, dict):
        raise ValueError("imageState must be an object or null")
    return CardSlot(
        id=card_id,
        raster=raster,
        source_raster=source,
        transform=ImageTransformState.from_dict(state) if state is not None else None,
    )


def _image_from_dict(data: Any) -> Optional[EditImageSnapshot]:
    if data is None:
        return None
    if not isinstance(data, dict) or not isinstance(data.get('dataUrl'), str):
        raise ValueError("image must be null or an object with a dataUrl")
    return EditImageSnapshot(data['dataUrl'], ImageTransformState.from_dict(data))


def serialize(session) -> PersistedSnapshot:
    image = None
    if session.edit_image is not None:
        image = EditImageSnapshot(session.edit_image.source_data_url, session.transform.snapshot())
    return PersistedSnapshot(
        version=session.config.snapshot_version,
        saved_at=datetime.now(timezone.utc).isoformat(),
        oversize_mm=session.geometry.oversize_mm,
        include_trim_in_export=session.include_trim_in_export,
        image=image,
        cards=session.store.slots(),
    )


def parse(raw: str, version: int = SNAPSHOT_VERSION) -> Optional[PersistedSnapshot]:
    """Decode a stored or imported payload; None when malformed or from another version."""
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"Snapshot is not valid JSON: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning("Snapshot is not a JSON object")
        return None

    if 'version' in data:
        found = data['version']
        if isinstance(found, bool) or not isinstance(found, (int, float)) or found != version:
            logger.warning(f"Snapshot version {found!r} does not match {version}")
            return None

    try:
        layout = data.get('layout') or {}
        settings = data.get('settings') or {}
        oversize_mm = float(layout.get('oversizeMm', 0.0))
        if not math.isfinite(oversize_mm):
            raise ValueError("oversizeMm must be finite")
        cards = data.get('cards') or []
        if not isinstance(cards, list):
            raise ValueError("cards must be a list")
        include_trim = settings.get('includeTrimInExport', False)
        if not isinstance(include_trim, bool):
            raise ValueError("includeTrimInExport must be true or false")
        return PersistedSnapshot(
            version=version,
            saved_at=str(data.get('savedAt', '')),
            oversize_mm=max(0.0, oversize_mm),
            include_trim_in_export=include_trim,
            image=_image_from_dict(data.get('image')),
            cards=[_card_from_dict(card) for card in cards],
        )
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning(f"Snapshot rejected: {e}")
        return None


async def apply(snapshot: PersistedSnapshot, session):
    """Restore settings, cards (verbatim) and the edit image into the session."""
    decoded = None
    if snapshot.image is not None:
        try:
            decoded = await session.decoder(snapshot.image.data_url)
        except DecodeFailure as e:
            logger.warning(f"Saved edit image could not be decoded, dropped: {e}")

    session.restore_state(
        oversize_mm=snapshot.oversize_mm,
        include_trim_in_export=snapshot.include_trim_in_export,
        cards=snapshot.cards,
        edit_image=decoded,
        transform=snapshot.image.transform if decoded is not None else None,
    )


async def export_snapshot(session, directory: Path) -> Path:
    ensure_directory(str(directory))
    path = Path(directory) / dated_filename('card-sheet', 'json')
    async with aiofiles.open(path, 'w', encoding='utf-8') as f:
        await f.write(serialize(session).to_json())
    logger.info(f"Snapshot exported: {path}")
    return path


async def import_snapshot(path: Path, session):
    try:
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            raw = await f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise ImportSchemaInvalid(f"Could not read {Path(path).name}: {e}") from e

    snapshot = parse(raw, session.config.snapshot_version)
    if snapshot is None:
        raise ImportSchemaInvalid("Import rejected: not a card sheet file for this version.")
    await apply(snapshot, session)
    logger.info(f"Snapshot imported: {path} ({len(snapshot.cards)} slot(s))")


class AutosaveScheduler:
    """Owns the single pending save handle; each schedule() supersedes the previous one."""

    def __init__(self, storage: KeyValueStorage, key: str, payload_factory: Callable[[], str],
                 delay: float = 0.6, on_failure: Optional[Callable[[str], None]] = None):
        self.storage = storage
        self.key = key
        self.payload_factory = payload_factory
        self.delay = delay
        self.on_failure = on_failure
        self.saves = 0
        self._pending: Optional[asyncio.TimerHandle] = None
        self._failure_reported = False

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self):
        self.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop, save deferred to flush()")
            return
        self._pending = loop.call_later(self.delay, self._fire)

    def cancel(self):
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _fire(self):
        self._pending = None
        self.save()

    def flush(self) -> bool:
        self.cancel()
        return self.save()

    def save(self) -> bool:
        try:
            self.storage.set(self.key, self.payload_factory())
        except StorageWriteFailure as e:
            if self._failure_reported:
                logger.debug(f"Autosave failed again: {e}")
                return False
            self._failure_reported = True
            logger.warning(f"Autosave failed: {e}")
            if self.on_failure:
                self.on_failure("Autosave is unavailable (storage full or disabled). "
                                "Use Export to keep a copy of this sheet.")
            return False
        self.saves += 1
        return True
