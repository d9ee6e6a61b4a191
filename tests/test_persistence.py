# -*- coding: utf-8 -*-
# tests/test_persistence.py
import asyncio
import json
import tempfile
import unittest
import sys
import os
from datetime import date
from io import BytesIO
from PIL import Image

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from cardsheet.config import CardSheetConfig
from cardsheet.exceptions import ImportSchemaInvalid
from cardsheet.models import CardSlot, ImageTransformState
from cardsheet.persistence import AutosaveScheduler, PersistedSnapshot, parse
from cardsheet.services.image_loader import to_data_url
from cardsheet.services.storage import FileStorage, MemoryStorage
from cardsheet.session import CardSheetSession


def png_data_url(size=(120, 80), color=(10, 120, 40)):
    buffer = BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return to_data_url(buffer.getvalue(), 'image/png')


class TestSnapshotCodec(unittest.TestCase):

    def test_schema_field_names(self):
        snapshot = PersistedSnapshot(
            oversize_mm=1.5, include_trim_in_export=True,
            cards=[CardSlot('a', 'data:x', 'data:y', ImageTransformState(2, 1.5, 3, -4)), None],
        )
        data = json.loads(snapshot.to_json())
        self.assertEqual(data['version'], 1)
        self.assertEqual(data['layout'], {'oversizeMm': 1.5})
        self.assertEqual(data['settings'], {'includeTrimInExport': True})
        self.assertIsNone(data['image'])
        self.assertEqual(data['cards'][0], {
            'id': 'a', 'dataUrl': 'data:x', 'sourceDataUrl': 'data:y',
            'imageState': {'baseScale': 2, 'zoom': 1.5, 'offsetX': 3, 'offsetY': -4},
        })
        self.assertIsNone(data['cards'][1])

    def test_parse_round_trip_keeps_holes(self):
        snapshot = PersistedSnapshot(oversize_mm=2, cards=[None, CardSlot('b', 'data:r')])
        parsed = parse(snapshot.to_json())
        self.assertEqual(parsed.oversize_mm, 2)
        self.assertIsNone(parsed.cards[0])
        self.assertEqual(parsed.cards[1], CardSlot('b', 'data:r'))

    def test_parse_rejects_other_version(self):
        payload = json.dumps({'version': 999, 'cards': []})
        self.assertIsNone(parse(payload))
        self.assertIsNone(parse(json.dumps({'version': True})))
        self.assertIsNone(parse(json.dumps({'version': '1'})))

    def test_parse_rejects_malformed(self):
        for raw in ('{not json', '[]', '"text"',
                    json.dumps({'version': 1, 'cards': 'x'}),
                    json.dumps({'version': 1, 'cards': [{'id': 5}]}),
                    json.dumps({'version': 1, 'layout': {'oversizeMm': 'wide'}}),
                    json.dumps({'version': 1, 'settings': {'includeTrimInExport': 'false'}, 'cards': []}),
                    json.dumps({'version': 1, 'settings': {'includeTrimInExport': 1}, 'cards': []}),
                    json.dumps({'version': 1, 'image': {'dataUrl': 'data:x', 'baseScale': -1}})):
            with self.subTest(raw=raw):
                self.assertIsNone(parse(raw))

    def test_missing_version_is_accepted(self):
        parsed = parse(json.dumps({'cards': []}))
        self.assertIsNotNone(parsed)
        self.assertEqual(parsed.cards, [])


class TestSessionPersistence(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.config = CardSheetConfig(px_per_mm=2, autosave_delay=0.01)
        self.storage = MemoryStorage()

    async def build_session(self):
        session = CardSheetSession(self.config, storage=self.storage)
        await session.load_image_bytes(png_data_url())
        session.set_zoom(2)
        session.add_to_sheet()
        session.add_to_sheet()
        session.remove_card(0)
        session.pan(5, 3)
        return session

    async def test_restore_reproduces_sheet(self):
        session = await self.build_session()
        await session.set_oversize(1.5)
        await session.set_include_trim_in_export(True)
        session.close()
        saved_cards = session.store.slots()

        restored = CardSheetSession(self.config, storage=self.storage)
        self.assertTrue(await restored.restore())
        self.assertEqual(restored.oversize_mm, 1.5)
        self.assertTrue(restored.include_trim_in_export)
        self.assertEqual(restored.store.slots(), saved_cards)
        self.assertIsNone(restored.store.get(0))
        self.assertIsNotNone(restored.edit_image)
        self.assertEqual(restored.transform.state, session.transform.state)

    async def test_restore_ignores_other_version(self):
        self.storage.set(self.config.storage_key, json.dumps({'version': 999, 'cards': []}))
        session = CardSheetSession(self.config, storage=self.storage)
        self.assertFalse(await session.restore())
        self.assertEqual(len(session.store), 0)

    async def test_export_import_file(self):
        session = await self.build_session()
        with tempfile.TemporaryDirectory() as temp_dir:
            path = await session.export_snapshot(temp_dir)
            self.assertEqual(path.name, f"card-sheet-{date.today().isoformat()}.json")

            other = CardSheetSession(self.config, storage=MemoryStorage())
            self.assertTrue(await other.import_snapshot(path))
            self.assertEqual(other.store.slots(), session.store.slots())

            bad = os.path.join(temp_dir, 'bad.json')
            with open(bad, 'w', encoding='utf-8') as f:
                json.dump({'version': 999}, f)
            self.assertFalse(await other.import_snapshot(bad))
            self.assertEqual(other.store.slots(), session.store.slots())
            other.close()
        session.close()

    async def test_undecodable_edit_image_is_dropped(self):
        payload = {
            'version': 1, 'layout': {'oversizeMm': 0}, 'settings': {'includeTrimInExport': False},
            'image': {'dataUrl': 'data:image/png;base64,AAAA', 'baseScale': 1, 'zoom': 1,
                      'offsetX': 0, 'offsetY': 0},
            'cards': [{'id': 'k', 'dataUrl': png_data_url(), 'sourceDataUrl': None, 'imageState': None}],
        }
        self.storage.set(self.config.storage_key, json.dumps(payload))
        session = CardSheetSession(self.config, storage=self.storage)
        self.assertTrue(await session.restore())
        self.assertIsNone(session.edit_image)
        self.assertEqual(session.store.count(), 1)
        session.close()

    async def test_file_storage_round_trip(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            storage = FileStorage(temp_dir)
            session = CardSheetSession(self.config, storage=storage)
            await session.load_image_bytes(png_data_url())
            session.add_to_sheet()
            self.assertTrue(session.save_now())

            restored = CardSheetSession(self.config, storage=FileStorage(temp_dir))
            self.assertTrue(await restored.restore())
            self.assertEqual(restored.store.count(), 1)


class TestAutosaveScheduler(unittest.IsolatedAsyncioTestCase):

    async def test_burst_coalesces_into_one_save(self):
        storage = MemoryStorage()
        counter = iter(range(100))
        scheduler = AutosaveScheduler(storage, 'k', lambda: str(next(counter)), delay=0.05)
        for _ in range(5):
            scheduler.schedule()
            await asyncio.sleep(0.01)
        self.assertTrue(scheduler.pending)
        await asyncio.sleep(0.15)
        self.assertEqual(scheduler.saves, 1)
        self.assertFalse(scheduler.pending)
        self.assertEqual(storage.get('k'), '0')

    async def test_failure_reported_once(self):
        messages = []
        scheduler = AutosaveScheduler(MemoryStorage(quota=3), 'k', lambda: 'too long',
                                      delay=0.01, on_failure=messages.append)
        self.assertFalse(scheduler.flush())
        self.assertFalse(scheduler.flush())
        self.assertEqual(len(messages), 1)
        self.assertIn('Export', messages[0])

    async def test_flush_cancels_pending(self):
        storage = MemoryStorage()
        scheduler = AutosaveScheduler(storage, 'k', lambda: 'v', delay=10)
        scheduler.schedule()
        self.assertTrue(scheduler.flush())
        self.assertFalse(scheduler.pending)
        self.assertEqual(storage.writes, 1)


class TestAutosaveWithoutLoop(unittest.TestCase):

    def test_schedule_without_loop_defers(self):
        scheduler = AutosaveScheduler(MemoryStorage(), 'k', lambda: 'v', delay=0.01)
        scheduler.schedule()
        self.assertFalse(scheduler.pending)
        self.assertTrue(scheduler.flush())


if __name__ == '__main__':
    unittest.main()
