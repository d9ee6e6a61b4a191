# -*- coding: utf-8 -*-
# tests/test_image_loader.py
import base64
import tempfile
import unittest
import sys
import os
from io import BytesIO
from unittest import mock
from PIL import Image

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from cardsheet.exceptions import DecodeFailure, FetchFailure
from cardsheet.services import image_loader
from cardsheet.services.image_loader import (decode_data_url, decode_image, fetch_image_bytes,
                                             read_image_file, resolve_url, to_data_url)


def png_bytes(size=(40, 20), color=(200, 30, 30)):
    buffer = BytesIO()
    Image.new('RGB', size, color).save(buffer, format='PNG')
    return buffer.getvalue()


class TestDataUrls(unittest.TestCase):

    def test_decode_data_url(self):
        url = to_data_url(b'abc', 'image/png')
        self.assertEqual(decode_data_url(url), ('image/png', b'abc'))

    def test_rejects_non_base64(self):
        with self.assertRaises(DecodeFailure):
            decode_data_url('data:image/png,abc')
        with self.assertRaises(DecodeFailure):
            decode_data_url('data:image/png;base64,@@@')
        with self.assertRaises(DecodeFailure):
            decode_data_url('http://example.com/a.png')


class TestDecodeImage(unittest.IsolatedAsyncioTestCase):

    async def test_decode_bytes(self):
        decoded = await decode_image(png_bytes())
        self.assertEqual((decoded.width, decoded.height), (40, 20))
        self.assertEqual(decoded.image.mode, 'RGBA')
        self.assertTrue(decoded.source_data_url.startswith('data:image/png;base64,'))

    async def test_decode_data_url_source(self):
        decoded = await decode_image(to_data_url(png_bytes((7, 9)), 'image/png'))
        self.assertEqual(decoded.image.size, (7, 9))

    async def test_garbage_raises(self):
        with self.assertRaises(DecodeFailure):
            await decode_image(b'not an image')
        with self.assertRaises(DecodeFailure):
            await decode_image(b'')

    async def test_read_image_file(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'card.png')
            with open(path, 'wb') as f:
                f.write(png_bytes())
            self.assertEqual(await read_image_file(path), png_bytes())
            with self.assertRaises(DecodeFailure):
                await read_image_file(os.path.join(temp_dir, 'missing.png'))


class TestFetch(unittest.IsolatedAsyncioTestCase):

    def test_resolve_url(self):
        self.assertEqual(resolve_url('  https://example.com/a.png '), 'https://example.com/a.png')
        for bad in ('', 'ftp://example.com/a.png', 'example.com/a.png', 'https://'):
            with self.subTest(url=bad):
                with self.assertRaises(FetchFailure):
                    resolve_url(bad)

    async def test_fetch_checks_content_type(self):
        with mock.patch.object(image_loader, '_fetch_sync', return_value=('text/html', b'<html>')):
            with self.assertRaises(FetchFailure):
                await fetch_image_bytes('https://example.com/page')

    async def test_fetch_returns_bytes(self):
        data = png_bytes()
        with mock.patch.object(image_loader, '_fetch_sync', return_value=('image/png; charset=binary', data)):
            self.assertEqual(await fetch_image_bytes('https://example.com/a.png'), data)

    async def test_fetch_data_url(self):
        data = png_bytes()
        url = 'data:image/png;base64,' + base64.b64encode(data).decode('ascii')
        self.assertEqual(await fetch_image_bytes(url), data)


if __name__ == '__main__':
    unittest.main()
