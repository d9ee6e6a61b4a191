# -*- coding: utf-8 -*-
# tests/test_preview.py
import unittest
import sys
import os
from io import BytesIO
from PIL import Image

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from cardsheet.config import CardSheetConfig
from cardsheet.geometry import compute_geometry
from cardsheet.layout_calculator import SheetPaginator
from cardsheet.models import CardSlot, SheetLayout
from cardsheet.preview import render_sheet_preview
from cardsheet.renderer import CardBaker
from cardsheet.transform import reset_view


class TestSheetPreview(unittest.TestCase):

    def setUp(self):
        config = CardSheetConfig(px_per_mm=2)
        geometry = compute_geometry(0, config)
        self.paginator = SheetPaginator(SheetLayout(), geometry.label_width_mm, geometry.label_height_mm)
        image = Image.new('RGBA', (50, 50), (0, 160, 0, 255))
        self.raster = CardBaker(config).bake(image, reset_view(50, 50, *geometry.canvas_size), geometry)

    def test_preview_png_size(self):
        slots = [CardSlot('a', self.raster), None, CardSlot('c', self.raster)]
        png = render_sheet_preview(slots, self.paginator, width_px=210)
        with Image.open(BytesIO(png)) as img:
            self.assertEqual(img.format, 'PNG')
            self.assertEqual(img.size, (210, 297))

    def test_card_pixels_land_in_top_left_cell(self):
        png = render_sheet_preview([CardSlot('a', self.raster)], self.paginator, width_px=420)
        with Image.open(BytesIO(png)) as img:
            placement = SheetPaginator.scale_to_container(self.paginator.preview_layout(1)[0], *img.size)
            centre = (int(placement.x + placement.width / 2), int(placement.y + placement.height / 2))
            r, g, b = img.convert('RGB').getpixel(centre)
            self.assertGreater(g, r + 60)

    def test_unreadable_raster_drawn_as_empty(self):
        slots = [CardSlot('bad', 'data:image/jpeg;base64,AAAA')]
        png = render_sheet_preview(slots, self.paginator, width_px=100)
        self.assertTrue(png.startswith(b'\x89PNG'))


if __name__ == '__main__':
    unittest.main()
