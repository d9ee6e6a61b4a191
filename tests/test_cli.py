# -*- coding: utf-8 -*-
# tests/test_cli.py
import contextlib
import io
import json
import tempfile
import unittest
import sys
import os
from PIL import Image
from PyPDF2 import PdfReader

sys.path.append(os.path.join(os.path.dirname(__file__), '..'))

from cardsheet.cli import main


class TestCli(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = self.temp_dir.name
        self.image_path = os.path.join(self.root, 'photo.png')
        Image.new('RGB', (120, 90), (240, 200, 20)).save(self.image_path)
        self.env = {'CARDSHEET_PX_PER_MM': '2'}
        self._env_backup = {k: os.environ.get(k) for k in self.env}
        os.environ.update(self.env)

    def tearDown(self):
        for key, value in self._env_backup.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
        self.temp_dir.cleanup()

    def run_cli(self, *args):
        out = io.StringIO()
        base = ['--state-dir', os.path.join(self.root, 'state'), '--log-dir', os.path.join(self.root, 'logs')]
        with contextlib.redirect_stdout(out):
            code = main(base + list(args))
        return code, out.getvalue()

    def saved_state(self):
        with open(os.path.join(self.root, 'state', 'card-sheet-state.json'), encoding='utf-8') as f:
            return json.load(f)

    def test_add_list_and_pdf(self):
        code, _ = self.run_cli('add', self.image_path, self.image_path, '--zoom', '2')
        self.assertEqual(code, 0)
        state = self.saved_state()
        self.assertEqual(len(state['cards']), 2)
        self.assertEqual(state['cards'][0]['imageState']['zoom'], 2)

        code, out = self.run_cli('list')
        self.assertEqual(code, 0)
        self.assertIn('2 card(s) on 1 page(s)', out)

        pdf_path = os.path.join(self.root, 'out.pdf')
        code, _ = self.run_cli('pdf', '--out', pdf_path)
        self.assertEqual(code, 0)
        self.assertEqual(len(PdfReader(pdf_path).pages), 1)

    def test_move_remove_and_oversize(self):
        self.run_cli('add', self.image_path, self.image_path)
        self.run_cli('move', '1', '4')
        self.assertEqual([c is None for c in self.saved_state()['cards']], [True, False, True, False])
        self.run_cli('remove', '4')
        self.assertEqual(len(self.saved_state()['cards']), 2)

        code, out = self.run_cli('oversize', '1.5')
        self.assertEqual(code, 0)
        self.assertIn('1 card(s) rebaked', out)
        self.assertEqual(self.saved_state()['layout']['oversizeMm'], 1.5)

        code, _ = self.run_cli('oversize', '40')
        self.assertEqual(code, 1)
        self.assertEqual(self.saved_state()['layout']['oversizeMm'], 1.5)

    def test_pdf_without_cards_fails(self):
        code, out = self.run_cli('pdf', '--out', os.path.join(self.root, 'empty.pdf'))
        self.assertEqual(code, 1)
        self.assertIn('at least one card', out)
        self.assertFalse(os.path.exists(os.path.join(self.root, 'empty.pdf')))

    def test_export_then_import(self):
        self.run_cli('add', self.image_path)
        code, out = self.run_cli('export', '--dir', self.root)
        self.assertEqual(code, 0)
        exported = out.splitlines()[0]
        self.run_cli('clear')
        self.assertEqual(self.saved_state()['cards'], [])

        code, _ = self.run_cli('import', exported)
        self.assertEqual(code, 0)
        self.assertEqual(len(self.saved_state()['cards']), 1)

    def test_missing_file_reports_failure(self):
        code, out = self.run_cli('add', os.path.join(self.root, 'nope.png'))
        self.assertEqual(code, 1)
        self.assertIn('Could not read', out)


if __name__ == '__main__':
    unittest.main()
