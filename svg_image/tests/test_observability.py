from __future__ import annotations

import json
from pathlib import Path
import tempfile

from django.test import SimpleTestCase, override_settings

from svg_image.observability import record_metric


class RecordMetricTests(SimpleTestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = Path(self.tmp.name) / "metrics" / "telemetry.ndjson"

    def tearDown(self):
        self.tmp.cleanup()

    def test_appends_json_lines_without_empty_fields(self):
        with override_settings(SVG_IMAGE_METRICS_PATH=str(self.path)):
            record_metric("svg_image.file_unavailable", file_id="7", reason="missing", file_uri=None)
            record_metric("svg_image.sanitization_failed", file_id="8")
        lines = self.path.read_text(encoding="utf-8").splitlines()
        self.assertEqual(len(lines), 2)
        first = json.loads(lines[0])
        self.assertEqual(first["event"], "svg_image.file_unavailable")
        self.assertEqual(first["file_id"], "7")
        self.assertNotIn("file_uri", first)
        self.assertTrue(first["ts"].endswith("Z"))

    def test_rotates_when_file_grows_past_limit(self):
        with override_settings(SVG_IMAGE_METRICS_PATH=str(self.path), SVG_IMAGE_METRICS_MAX_BYTES=10):
            record_metric("first")
            record_metric("second")
        backup = self.path.with_name("telemetry.ndjson.1")
        self.assertTrue(backup.exists())
        self.assertIn("first", backup.read_text(encoding="utf-8"))
        self.assertIn("second", self.path.read_text(encoding="utf-8"))

    def test_disabled_when_path_is_empty(self):
        with override_settings(SVG_IMAGE_METRICS_PATH=""):
            record_metric("ignored")
        self.assertFalse(self.path.exists())
