from __future__ import annotations

import sys
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

from starlette.requests import Request

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from boxup.utils import access_log
from boxup.utils.errors import exception_summary


class LogfmtTests(unittest.TestCase):
    def test_quotes_and_escapes(self):
        line = access_log.to_logfmt(
            [
                ("kind", "http"),
                ("status", 200),
                ("ok", True),
                ("ua", 'Mozilla/5.0 "x"'),
                ("query", None),
            ]
        )
        self.assertEqual(line, 'kind=http status=200 ok=true ua="Mozilla/5.0 \\"x\\""')

    def test_control_characters_are_escaped(self):
        value = access_log.logfmt_value("a\nb")
        self.assertNotIn("\n", value)
        self.assertEqual(value, '"a\\\\nb"')

    def test_should_ignore_exact_paths(self):
        with patch.object(access_log.settings, "access_log_ignore_paths", "/health, /"):
            self.assertTrue(access_log.should_ignore("/health"))
            self.assertTrue(access_log.should_ignore("/"))
            self.assertFalse(access_log.should_ignore("/api/entries"))


class AppendLineTests(unittest.IsolatedAsyncioTestCase):
    async def test_writes_daily_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            with patch.object(access_log.settings, "access_log_dir", tmp):
                now = datetime(2026, 3, 1, 9, 30).astimezone()
                path = await access_log.append_line("kind=http status=200\n", now=now)
                await access_log.append_line("kind=http status=404", now=now)

                self.assertEqual(path, Path(tmp) / "2026-03-01.logs")
                self.assertEqual(
                    path.read_text(encoding="utf-8").splitlines(),
                    ["kind=http status=200", "kind=http status=404"],
                )


def _request(path: str = "/api/entries", query: bytes = b"q=cat") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "scheme": "http",
            "path": path,
            "root_path": "",
            "query_string": query,
            "headers": [
                (b"user-agent", b"curl/8.5"),
                (b"x-forwarded-for", b"10.0.0.1, 10.0.0.2"),
            ],
            "client": ("127.0.0.1", 50000),
            "server": ("testserver", 80),
        }
    )


class HttpRequestLogTests(unittest.IsolatedAsyncioTestCase):
    async def test_line_carries_request_id_and_hides_query_by_default(self):
        with tempfile.TemporaryDirectory() as tmp:
            with patch.object(access_log.settings, "access_log_dir", tmp), \
                    patch.object(access_log.settings, "access_log_enabled", True), \
                    patch.object(access_log.settings, "access_log_include_query", False):
                await access_log.log_http_request(
                    _request(),
                    status_code=200,
                    duration_ms=12,
                    request_id="abc123",
                )
                lines = access_log.daily_log_path().read_text(encoding="utf-8").splitlines()

        self.assertEqual(len(lines), 1)
        self.assertIn(" rid=abc123 method=GET path=/api/entries status=200 dur_ms=12 ip=10.0.0.1 ua=curl/8.5", lines[0])
        self.assertNotIn("query=", lines[0])
        self.assertNotIn("error=", lines[0])

    async def test_query_included_when_enabled(self):
        with patch.object(access_log.settings, "access_log_include_query", True):
            record = access_log.build_record(_request(), status_code=404, duration_ms=1, error="NotFound")
        line = record.to_line()
        self.assertIn('query="q=cat"', line)
        self.assertTrue(line.endswith("error=NotFound"))

    async def test_ignored_paths_write_nothing(self):
        with tempfile.TemporaryDirectory() as tmp:
            with patch.object(access_log.settings, "access_log_dir", tmp), \
                    patch.object(access_log.settings, "access_log_enabled", True), \
                    patch.object(access_log.settings, "access_log_ignore_paths", "/health"):
                await access_log.log_http_request(_request("/health", b""), status_code=200, duration_ms=0)
                self.assertFalse(access_log.daily_log_path().exists())


class ExceptionSummaryTests(unittest.TestCase):
    def test_truncates_and_flattens(self):
        summary = exception_summary(ValueError("line1\nline2 " + "x" * 50), max_len=12)
        self.assertEqual(summary, "ValueError: line1 line2 …")

    def test_zero_length_keeps_type_only(self):
        self.assertEqual(exception_summary(RuntimeError("secret"), max_len=0), "RuntimeError")


if __name__ == "__main__":
    unittest.main()
