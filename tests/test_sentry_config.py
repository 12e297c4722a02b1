"""Tests for the Sentry helpers."""

from app.sentry_config import capture_exception


class TestCaptureException:

    def test_noop_without_dsn(self):
        try:
            raise KeyError("message")
        except KeyError as e:
            capture_exception(e)

    def test_noop_without_active_exception(self):
        capture_exception()
