"""Test helpers for the delivery subsystem."""

from tests.helpers.fakes import (
    FailingStore,
    FakeClock,
    FakeProvider,
    RecordingScheduler,
    RecordingStore,
    callback_transport,
)

__all__ = [
    "FailingStore",
    "FakeClock",
    "FakeProvider",
    "RecordingScheduler",
    "RecordingStore",
    "callback_transport",
]
