"""Shared fixtures for the csv2graph test suite."""
from __future__ import annotations

import os

# Headless Qt for CI; must be set before the first QApplication is created
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6.QtCore import QObject

from csv2graph.model.state import DatasetPayload, SessionState

SAMPLE_CSV = (
    "time,temperature,pressure\n"
    "0,20.5,101.3\n"
    "1,21.0,101.1\n"
    "2,22.4,100.9\n"
    "3,23.1,100.8\n"
    "4,24.8,100.2\n"
)

TINY_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mP8z8BQDwAEhQGAhKmMIQAAAABJRU5ErkJggg=="
)


class SignalListener(QObject):
    """Helper class to capture signals and their arguments."""
    def __init__(self, signal):
        super().__init__()
        self.received = []
        signal.connect(self.on_signal)

    def on_signal(self, *args):
        self.received.append(args)

    @property
    def call_count(self):
        return len(self.received)

    @property
    def last_call_args(self):
        return self.received[-1] if self.received else None


@pytest.fixture
def session(qapp):
    return SessionState()


@pytest.fixture
def payload():
    return DatasetPayload(name="sample.csv", text=SAMPLE_CSV, path="/data/sample.csv")


@pytest.fixture
def sample_csv_file(tmp_path):
    path = tmp_path / "sample.csv"
    path.write_text(SAMPLE_CSV, encoding="utf-8")
    return path
