"""
Background Workers (Threading)
==============================
This module contains QThread subclasses for every step that may take an
unpredictable amount of time.

Why is this file needed?
------------------------
1. Responsiveness: loading the backend, reading a large CSV file and
   rendering a plot would freeze the GUI on the main thread.
2. Signals: results travel back to the GUI thread through Qt signals, so
   the session state is only ever mutated on the GUI thread.

Classes:
    BackendLoadWorker: Runs the two-stage backend loader.
    FileReadWorker: Reads a file as text.
    PlotWorker: Calls the backend entry point once.
"""
from __future__ import annotations

import logging
import os
from typing import Callable, TYPE_CHECKING

from PySide6.QtCore import QThread, Signal

from csv2graph.model.state import DatasetPayload

if TYPE_CHECKING:
    from csv2graph.controller.backend import BackendLoader
    from csv2graph.model.state import EntryPoint

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    return str(error) or type(error).__name__


def read_text_file(path: str) -> str:
    """Read as UTF-8; undecodable bytes become U+FFFD instead of failing the read."""
    with open(path, mode='r', encoding='utf-8-sig', errors='replace') as f:
        return f.read()


class BackendLoadWorker(QThread):
    """Instantiates, starts and resolves the backend in the background."""
    loaded = Signal(object)    # the resolved entry point
    load_failed = Signal(str)
    runtime_failed = Signal(str)

    def __init__(self, loader: BackendLoader) -> None:
        super().__init__()
        self.loader = loader

    def run(self) -> None:
        try:
            logger.info(f"Loading backend '{self.loader.name}'...")
            self.loader.load()
            self.loader.start(self._report_runtime_failure)
            entry_point = self.loader.entry_point()
        except Exception as e:
            logger.error(f"Error in BackendLoadWorker: {e}")
            self.load_failed.emit(describe_error(e))
            return
        self.loaded.emit(entry_point)

    def _report_runtime_failure(self, detail: str) -> None:
        # May be called from any thread, long after run() returned
        self.runtime_failed.emit(detail)


class FileReadWorker(QThread):
    """Reads one selected file. ``token`` identifies the selection."""
    read_finished = Signal(int, object)     # token, DatasetPayload
    read_failed = Signal(int, str, str)     # token, file name, detail

    def __init__(self, path: str, token: int,
                 reader: Callable[[str], str] = read_text_file) -> None:
        super().__init__()
        self.path = path
        self.token = token
        self.reader = reader

    def run(self) -> None:
        name = os.path.basename(self.path)
        try:
            text = self.reader(self.path)
        except Exception as e:
            logger.error(f"File Reading Error ({self.path}): {e}")
            self.read_failed.emit(self.token, name, describe_error(e))
            return
        self.read_finished.emit(self.token, DatasetPayload(name=name, text=text, path=self.path))


class PlotWorker(QThread):
    """Invokes the backend entry point with the dataset and serialized options."""
    response_ready = Signal(object)
    invocation_failed = Signal(str)

    def __init__(self, entry_point: EntryPoint, dataset_text: str, options_json: str) -> None:
        super().__init__()
        self.entry_point = entry_point
        self.dataset_text = dataset_text
        self.options_json = options_json

    def run(self) -> None:
        try:
            logger.debug(f"Calling backend with options: {self.options_json}")
            response = self.entry_point(self.dataset_text, self.options_json)
        except Exception as e:
            logger.exception("Error calling the backend entry point")
            self.invocation_failed.emit(describe_error(e))
            return
        self.response_ready.emit(response)
