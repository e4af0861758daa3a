"""
Input Acquisition
=================
Reads the user-selected CSV file into ``SessionState.payload`` without
blocking the GUI.

Every selection gets a new token. A read that finishes after a newer
selection was made is discarded, so only the latest selection can ever
become the payload.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from PySide6.QtCore import QObject

from csv2graph.controller.workers import FileReadWorker, read_text_file
from csv2graph.model.state import DatasetPayload, MessageKind, SessionState

logger = logging.getLogger(__name__)


class InputAcquisition(QObject):
    def __init__(self, session: SessionState,
                 reader: Callable[[str], str] = read_text_file,
                 parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.reader = reader
        self._token = 0
        self._workers: set[FileReadWorker] = set()

    @property
    def busy(self) -> bool:
        return bool(self._workers)

    def select_file(self, path: Optional[str]) -> None:
        self._token += 1
        if not path:
            logger.info("File selection cleared.")
            self.session.set_payload(None)
            return

        worker = FileReadWorker(path, self._token, reader=self.reader)
        worker.read_finished.connect(self._on_read_finished)
        worker.read_failed.connect(self._on_read_failed)
        worker.finished.connect(self._on_worker_done)
        self._workers.add(worker)
        logger.info(f"Reading file: {path}")
        worker.start()

    def wait(self, msecs: int = 5000) -> bool:
        return all(worker.wait(msecs) for worker in list(self._workers))

    def _is_current(self, token: int) -> bool:
        if token != self._token:
            logger.debug(f"Discarding stale file read (token {token}, current {self._token}).")
            return False
        return True

    def _on_read_finished(self, token: int, payload: DatasetPayload) -> None:
        if not self._is_current(token):
            return
        self.session.set_payload(payload)
        self.session.clear_message()
        self.session.set_status(f"Loaded file '{payload.name}'.")

    def _on_read_failed(self, token: int, name: str, detail: str) -> None:
        if not self._is_current(token):
            return
        self.session.set_payload(None)
        self.session.report(MessageKind.INPUT, f"Error: failed to read file '{name}'. ({detail})")
        self.session.set_status("")

    def _on_worker_done(self) -> None:
        worker = self.sender()
        if isinstance(worker, FileReadWorker):
            # finished is emitted from the thread itself, just before it exits
            worker.wait()
            self._workers.discard(worker)
            worker.deleteLater()
