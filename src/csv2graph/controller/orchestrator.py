"""
Plot Request Orchestrator
=========================
The gated request/response cycle behind the Generate button.

States:
    Idle(disabled) -> Idle(enabled)   backend ready and a dataset loaded
    Idle(enabled)  -> Generating      user trigger, request valid
    Generating     -> Idle(enabled)   image or message attached

The gate itself lives in ``SessionState``; this class reads the form,
validates it, runs the backend call in a ``PlotWorker`` and turns the
response into an image or exactly one user-visible message.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject, Signal

from csv2graph.controller.workers import PlotWorker
from csv2graph.model.request import (
    PlotFormState, RequestValidationError, ValidationPolicy, build_plot_request
)
from csv2graph.model.result import (
    BackendErrorResult, ImageResult, InvocationFailure, MalformedResult, interpret_response
)
from csv2graph.model.state import MessageKind, SessionState

logger = logging.getLogger(__name__)

GATE_CLOSED_MESSAGE = "The plotting backend is not ready or no CSV file is selected."
CONTRACT_VIOLATION_MESSAGE = (
    "Unexpected error: the backend returned an invalid response "
    "(neither an image nor an error)."
)
NO_RESULT_DETAIL = "the backend call ended without a result."


class PlotOrchestrator(QObject):
    generation_started = Signal(object)   # PlotRequest
    generation_finished = Signal(object)  # PlotResult or InvocationFailure

    def __init__(self, session: SessionState,
                 form_provider: Callable[[], PlotFormState],
                 policy: ValidationPolicy = ValidationPolicy(),
                 parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.form_provider = form_provider
        self.policy = policy
        self._workers: set[PlotWorker] = set()
        self._active: Optional[PlotWorker] = None

    def generate(self) -> bool:
        """
        Start one generation cycle.

        Returns:
            True if the backend call was started, False if the trigger was
            refused (gate closed, cycle in flight, or invalid form).
        """
        if self.session.generating:
            logger.warning("A plot is already being generated, ignoring trigger.")
            return False
        if not self.session.gate_open:
            self.session.report(MessageKind.GATE, GATE_CLOSED_MESSAGE)
            return False

        self.session.clear_message()
        try:
            request = build_plot_request(self.form_provider(), self.policy)
        except RequestValidationError as e:
            logger.info(f"Plot request rejected: {e}")
            self.session.report(MessageKind.VALIDATION, str(e))
            self.session.set_status("")
            return False

        payload = self.session.payload
        entry_point = self.session.backend.entry_point

        self.session.set_image(None)
        self.session.set_status("Generating plot...")
        self.session.set_generating(True)

        logger.info(f"Generating plot for '{payload.name}' with options {request.to_options()}")
        worker = PlotWorker(entry_point, payload.text, request.to_json())
        worker.response_ready.connect(self._on_response)
        worker.invocation_failed.connect(self._on_invocation_failed)
        worker.finished.connect(self._on_worker_done)
        self._workers.add(worker)
        self._active = worker
        self.generation_started.emit(request)
        worker.start()
        return True

    def wait(self, msecs: int = 5000) -> bool:
        return all(worker.wait(msecs) for worker in list(self._workers))

    def _on_response(self, raw: Any) -> None:
        result = interpret_response(raw)
        try:
            if isinstance(result, ImageResult):
                self.session.set_status("Plot generated.")
                # Set last: a view that cannot show the image reports over the status
                self.session.set_image(result)
            elif isinstance(result, BackendErrorResult):
                logger.error(f"Backend Error: {result.message}")
                self.session.report(MessageKind.DOMAIN, result.message)
                self.session.set_status("")
            elif isinstance(result, MalformedResult):
                logger.error(f"Invalid result structure ({result.reason}): {raw!r:.200}")
                self.session.report(MessageKind.CONTRACT, CONTRACT_VIOLATION_MESSAGE)
                self.session.set_status("")
        finally:
            self._finish(result)

    def _on_invocation_failed(self, detail: str) -> None:
        failure = InvocationFailure(detail)
        try:
            self.session.report(MessageKind.INVOCATION, f"Runtime error: {detail}")
            self.session.set_status("")
        finally:
            self._finish(failure)

    def _finish(self, outcome: object) -> None:
        self._active = None
        self.session.set_generating(False)
        self.generation_finished.emit(outcome)

    def _on_worker_done(self) -> None:
        worker = self.sender()
        if isinstance(worker, PlotWorker):
            # finished is emitted from the thread itself, just before it exits
            worker.wait()
            if worker is self._active:
                # run() ended without emitting a response or a failure
                logger.error("Backend call ended without a result.")
                self._on_invocation_failed(NO_RESULT_DETAIL)
            self._workers.discard(worker)
            worker.deleteLater()
