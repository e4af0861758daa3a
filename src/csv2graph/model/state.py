"""
Session State (Data Model)
==========================
This module defines the central state of the running application.

Why is this file needed?
------------------------
1. State Management: backend readiness, the current dataset and the
   in-flight flag live in one object instead of module globals.
2. Gating: the Generate action is enabled only when the backend is ready and
   a dataset is loaded. The store recomputes that gate on every transition
   and publishes it through ``gating_changed``.
3. Decoupling: Controllers write to this object; Views only listen to its
   signals.

Classes:
    BackendHandle: Readiness of the computation backend.
    DatasetPayload: Text content of the selected file.
    UserMessage: The single diagnostic currently shown to the user.
    SessionState: The store holding all of the above.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional, TYPE_CHECKING

from PySide6.QtCore import QObject, Signal

if TYPE_CHECKING:
    from csv2graph.model.result import ImageResult

logger = logging.getLogger(__name__)

EntryPoint = Callable[[str, str], Any]


class BackendStatus(Enum):
    NOT_READY = "not_ready"
    READY = "ready"
    FAILED = "failed"


class MessageKind(Enum):
    LIFECYCLE = "lifecycle"    # backend failed to load/start, session-fatal
    INPUT = "input"            # file could not be read
    GATE = "gate"              # generate requested while not allowed
    VALIDATION = "validation"  # form rejected locally
    DOMAIN = "domain"          # backend returned {"error": ...}
    CONTRACT = "contract"      # backend returned an unrecognized shape
    INVOCATION = "invocation"  # the backend call raised


@dataclass(frozen=True)
class BackendHandle:
    status: BackendStatus = BackendStatus.NOT_READY
    entry_point: Optional[EntryPoint] = None
    name: str = ""
    error: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.status is BackendStatus.READY


@dataclass(frozen=True)
class DatasetPayload:
    name: str
    text: str
    path: Optional[str] = None


@dataclass(frozen=True)
class UserMessage:
    kind: MessageKind
    text: str


class SessionState(QObject):
    """Central state store with signals for controller/view sync."""
    backend_changed = Signal(object)
    payload_changed = Signal(object)
    generating_changed = Signal(bool)
    gating_changed = Signal(bool)
    image_changed = Signal(object)
    message_changed = Signal(object)
    status_changed = Signal(str)

    def __init__(self, parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self._backend = BackendHandle()
        self._payload: Optional[DatasetPayload] = None
        self._generating = False
        self._image: Optional[ImageResult] = None
        self._message: Optional[UserMessage] = None
        self._status = ""
        self._trigger_enabled = False

    # --- READ ACCESS ---

    @property
    def backend(self) -> BackendHandle:
        return self._backend

    @property
    def payload(self) -> Optional[DatasetPayload]:
        return self._payload

    @property
    def generating(self) -> bool:
        return self._generating

    @property
    def image(self) -> Optional[ImageResult]:
        return self._image

    @property
    def message(self) -> Optional[UserMessage]:
        return self._message

    @property
    def status(self) -> str:
        return self._status

    @property
    def gate_open(self) -> bool:
        """Backend ready and a dataset loaded."""
        return self._backend.ready and self._payload is not None

    @property
    def trigger_enabled(self) -> bool:
        return self._trigger_enabled

    # --- BACKEND (owned by BackendManager) ---

    def mark_backend_ready(self, entry_point: EntryPoint, name: str = "") -> bool:
        if self._backend.status is not BackendStatus.NOT_READY:
            logger.warning(f"Ignoring ready report for backend in state {self._backend.status.name}.")
            return False
        self._backend = BackendHandle(BackendStatus.READY, entry_point=entry_point, name=name)
        logger.info(f"Backend '{name}' is ready.")
        self.backend_changed.emit(self._backend)
        self._update_gate()
        return True

    def mark_backend_failed(self, detail: str) -> bool:
        if self._backend.status is BackendStatus.FAILED:
            logger.warning(f"Backend already failed, ignoring further failure: {detail}")
            return False
        self._backend = replace(self._backend, status=BackendStatus.FAILED,
                                entry_point=None, error=detail)
        logger.error(f"Backend failed: {detail}")
        self.backend_changed.emit(self._backend)
        self._update_gate()
        return True

    # --- DATASET (owned by InputAcquisition) ---

    def set_payload(self, payload: Optional[DatasetPayload]) -> None:
        self._payload = payload
        self.payload_changed.emit(payload)
        self._update_gate()

    # --- GENERATION CYCLE (owned by PlotOrchestrator) ---

    def set_generating(self, generating: bool) -> None:
        if generating != self._generating:
            self._generating = generating
            self.generating_changed.emit(generating)
            self._update_gate()

    def set_image(self, image: Optional[ImageResult]) -> None:
        self._image = image
        self.image_changed.emit(image)

    # --- USER FEEDBACK ---

    def report(self, kind: MessageKind, text: str) -> None:
        """Show ``text`` as the single visible diagnostic."""
        if self._is_fatal_message_shown() and kind is not MessageKind.LIFECYCLE:
            logger.warning(f"Backend failure stays visible, not showing: {text}")
            return
        self._message = UserMessage(kind, text)
        self.message_changed.emit(self._message)

    def clear_message(self) -> None:
        # A lifecycle failure stays visible for the rest of the session
        if self._message is None or self._is_fatal_message_shown():
            return
        self._message = None
        self.message_changed.emit(None)

    def set_status(self, text: str) -> None:
        self._status = text
        self.status_changed.emit(text)

    def _is_fatal_message_shown(self) -> bool:
        return self._message is not None and self._message.kind is MessageKind.LIFECYCLE

    def _update_gate(self) -> None:
        enabled = self.gate_open and not self._generating
        if enabled != self._trigger_enabled:
            self._trigger_enabled = enabled
            self.gating_changed.emit(enabled)
