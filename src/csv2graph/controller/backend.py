"""
Computation Backend Lifecycle
=============================
Loads the plotting backend exactly once per session and publishes a single
readiness transition into ``SessionState``.

Two loading protocols are supported behind one ``BackendLoader`` contract:

* ``module``  - import a module, call its optional ``init()`` and use its
  ``generate_plot`` function (single-call init).
* ``runtime`` - instantiate a runtime class, ``start()`` it and use its
  bound ``generate_plot`` method (instantiate, then run).

Both go through the same three stages: ``load()`` -> ``start(on_failure)``
-> ``entry_point()``. Readiness is published only after all three succeed,
and ``on_failure`` may still downgrade a ready backend to failed later.
"""
from __future__ import annotations

import importlib
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from PySide6.QtCore import QObject

from csv2graph.controller.workers import BackendLoadWorker
from csv2graph.model.state import EntryPoint, MessageKind, SessionState

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_POINT = "generate_plot"

FailureCallback = Callable[[str], None]


class BackendLoadError(RuntimeError):
    """The backend could not be loaded, started or resolved."""


class BackendLoader(ABC):
    KEY: str = ""

    def __init__(self, target: str, entry_point: str = DEFAULT_ENTRY_POINT) -> None:
        self.target = target
        self.entry_point_name = entry_point

    @property
    def name(self) -> str:
        return self.target

    @abstractmethod
    def load(self) -> None:
        """Import / instantiate the backend."""

    def start(self, on_failure: FailureCallback) -> None:
        """Optional secondary startup step. ``on_failure`` reports late crashes."""

    @abstractmethod
    def entry_point(self) -> EntryPoint:
        """Return the callable ``(dataset_text, options_json) -> response``."""

    def _require_callable(self, owner: Any, owner_name: str) -> EntryPoint:
        entry = getattr(owner, self.entry_point_name, None)
        if not callable(entry):
            raise BackendLoadError(
                f"Entry point '{self.entry_point_name}' is not available in '{owner_name}'."
            )
        return entry


_REGISTRY: dict[str, type[BackendLoader]] = {}


def register_loader(cls: type[BackendLoader]) -> type[BackendLoader]:
    """Class decorator to register a loader by its KEY."""
    key = getattr(cls, "KEY", None)
    if not key:
        raise ValueError(f"{cls.__name__} must define KEY")
    _REGISTRY[key] = cls
    return cls


def create_loader(kind: str, target: str, entry_point: str = DEFAULT_ENTRY_POINT) -> BackendLoader:
    cls = _REGISTRY.get(kind)
    if not cls:
        raise KeyError(f"No backend loader registered for protocol '{kind}'")
    return cls(target, entry_point=entry_point)


def list_protocols() -> list[str]:
    return list(_REGISTRY.keys())


@register_loader
class ModuleBackendLoader(BackendLoader):
    """Single-call init: ``import target; target.init()``."""
    KEY = "module"

    def __init__(self, target: str, entry_point: str = DEFAULT_ENTRY_POINT,
                 init: str = "init") -> None:
        super().__init__(target, entry_point)
        self.init_name = init
        self._module: Any = None

    def load(self) -> None:
        try:
            module = importlib.import_module(self.target)
        except ImportError as e:
            raise BackendLoadError(f"Cannot import backend module '{self.target}': {e}") from e

        init = getattr(module, self.init_name, None)
        if callable(init):
            init()
        self._module = module

    def entry_point(self) -> EntryPoint:
        if self._module is None:
            raise BackendLoadError(f"Backend module '{self.target}' has not been loaded.")
        return self._require_callable(self._module, self.target)


@register_loader
class RuntimeBackendLoader(BackendLoader):
    """Two-phase init: instantiate ``package.module:Class`` then ``start()`` it."""
    KEY = "runtime"

    def __init__(self, target: str, entry_point: str = DEFAULT_ENTRY_POINT) -> None:
        super().__init__(target, entry_point)
        self._runtime: Any = None

    def load(self) -> None:
        module_name, _, attr = self.target.partition(":")
        if not attr:
            raise BackendLoadError(f"Runtime target must look like 'package.module:Class', got '{self.target}'.")
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise BackendLoadError(f"Cannot import backend module '{module_name}': {e}") from e

        factory = getattr(module, attr, None)
        if not callable(factory):
            raise BackendLoadError(f"'{attr}' is not defined in '{module_name}'.")
        self._runtime = factory()

    def start(self, on_failure: FailureCallback) -> None:
        if self._runtime is None:
            raise BackendLoadError(f"Backend runtime '{self.target}' has not been instantiated.")
        start = getattr(self._runtime, "start", None)
        if callable(start):
            start(on_failure)

    def entry_point(self) -> EntryPoint:
        if self._runtime is None:
            raise BackendLoadError(f"Backend runtime '{self.target}' has not been instantiated.")
        return self._require_callable(self._runtime, self.target)


class BackendManager(QObject):
    """Owns the backend handle inside ``SessionState``."""

    def __init__(self, session: SessionState, loader: BackendLoader,
                 parent: Optional[QObject] = None) -> None:
        super().__init__(parent)
        self.session = session
        self.loader = loader
        self._worker: Optional[BackendLoadWorker] = None

    @property
    def started(self) -> bool:
        return self._worker is not None

    def initialize(self) -> None:
        """Start loading the backend. Only the first call has an effect."""
        if self._worker is not None:
            logger.warning("Backend initialization already requested, ignoring.")
            return

        self.session.set_status("Initializing the plotting backend...")
        # Kept for the whole session: late runtime failures arrive through it
        self._worker = BackendLoadWorker(self.loader)
        self._worker.loaded.connect(self._on_loaded)
        self._worker.load_failed.connect(self._on_failed)
        self._worker.runtime_failed.connect(self._on_failed)
        self._worker.start()

    def wait(self, msecs: int = 5000) -> bool:
        if self._worker is None:
            return True
        return self._worker.wait(msecs)

    def _on_loaded(self, entry_point: EntryPoint) -> None:
        if self.session.mark_backend_ready(entry_point, name=self.loader.name):
            self.session.set_status("Ready. Select a CSV file.")

    def _on_failed(self, detail: str) -> None:
        if not self.session.mark_backend_failed(detail):
            return
        self.session.report(
            MessageKind.LIFECYCLE,
            f"Error: failed to initialize the plotting backend. ({detail})",
        )
        self.session.set_status("Backend initialization error")
