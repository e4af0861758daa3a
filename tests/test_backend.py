import sys
import types

import pytest

from csv2graph.controller.backend import (
    BackendLoadError, BackendManager, ModuleBackendLoader, RuntimeBackendLoader,
    create_loader, list_protocols, register_loader
)
from csv2graph.model.state import BackendStatus, MessageKind


def make_module(monkeypatch, name, **attrs):
    module = types.ModuleType(name)
    for key, value in attrs.items():
        setattr(module, key, value)
    monkeypatch.setitem(sys.modules, name, module)
    return module


class FakeRuntime:
    instances = []

    def __init__(self):
        self.started = False
        self.on_failure = None
        FakeRuntime.instances.append(self)

    def start(self, on_failure):
        self.started = True
        self.on_failure = on_failure

    def generate_plot(self, text, options):
        return {"base64Image": "abcd"}


class CrashingRuntime(FakeRuntime):
    def start(self, on_failure):
        raise RuntimeError("go runtime exited")


class TestRegistry:
    def test_builtin_protocols(self):
        assert {"module", "runtime"} <= set(list_protocols())
        assert isinstance(create_loader("module", "pkg.mod"), ModuleBackendLoader)
        assert isinstance(create_loader("runtime", "pkg.mod:Cls"), RuntimeBackendLoader)

    def test_unknown_protocol(self):
        with pytest.raises(KeyError, match="wasm"):
            create_loader("wasm", "x")

    def test_loader_without_key_cannot_register(self):
        class Nameless(ModuleBackendLoader):
            KEY = ""

        with pytest.raises(ValueError, match="must define KEY"):
            register_loader(Nameless)


class TestModuleBackendLoader:
    def test_single_call_init_then_entry_point(self, monkeypatch):
        calls = []
        make_module(monkeypatch, "fake_backend_ok",
                    init=lambda: calls.append("init"),
                    generate_plot=lambda text, options: {"error": "x"})
        loader = ModuleBackendLoader("fake_backend_ok")

        loader.load()
        loader.start(lambda detail: None)
        entry = loader.entry_point()

        assert calls == ["init"]
        assert entry("", "{}") == {"error": "x"}

    def test_init_is_optional(self, monkeypatch):
        make_module(monkeypatch, "fake_backend_noinit", generate_plot=lambda t, o: {})
        loader = ModuleBackendLoader("fake_backend_noinit")
        loader.load()
        assert callable(loader.entry_point())

    def test_missing_module(self):
        loader = ModuleBackendLoader("csv2graph_no_such_backend")
        with pytest.raises(BackendLoadError, match="Cannot import"):
            loader.load()

    def test_init_error_propagates(self, monkeypatch):
        def init():
            raise RuntimeError("font registration failed")

        make_module(monkeypatch, "fake_backend_badinit", init=init, generate_plot=lambda t, o: {})
        with pytest.raises(RuntimeError, match="font registration failed"):
            ModuleBackendLoader("fake_backend_badinit").load()

    def test_entry_point_must_be_callable(self, monkeypatch):
        make_module(monkeypatch, "fake_backend_noentry", generate_plot="not callable")
        loader = ModuleBackendLoader("fake_backend_noentry")
        loader.load()
        with pytest.raises(BackendLoadError, match="'generate_plot' is not available"):
            loader.entry_point()

    def test_entry_point_before_load(self):
        with pytest.raises(BackendLoadError, match="has not been loaded"):
            ModuleBackendLoader("whatever").entry_point()


class TestRuntimeBackendLoader:
    def test_instantiate_start_resolve(self, monkeypatch):
        make_module(monkeypatch, "fake_runtime_mod", FakeRuntime=FakeRuntime)
        loader = RuntimeBackendLoader("fake_runtime_mod:FakeRuntime")
        callback = lambda detail: None

        loader.load()
        loader.start(callback)
        entry = loader.entry_point()

        runtime = FakeRuntime.instances[-1]
        assert runtime.started
        assert runtime.on_failure is callback
        assert entry("", "{}") == {"base64Image": "abcd"}

    def test_target_needs_class(self):
        with pytest.raises(BackendLoadError, match="package.module:Class"):
            RuntimeBackendLoader("fake_runtime_mod").load()

    def test_unknown_class(self, monkeypatch):
        make_module(monkeypatch, "fake_runtime_empty")
        with pytest.raises(BackendLoadError, match="'Missing' is not defined"):
            RuntimeBackendLoader("fake_runtime_empty:Missing").load()

    def test_start_failure_propagates(self, monkeypatch):
        make_module(monkeypatch, "fake_runtime_crash", CrashingRuntime=CrashingRuntime)
        loader = RuntimeBackendLoader("fake_runtime_crash:CrashingRuntime")
        loader.load()
        with pytest.raises(RuntimeError, match="go runtime exited"):
            loader.start(lambda detail: None)


class TestBackendManager:
    def test_initialize_publishes_readiness(self, qtbot, session, monkeypatch):
        make_module(monkeypatch, "fake_backend_mgr", generate_plot=lambda t, o: {})
        manager = BackendManager(session, ModuleBackendLoader("fake_backend_mgr"))

        with qtbot.waitSignal(session.backend_changed, timeout=5000):
            manager.initialize()

        assert session.backend.ready
        assert session.backend.name == "fake_backend_mgr"
        assert session.status == "Ready. Select a CSV file."
        assert session.message is None
        manager.wait()

    def test_load_failure_is_session_fatal(self, qtbot, session, payload):
        manager = BackendManager(session, ModuleBackendLoader("csv2graph_no_such_backend"))

        with qtbot.waitSignal(session.backend_changed, timeout=5000):
            manager.initialize()
        session.set_payload(payload)

        assert session.backend.status is BackendStatus.FAILED
        assert not session.trigger_enabled
        assert session.message.kind is MessageKind.LIFECYCLE
        assert "csv2graph_no_such_backend" in session.message.text
        assert session.status == "Backend initialization error"
        manager.wait()

    def test_startup_failure_after_instantiation(self, qtbot, session, monkeypatch):
        make_module(monkeypatch, "fake_runtime_mgr_crash", CrashingRuntime=CrashingRuntime)
        manager = BackendManager(session, RuntimeBackendLoader("fake_runtime_mgr_crash:CrashingRuntime"))

        with qtbot.waitSignal(session.backend_changed, timeout=5000):
            manager.initialize()

        assert session.backend.status is BackendStatus.FAILED
        assert "go runtime exited" in session.message.text
        manager.wait()

    def test_late_runtime_failure_downgrades_readiness(self, qtbot, session, payload, monkeypatch):
        make_module(monkeypatch, "fake_runtime_mgr", FakeRuntime=FakeRuntime)
        manager = BackendManager(session, RuntimeBackendLoader("fake_runtime_mgr:FakeRuntime"))
        with qtbot.waitSignal(session.backend_changed, timeout=5000):
            manager.initialize()
        manager.wait()
        session.set_payload(payload)
        assert session.trigger_enabled

        with qtbot.waitSignal(session.backend_changed, timeout=5000):
            FakeRuntime.instances[-1].on_failure("runtime panicked")

        assert session.backend.status is BackendStatus.FAILED
        assert not session.trigger_enabled
        assert session.message.kind is MessageKind.LIFECYCLE
        assert "runtime panicked" in session.message.text

    def test_initialize_runs_once(self, qtbot, session, monkeypatch):
        calls = []
        make_module(monkeypatch, "fake_backend_once",
                    init=lambda: calls.append(1), generate_plot=lambda t, o: {})
        manager = BackendManager(session, ModuleBackendLoader("fake_backend_once"))

        with qtbot.waitSignal(session.backend_changed, timeout=5000):
            manager.initialize()
        manager.initialize()
        manager.wait()

        assert manager.started
        assert calls == [1]
