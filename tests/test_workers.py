"""
Worker logic tested by calling run() directly instead of starting a thread.
"""
from unittest.mock import MagicMock

import pytest
from PySide6.QtCore import QThread

from csv2graph.controller.backend import BackendLoader, BackendLoadError
from csv2graph.controller.workers import (
    BackendLoadWorker, FileReadWorker, PlotWorker, describe_error
)
from csv2graph.model.state import DatasetPayload

from conftest import SAMPLE_CSV, SignalListener

pytestmark = pytest.mark.usefixtures("qapp")


@pytest.fixture
def mock_loader():
    loader = MagicMock(spec=BackendLoader)
    loader.name = "mock"
    loader.entry_point.return_value = "the-entry-point"
    return loader


class TestBackendLoadWorker:
    def test_all_stages_run_in_order(self, mock_loader):
        worker = BackendLoadWorker(mock_loader)
        loaded = SignalListener(worker.loaded)
        failed = SignalListener(worker.load_failed)

        worker.run()

        assert loaded.received == [("the-entry-point",)]
        assert failed.call_count == 0
        assert [c[0] for c in mock_loader.method_calls] == ["load", "start", "entry_point"]

    @pytest.mark.parametrize("stage", ["load", "start", "entry_point"])
    def test_failure_in_any_stage_is_reported(self, mock_loader, stage):
        getattr(mock_loader, stage).side_effect = BackendLoadError(f"{stage} exploded")
        worker = BackendLoadWorker(mock_loader)
        loaded = SignalListener(worker.loaded)
        failed = SignalListener(worker.load_failed)

        worker.run()

        assert loaded.call_count == 0
        assert failed.received == [(f"{stage} exploded",)]

    def test_start_receives_a_failure_callback(self, mock_loader):
        worker = BackendLoadWorker(mock_loader)
        runtime_failed = SignalListener(worker.runtime_failed)
        worker.run()

        on_failure = mock_loader.start.call_args[0][0]
        on_failure("runtime crashed")

        assert runtime_failed.received == [("runtime crashed",)]

    def test_is_qthread_subclass(self, mock_loader):
        assert isinstance(BackendLoadWorker(mock_loader), QThread)


class TestFileReadWorker:
    def test_reads_file_content(self, sample_csv_file):
        worker = FileReadWorker(str(sample_csv_file), token=3)
        finished = SignalListener(worker.read_finished)

        worker.run()

        token, payload = finished.last_call_args
        assert token == 3
        assert payload == DatasetPayload(name="sample.csv", text=SAMPLE_CSV, path=str(sample_csv_file))

    def test_byte_order_mark_is_stripped(self, tmp_path):
        path = tmp_path / "bom.csv"
        path.write_bytes("\ufeffa,b\n1,2\n".encode("utf-8"))
        worker = FileReadWorker(str(path), token=1)
        finished = SignalListener(worker.read_finished)

        worker.run()

        assert finished.last_call_args[1].text == "a,b\n1,2\n"

    def test_non_utf8_file_is_still_read(self, tmp_path):
        path = tmp_path / "latin1.csv"
        path.write_bytes("time,temp \xb0C\n0,20\n".encode("latin-1"))
        worker = FileReadWorker(str(path), token=1)
        finished = SignalListener(worker.read_finished)
        failed = SignalListener(worker.read_failed)

        worker.run()

        assert failed.call_count == 0
        assert finished.last_call_args[1].text == "time,temp \ufffdC\n0,20\n"

    def test_missing_file_reports_name(self, tmp_path):
        worker = FileReadWorker(str(tmp_path / "missing.csv"), token=7)
        finished = SignalListener(worker.read_finished)
        failed = SignalListener(worker.read_failed)

        worker.run()

        assert finished.call_count == 0
        token, name, detail = failed.last_call_args
        assert (token, name) == (7, "missing.csv")
        assert detail

    def test_custom_reader_is_used(self):
        reader = MagicMock(return_value="x,y\n")
        worker = FileReadWorker("/any/where/data.csv", token=1, reader=reader)
        finished = SignalListener(worker.read_finished)

        worker.run()

        reader.assert_called_once_with("/any/where/data.csv")
        assert finished.last_call_args[1].name == "data.csv"


class TestPlotWorker:
    def test_response_is_forwarded_untouched(self):
        entry = MagicMock(return_value={"base64Image": "abcd"})
        worker = PlotWorker(entry, "a\n1\n", '{"columns": ["a"]}')
        response = SignalListener(worker.response_ready)
        failed = SignalListener(worker.invocation_failed)

        worker.run()

        entry.assert_called_once_with("a\n1\n", '{"columns": ["a"]}')
        assert response.received == [({"base64Image": "abcd"},)]
        assert failed.call_count == 0

    def test_exception_becomes_invocation_failure(self):
        entry = MagicMock(side_effect=ValueError("Failed to parse options JSON"))
        worker = PlotWorker(entry, "", "{")
        response = SignalListener(worker.response_ready)
        failed = SignalListener(worker.invocation_failed)

        worker.run()

        assert response.call_count == 0
        assert failed.received == [("Failed to parse options JSON",)]


def test_describe_error_falls_back_to_type_name():
    assert describe_error(RuntimeError()) == "RuntimeError"
    assert describe_error(OSError("disk")) == "disk"
