import threading

import pytest

from csv2graph.controller.input import InputAcquisition
from csv2graph.model.state import MessageKind

from conftest import SAMPLE_CSV


@pytest.fixture
def acquisition(session):
    acquisition = InputAcquisition(session)
    yield acquisition
    acquisition.wait()


def test_selected_file_becomes_payload(qtbot, session, acquisition, sample_csv_file):
    with qtbot.waitSignal(session.payload_changed, timeout=5000):
        acquisition.select_file(str(sample_csv_file))

    assert session.payload.name == "sample.csv"
    assert session.payload.text == SAMPLE_CSV
    assert session.status == "Loaded file 'sample.csv'."


def test_unreadable_file_reports_and_leaves_no_payload(qtbot, session, acquisition, tmp_path):
    with qtbot.waitSignal(session.message_changed, timeout=5000):
        acquisition.select_file(str(tmp_path / "gone.csv"))

    assert session.payload is None
    assert session.message.kind is MessageKind.INPUT
    assert session.message.text.startswith("Error: failed to read file 'gone.csv'.")


def test_failed_read_replaces_previous_payload(qtbot, session, acquisition, sample_csv_file, tmp_path):
    with qtbot.waitSignal(session.payload_changed, timeout=5000):
        acquisition.select_file(str(sample_csv_file))
    with qtbot.waitSignal(session.message_changed, timeout=5000):
        acquisition.select_file(str(tmp_path / "gone.csv"))

    assert session.payload is None
    assert session.status == ""


@pytest.mark.parametrize("path", [None, ""])
def test_empty_selection_clears_payload(qtbot, session, acquisition, sample_csv_file, path):
    with qtbot.waitSignal(session.payload_changed, timeout=5000):
        acquisition.select_file(str(sample_csv_file))

    acquisition.select_file(path)

    assert session.payload is None
    qtbot.waitUntil(lambda: not acquisition.busy, timeout=5000)


def test_successful_read_clears_input_error(qtbot, session, acquisition, sample_csv_file, tmp_path):
    with qtbot.waitSignal(session.message_changed, timeout=5000):
        acquisition.select_file(str(tmp_path / "gone.csv"))
    with qtbot.waitSignal(session.payload_changed, timeout=5000):
        acquisition.select_file(str(sample_csv_file))

    assert session.message is None


def test_last_selection_wins(qtbot, session):
    release_slow = threading.Event()

    def reader(path):
        if path == "slow.csv":
            release_slow.wait(5)
            return "slow\n1\n"
        return "fast\n2\n"

    acquisition = InputAcquisition(session, reader=reader)
    acquisition.select_file("slow.csv")
    acquisition.select_file("fast.csv")

    qtbot.waitUntil(lambda: session.payload is not None, timeout=5000)
    release_slow.set()
    qtbot.waitUntil(lambda: not acquisition.busy, timeout=5000)

    assert session.payload.name == "fast.csv"
    assert session.payload.text == "fast\n2\n"


def test_non_utf8_file_becomes_payload(qtbot, session, acquisition, tmp_path):
    path = tmp_path / "excel_export.csv"
    path.write_bytes("time,temp \xb0C\n0,20\n".encode("latin-1"))

    with qtbot.waitSignal(session.payload_changed, timeout=5000):
        acquisition.select_file(str(path))

    assert session.payload is not None
    assert session.payload.text.startswith("time,temp ")
    assert session.message is None
