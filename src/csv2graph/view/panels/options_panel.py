"""
Plot Options Control Panel
"""
import os

from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QLineEdit, QGroupBox, QFormLayout,
    QCheckBox, QFileDialog
)
from PySide6.QtCore import Signal, Qt

from csv2graph.model.request import DEFAULT_SIZE, DEFAULT_TITLE, PlotFormState


class OptionsPanel(QWidget):
    # Emitted with the chosen path, or "" when the dialog was cancelled
    file_selected = Signal(str)
    generate_requested = Signal()

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)

        layout = QVBoxLayout(self)

        # --- Input File ---
        grp_file = QGroupBox("CSV File")
        file_row = QHBoxLayout(grp_file)
        self.btn_open = QPushButton("Select CSV...")
        self.btn_open.clicked.connect(self.on_open_clicked)
        file_row.addWidget(self.btn_open)

        self.lbl_file = QLabel("No file selected.")
        self.lbl_file.setStyleSheet("color: gray;")
        file_row.addWidget(self.lbl_file, 1)
        layout.addWidget(grp_file)

        # --- Plot Settings ---
        grp = QGroupBox("Plot Settings")
        form = QFormLayout(grp)

        self.edit_columns = QLineEdit()
        self.edit_columns.setPlaceholderText("e.g. temperature,pressure")
        form.addRow("Columns:", self.edit_columns)

        self.edit_title = QLineEdit()
        self.edit_title.setPlaceholderText(DEFAULT_TITLE)
        form.addRow("Title:", self.edit_title)

        self.edit_size = QLineEdit()
        self.edit_size.setPlaceholderText(DEFAULT_SIZE)
        form.addRow("Size (WxH):", self.edit_size)

        self.edit_range = QLineEdit()
        self.edit_range.setPlaceholderText("no limit")
        form.addRow("Max X value:", self.edit_range)

        self.edit_skip = QLineEdit()
        self.edit_skip.setPlaceholderText("1")
        form.addRow("Plot every Nth row:", self.edit_skip)

        self.chk_xdata = QCheckBox("First column holds X values")
        form.addRow("", self.chk_xdata)

        self.edit_xscale = QLineEdit()
        self.edit_xscale.setPlaceholderText("START,END")
        form.addRow("X scale:", self.edit_xscale)

        layout.addWidget(grp)

        # --- Actions ---
        self.btn_generate = QPushButton("Generate Plot")
        self.btn_generate.setMinimumHeight(40)
        self.btn_generate.setEnabled(False)
        self.btn_generate.clicked.connect(self.on_generate_clicked)
        layout.addWidget(self.btn_generate)

        layout.addStretch()

    def form_state(self) -> PlotFormState:
        """Snapshot of the form as typed."""
        return PlotFormState(
            columns=self.edit_columns.text(),
            title=self.edit_title.text(),
            size=self.edit_size.text(),
            max_range=self.edit_range.text(),
            skip=self.edit_skip.text(),
            xdata=self.chk_xdata.isChecked(),
            xscale=self.edit_xscale.text(),
        )

    def set_generate_enabled(self, enabled: bool) -> None:
        self.btn_generate.setEnabled(enabled)

    def set_file_label(self, path: str | None) -> None:
        if path:
            self.lbl_file.setText(os.path.basename(path))
            self.lbl_file.setStyleSheet("color: black;")
        else:
            self.lbl_file.setText("No file selected.")
            self.lbl_file.setStyleSheet("color: gray;")

    # --- SLOTS ---

    def on_generate_clicked(self) -> None:
        self.generate_requested.emit()

    def on_open_clicked(self) -> None:
        fname, _ = QFileDialog.getOpenFileName(
            self, "Select CSV File", "", "CSV Files (*.csv);;Text Files (*.txt);;All Files (*)"
        )
        self.set_file_label(fname)
        self.file_selected.emit(fname)
