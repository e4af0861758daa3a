"""
Main Application Window
=======================
The primary GUI container: options on the left, the plot on the right.

Why is this file needed?
------------------------
1. Layout: It organizes the high-level visual structure of the application.
2. Routing: It connects widget actions to the controllers (file selection ->
   InputAcquisition, Generate -> PlotOrchestrator) and the session signals
   back to the widgets.
"""
from __future__ import annotations

import logging

from PySide6.QtWidgets import QMainWindow, QSplitter
from PySide6.QtCore import Qt
from PySide6.QtGui import QAction

from csv2graph.app.application import VISIBLE_APP_NAME
from csv2graph.controller.backend import BackendManager
from csv2graph.controller.input import InputAcquisition
from csv2graph.controller.orchestrator import PlotOrchestrator
from csv2graph.model.request import ValidationPolicy
from csv2graph.model.state import BackendHandle, MessageKind, SessionState
from csv2graph.view.panels.options_panel import OptionsPanel
from csv2graph.view.widgets.plot_view import PlotView

logger = logging.getLogger(__name__)

IMAGE_UNREADABLE_MESSAGE = "Unexpected error: the backend returned an image that cannot be displayed."


class MainWindow(QMainWindow):
    def __init__(self, session: SessionState, backend_manager: BackendManager,
                 input_acquisition: InputAcquisition,
                 policy: ValidationPolicy = ValidationPolicy()) -> None:
        super().__init__()
        self.session = session
        self.backend_manager = backend_manager
        self.input_acquisition = input_acquisition

        self.setWindowTitle(VISIBLE_APP_NAME)
        self.resize(1200, 760)

        # --- LEFT: options, RIGHT: plot ---
        splitter = QSplitter(Qt.Horizontal)
        self.options_panel = OptionsPanel()
        self.plot_view = PlotView()
        splitter.addWidget(self.options_panel)
        splitter.addWidget(self.plot_view)
        splitter.setSizes([340, 860])
        self.setCentralWidget(splitter)

        self.orchestrator = PlotOrchestrator(
            session, form_provider=self.options_panel.form_state, policy=policy, parent=self
        )

        # --- SIGNAL CONNECTIONS ---
        self.options_panel.file_selected.connect(self.input_acquisition.select_file)
        self.options_panel.generate_requested.connect(self.orchestrator.generate)

        self.session.gating_changed.connect(self._apply_gating)
        self.session.backend_changed.connect(self._on_backend_changed)
        self.session.status_changed.connect(self.plot_view.set_status)
        self.session.message_changed.connect(self.plot_view.set_message)
        self.session.image_changed.connect(self._on_image_changed)
        self.plot_view.image_failed.connect(self._on_image_failed)

        self._create_actions()
        self._create_menus()

        # Pick up whatever happened before the window existed
        self._apply_gating(self.session.trigger_enabled)
        self.plot_view.set_status(self.session.status)
        self.plot_view.set_message(self.session.message)

    def _create_actions(self) -> None:
        self.act_open = QAction("Open CSV...", self)
        self.act_open.setShortcut("Ctrl+O")
        self.act_open.triggered.connect(self.options_panel.on_open_clicked)

        self.act_generate = QAction("Generate Plot", self)
        self.act_generate.setShortcut("Ctrl+G")
        self.act_generate.setEnabled(False)
        self.act_generate.triggered.connect(self.orchestrator.generate)

        self.act_save = QAction("Save Image...", self)
        self.act_save.setShortcut("Ctrl+S")
        self.act_save.setEnabled(False)
        self.act_save.triggered.connect(self.plot_view.on_save_clicked)

        self.act_exit = QAction("Exit", self)
        self.act_exit.triggered.connect(self.close)

    def _create_menus(self) -> None:
        menu_bar = self.menuBar()

        file_menu = menu_bar.addMenu("&File")
        file_menu.addAction(self.act_open)
        file_menu.addSeparator()
        file_menu.addAction(self.act_save)
        file_menu.addSeparator()
        file_menu.addAction(self.act_exit)

        plot_menu = menu_bar.addMenu("&Plot")
        plot_menu.addAction(self.act_generate)

    # --- SLOTS ---

    def _apply_gating(self, enabled: bool) -> None:
        self.options_panel.set_generate_enabled(enabled)
        self.act_generate.setEnabled(enabled)

    def _on_backend_changed(self, handle: BackendHandle) -> None:
        title = VISIBLE_APP_NAME
        if handle.ready and handle.name:
            title += f" [{handle.name}]"
        self.setWindowTitle(title)

    def _on_image_changed(self, image) -> None:
        self.plot_view.show_image(image)
        self.act_save.setEnabled(self.plot_view.can_save)

    def _on_image_failed(self, detail: str) -> None:
        self.session.report(MessageKind.CONTRACT, f"{IMAGE_UNREADABLE_MESSAGE} ({detail})")
        self.session.set_status("")

    def closeEvent(self, event, /) -> None:
        """Give running workers a moment to finish before the window goes away."""
        for controller in (self.orchestrator, self.input_acquisition, self.backend_manager):
            if not controller.wait(2000):
                logger.warning(f"{type(controller).__name__} still busy at exit.")
        event.accept()
