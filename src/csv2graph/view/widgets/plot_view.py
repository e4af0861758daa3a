"""Display surface for the generated plot, with status/error lines and saving."""
from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtGui import QPixmap
from PySide6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QLabel, QPushButton, QSizePolicy, QFileDialog, QMessageBox
)

from csv2graph.model.result import ImageResult
from csv2graph.model.state import MessageKind, UserMessage

logger = logging.getLogger(__name__)

MESSAGE_COLORS = {
    MessageKind.LIFECYCLE: "darkred",
    MessageKind.INPUT: "red",
    MessageKind.GATE: "orange",
    MessageKind.VALIDATION: "orange",
    MessageKind.DOMAIN: "red",
    MessageKind.CONTRACT: "purple",
    MessageKind.INVOCATION: "purple",
}


class ScalableLabel(QLabel):
    """A label that scales its pixmap content to fill available space, maintaining aspect ratio."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._original_pixmap: Optional[QPixmap] = None
        self.setAlignment(Qt.AlignCenter)
        self.setSizePolicy(QSizePolicy.Ignored, QSizePolicy.Ignored)
        self.setMinimumSize(1, 1)

    def set_source_pixmap(self, pixmap: Optional[QPixmap]) -> None:
        self._original_pixmap = pixmap
        if pixmap is None:
            self.clear()
        else:
            self._update_display()

    def resizeEvent(self, event):
        if self._original_pixmap:
            self._update_display()
        super().resizeEvent(event)

    def _update_display(self) -> None:
        if self._original_pixmap and not self._original_pixmap.isNull():
            scaled = self._original_pixmap.scaled(
                self.size(), Qt.KeepAspectRatio, Qt.SmoothTransformation
            )
            super().setPixmap(scaled)


class PlotView(QWidget):
    # Emitted with a detail when a generated image cannot be shown
    image_failed = Signal(str)

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._image: Optional[ImageResult] = None
        self._png: bytes = b""

        layout = QVBoxLayout(self)

        self.lbl_status = QLabel("")
        self.lbl_status.setStyleSheet("color: gray;")
        layout.addWidget(self.lbl_status)

        self.lbl_error = QLabel("")
        self.lbl_error.setWordWrap(True)
        self.lbl_error.setTextInteractionFlags(Qt.TextSelectableByMouse)
        layout.addWidget(self.lbl_error)

        self.lbl_placeholder = QLabel("The plot will appear here.")
        self.lbl_placeholder.setAlignment(Qt.AlignCenter)
        self.lbl_placeholder.setStyleSheet("color: gray;")
        layout.addWidget(self.lbl_placeholder, 1)

        self.lbl_image = ScalableLabel(self)
        self.lbl_image.hide()
        layout.addWidget(self.lbl_image, 1)

        actions = QHBoxLayout()
        actions.addStretch()
        self.btn_save = QPushButton("Save Image...")
        self.btn_save.setEnabled(False)
        self.btn_save.clicked.connect(self.on_save_clicked)
        actions.addWidget(self.btn_save)
        layout.addLayout(actions)

    @property
    def image(self) -> Optional[ImageResult]:
        return self._image

    @property
    def can_save(self) -> bool:
        return self.btn_save.isEnabled()

    # --- SLOTS ---

    def set_status(self, text: str) -> None:
        self.lbl_status.setText(text)

    def set_message(self, message: Optional[UserMessage]) -> None:
        if message is None:
            self.lbl_error.setText("")
            return
        color = MESSAGE_COLORS.get(message.kind, "red")
        self.lbl_error.setText(message.text)
        self.lbl_error.setStyleSheet(f"color: {color};")

    def show_image(self, image: Optional[ImageResult]) -> None:
        if image is None:
            self._clear_image("The plot will appear here.")
            return

        try:
            png = image.png_bytes()
        except ValueError as e:
            logger.error(f"Cannot decode generated image: {e}")
            self._clear_image("The generated image could not be displayed.")
            self.image_failed.emit(str(e))
            return

        pixmap = QPixmap()
        if not pixmap.loadFromData(png, "PNG"):
            logger.error("Generated image is not a readable PNG.")
            self._clear_image("The generated image could not be displayed.")
            self.image_failed.emit("the image data is not a readable PNG")
            return

        self._image = image
        self._png = png
        self.lbl_placeholder.hide()
        self.lbl_image.show()
        self.lbl_image.set_source_pixmap(pixmap)
        self.lbl_image.setToolTip(image.data_uri[:64] + "...")
        self.btn_save.setEnabled(True)

    def on_save_clicked(self) -> None:
        if not self._png:
            return
        file_path, _ = QFileDialog.getSaveFileName(
            self, "Save Plot Image", "plot.png", "PNG Image (*.png)"
        )
        if not file_path:
            return
        if not file_path.lower().endswith(".png"):
            file_path += ".png"
        self.save_to(file_path)

    def save_to(self, file_path: str) -> bool:
        try:
            with open(file_path, "wb") as f:
                f.write(self._png)
        except OSError as e:
            logger.exception("Failed to save plot image")
            QMessageBox.critical(self, "Save Error", f"Could not save the image:\n{e}")
            return False
        logger.info(f"Plot saved to {file_path}")
        return True

    def _clear_image(self, placeholder: str) -> None:
        self._image = None
        self._png = b""
        self.lbl_image.set_source_pixmap(None)
        self.lbl_image.hide()
        self.lbl_placeholder.setText(placeholder)
        self.lbl_placeholder.show()
        self.btn_save.setEnabled(False)
