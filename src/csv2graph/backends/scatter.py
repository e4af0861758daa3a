"""
Reference Scatter-Plot Backend
==============================
A computation backend that parses CSV text and renders a scatter plot as a
base64 encoded PNG.

Contract:
    generate_plot(csv_text, options_json) -> {"base64Image": str} | {"error": str}

Problems with the data or the options (unknown column, bad size, nothing
left to plot, ...) are returned as ``{"error": ...}``. Options that are not
valid JSON raise ``ValueError``.

The module can be loaded in two ways:
    * ``module`` protocol: call ``init()`` once, then ``generate_plot``.
    * ``runtime`` protocol: ``ScatterRuntime().start(on_failure)``, then
      ``ScatterRuntime.generate_plot``.
"""
from __future__ import annotations

import base64
import csv
import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import numpy as np
from matplotlib.backends.backend_agg import FigureCanvasAgg
from matplotlib.colors import hsv_to_rgb
from matplotlib.figure import Figure

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Scatter Plot from CSV"
DEFAULT_SIZE = "768x512"
DPI = 100
MARKER_SIZE = 9.0

_INITIALIZED = False


class PlotError(ValueError):
    """Data or options cannot be plotted. Reported as ``{"error": ...}``."""


@dataclass
class PlotOptions:
    columns: list[str] = field(default_factory=list)
    title: str = DEFAULT_TITLE
    size: str = DEFAULT_SIZE
    max_range: Optional[float] = None
    skip: int = 1
    xdata: bool = False
    xscale: Optional[str] = None

    @classmethod
    def from_json(cls, text: str) -> PlotOptions:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse options JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Failed to parse options JSON: expected an object")

        columns = data.get("columns") or []
        if not isinstance(columns, list) or not all(isinstance(c, str) for c in columns):
            raise ValueError("Failed to parse options JSON: 'columns' must be a list of strings")

        max_range = data.get("maxRange")
        try:
            skip = int(data.get("skip") or 1)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Failed to parse options JSON: invalid 'skip': {e}") from e

        return cls(
            columns=columns,
            title=data.get("title") or DEFAULT_TITLE,
            size=data.get("size") or DEFAULT_SIZE,
            max_range=float(max_range) if max_range is not None else None,
            skip=max(1, skip),
            xdata=bool(data.get("xdata", False)),
            xscale=data.get("xscale") or None,
        )


def parse_size(size: str) -> tuple[int, int]:
    parts = size.lower().split("x")
    if len(parts) != 2:
        raise PlotError(f"Invalid size format: '{size}'. Expected 'WIDTHxHEIGHT'.")
    try:
        width, height = int(parts[0]), int(parts[1])
    except ValueError:
        raise PlotError(f"Invalid size format: '{size}'. Expected 'WIDTHxHEIGHT'.") from None
    if width <= 0 or height <= 0:
        raise PlotError(f"Invalid size: '{size}'. Width and height must be positive.")
    return width, height


def parse_scale(scale: Optional[str]) -> Optional[tuple[float, float]]:
    if not scale:
        return None
    parts = scale.split(",")
    if len(parts) != 2:
        raise PlotError(f"Invalid xscale format: '{scale}'. Expected 'START,END'.")
    try:
        start, end = float(parts[0]), float(parts[1])
    except ValueError:
        raise PlotError(f"Invalid xscale format: '{scale}'. Expected 'START,END'.") from None
    if start >= end:
        raise PlotError("Invalid xscale range: start value must be less than end value.")
    return start, end


def hsv_palette(n: int) -> list[tuple[float, float, float]]:
    """``n`` evenly spaced hues with fixed saturation and brightness."""
    if n <= 0:
        return []
    hues = np.arange(n) / n
    hsv = np.column_stack([hues, np.full(n, 0.7), np.full(n, 0.9)])
    return [tuple(rgb) for rgb in hsv_to_rgb(hsv)]


def _cell_value(row: list[str], index: int) -> float:
    if index >= len(row):
        return np.nan
    try:
        return float(row[index].strip())
    except ValueError:
        return np.nan


@dataclass
class SeriesData:
    x: np.ndarray
    series: list[tuple[str, np.ndarray]]
    x_label: str


def extract_series(csv_text: str, options: PlotOptions) -> SeriesData:
    """Select, thin, filter and scale the columns to plot."""
    rows = [row for row in csv.reader(io.StringIO(csv_text)) if any(cell.strip() for cell in row)]
    if len(rows) < 2:
        raise PlotError("no data rows found in CSV")

    header = [name.strip() for name in rows[0]]
    data_rows = rows[1:]

    y_columns: list[tuple[str, int]] = []
    for name in options.columns:
        if name not in header:
            raise PlotError(f"Column '{name}' not found")
        index = header.index(name)
        if options.xdata and index == 0:
            continue
        y_columns.append((name, index))
    if not y_columns:
        raise PlotError("No Y columns specified")

    # Every skip-th row; row numbers still count every data row
    kept = data_rows[::options.skip]
    if options.xdata:
        x = np.array([_cell_value(row, 0) for row in kept], dtype=np.float64)
        x_label = header[0] or "X Axis"
    else:
        x = np.arange(1, len(data_rows) + 1, dtype=np.float64)[::options.skip]
        x_label = "Row Number"
    ys = np.array([[_cell_value(row, index) for _, index in y_columns] for row in kept],
                  dtype=np.float64).reshape(len(kept), len(y_columns))

    valid = ~np.isnan(x)
    if not valid.any():
        raise PlotError("could not determine valid X-axis range from data")
    if options.max_range is not None and options.max_range > 0:
        valid &= x <= options.max_range
        if not valid.any():
            raise PlotError("no data points remain after filtering by range")
    x, ys = x[valid], ys[valid]

    if np.isnan(ys).all():
        raise PlotError("no valid numeric data found in the specified Y columns")

    scale = parse_scale(options.xscale)
    if scale is not None:
        start, end = scale
        x_min, x_max = float(x.min()), float(x.max())
        if x_max > x_min:
            x = start + (x - x_min) / (x_max - x_min) * (end - start)
        else:
            x = np.full_like(x, start)

    series = [(name, ys[:, i]) for i, (name, _) in enumerate(y_columns)]
    return SeriesData(x=x, series=series, x_label=x_label)


def render_png(data: SeriesData, options: PlotOptions) -> bytes:
    width, height = parse_size(options.size)

    fig = Figure(figsize=(width / DPI, height / DPI), dpi=DPI, layout="constrained")
    FigureCanvasAgg(fig)
    ax = fig.add_subplot(1, 1, 1)

    for (name, y), color in zip(data.series, hsv_palette(len(data.series))):
        mask = ~np.isnan(y)
        ax.scatter(data.x[mask], y[mask], s=MARKER_SIZE, color=color, label=name)

    scale = parse_scale(options.xscale)
    if scale is not None:
        ax.set_xlim(*scale)

    ax.set_title(options.title)
    ax.set_xlabel(data.x_label)
    ax.set_ylabel("Values")
    ax.grid(visible=True, which='major', axis='both', linestyle='-', color='gray', lw=0.5)
    ax.legend(loc="upper right")

    buffer = io.BytesIO()
    fig.savefig(buffer, format="png", dpi=DPI)
    return buffer.getvalue()


def init() -> None:
    """Warm up the renderer once so a broken plotting stack fails at load time."""
    global _INITIALIZED
    if _INITIALIZED:
        return
    fig = Figure(figsize=(1, 1), dpi=DPI)
    FigureCanvasAgg(fig).draw()
    _INITIALIZED = True
    logger.info("Scatter backend initialized.")


def generate_plot(csv_text: str, options_json: str) -> dict[str, Any]:
    if not _INITIALIZED:
        init()
    options = PlotOptions.from_json(options_json)
    try:
        data = extract_series(csv_text, options)
        png = render_png(data, options)
    except PlotError as e:
        logger.warning(f"Plot failed: {e}")
        return {"error": str(e)}
    return {"base64Image": base64.b64encode(png).decode("ascii")}


class ScatterRuntime:
    """Two-phase variant: instantiate, ``start()``, then call ``generate_plot``."""

    def __init__(self) -> None:
        self._running = False
        self._on_failure: Optional[Callable[[str], None]] = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self, on_failure: Optional[Callable[[str], None]] = None) -> None:
        init()
        self._on_failure = on_failure
        self._running = True

    def stop(self, reason: Optional[str] = None) -> None:
        """Stop the runtime. A ``reason`` is reported as a runtime failure."""
        self._running = False
        if reason and self._on_failure is not None:
            self._on_failure(reason)

    def generate_plot(self, csv_text: str, options_json: str) -> dict[str, Any]:
        if not self._running:
            raise RuntimeError("Scatter runtime is not running.")
        return generate_plot(csv_text, options_json)
