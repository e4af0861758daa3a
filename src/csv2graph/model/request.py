"""
Plot Request Shaping
====================
Turns the raw text of the options form into a validated ``PlotRequest``.

The form is loosely typed (everything is a string except the X-data
checkbox). This module owns the rules that normalize it:

* columns are split on commas, trimmed, and empty tokens dropped;
* blank title and size fall back to fixed placeholders;
* the range and skip fields follow an explicit ``ValidationPolicy``.

Classes:
    PlotFormState: Raw snapshot of the form fields.
    ValidationPolicy: How unparsable range / skip values are treated.
    PlotRequest: The validated request sent to the computation backend.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

DEFAULT_TITLE = "Scatter Plot from CSV"
DEFAULT_SIZE = "768x512"

# Leading numeric prefix, so "12.5px" reads as 12.5 and "3.7" as skip reads as 3
_FLOAT_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")
_INT_PREFIX = re.compile(r"^\s*([+-]?\d+)")


class RequestValidationError(ValueError):
    """The form content cannot be turned into a valid request."""


class MaxRangePolicy(str, Enum):
    ABSENT = "absent"  # unparsable range -> no limit sent (null)
    ZERO = "zero"      # unparsable range -> 0 sent


class SkipPolicy(str, Enum):
    CLAMP = "clamp"    # values below 1 become 1
    REJECT = "reject"  # values below 1 are a validation error


@dataclass(frozen=True)
class ValidationPolicy:
    max_range: MaxRangePolicy = MaxRangePolicy.ABSENT
    skip: SkipPolicy = SkipPolicy.CLAMP


@dataclass(frozen=True)
class PlotFormState:
    """Raw values as typed by the user."""
    columns: str = ""
    title: str = ""
    size: str = ""
    max_range: str = ""
    skip: str = ""
    xdata: bool = False
    xscale: str = ""


@dataclass(frozen=True)
class PlotRequest:
    """
    Validated options for one plot.

    Construction fails with ``RequestValidationError`` if the column list is
    empty, ``skip`` is below 1 or ``max_range`` is not finite, so an instance
    is never partially valid.
    """
    columns: tuple[str, ...]
    title: str = DEFAULT_TITLE
    size: str = DEFAULT_SIZE
    max_range: Optional[float] = None
    skip: int = 1
    xdata: bool = False
    xscale: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.columns:
            raise RequestValidationError("Error: specify at least one column to plot.")
        if self.skip < 1:
            raise RequestValidationError(
                f"Error: skip must be an integer of at least 1 (got {self.skip})."
            )
        if self.max_range is not None and not math.isfinite(self.max_range):
            raise RequestValidationError(
                f"Error: the range limit must be a finite number (got {self.max_range})."
            )

    def to_options(self) -> dict[str, Any]:
        """Options mapping with the field names the backend expects."""
        return {
            "columns": list(self.columns),
            "title": self.title,
            "size": self.size,
            "maxRange": self.max_range,
            "skip": self.skip,
            "xdata": self.xdata,
            "xscale": self.xscale,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_options(), ensure_ascii=False, allow_nan=False)


def parse_columns(text: str) -> tuple[str, ...]:
    return tuple(token.strip() for token in text.split(",") if token.strip())


def parse_float_prefix(text: str) -> Optional[float]:
    match = _FLOAT_PREFIX.match(text)
    if match is None:
        return None
    return float(match.group(1))


def parse_int_prefix(text: str) -> Optional[int]:
    match = _INT_PREFIX.match(text)
    if match is None:
        return None
    return int(match.group(1))


def resolve_max_range(text: str, policy: MaxRangePolicy) -> Optional[float]:
    value = parse_float_prefix(text)
    # "1e999" overflows to inf; treated like any other unusable input
    if value is not None and math.isfinite(value):
        return value
    return 0.0 if policy is MaxRangePolicy.ZERO else None


def resolve_skip(text: str, policy: SkipPolicy) -> int:
    value = parse_int_prefix(text)
    if value is None:
        return 1
    if policy is SkipPolicy.CLAMP:
        return max(1, value)
    return value


def build_plot_request(form: PlotFormState,
                       policy: ValidationPolicy = ValidationPolicy()) -> PlotRequest:
    """
    Normalize a form snapshot into a ``PlotRequest``.

    Raises:
        RequestValidationError: no columns remain after trimming, or skip
            resolves below 1 under ``SkipPolicy.REJECT``.
    """
    return PlotRequest(
        columns=parse_columns(form.columns),
        title=form.title if form.title.strip() else DEFAULT_TITLE,
        size=form.size.strip() or DEFAULT_SIZE,
        max_range=resolve_max_range(form.max_range, policy.max_range),
        skip=resolve_skip(form.skip, policy.skip),
        xdata=bool(form.xdata),
        xscale=form.xscale.strip() or None,
    )
