"""
Backend Response Interpretation
===============================
The computation backend answers with a loosely shaped mapping. This module
turns that raw value into exactly one variant of ``PlotResult``:

* ``ImageResult``        - ``{"base64Image": "<png as base64>"}``
* ``BackendErrorResult`` - ``{"error": "<message>"}``
* ``MalformedResult``    - anything else (contract violation)

A failure of the call itself is not a result; it is carried separately as
``InvocationFailure``.
"""
from __future__ import annotations

import base64
import binascii
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

PNG_DATA_URI_PREFIX = "data:image/png;base64,"


@dataclass(frozen=True)
class ImageResult:
    base64_payload: str

    @property
    def data_uri(self) -> str:
        return f"{PNG_DATA_URI_PREFIX}{self.base64_payload}"

    def png_bytes(self) -> bytes:
        """Decoded image. Raises ``ValueError`` if the payload is not base64."""
        try:
            return base64.b64decode(self.base64_payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Image payload is not valid base64: {e}") from e


@dataclass(frozen=True)
class BackendErrorResult:
    message: str


@dataclass(frozen=True)
class MalformedResult:
    reason: str


@dataclass(frozen=True)
class InvocationFailure:
    message: str


PlotResult = Union[ImageResult, BackendErrorResult, MalformedResult]


def interpret_response(raw: Any) -> PlotResult:
    """Classify a raw backend response. An ``error`` field wins over an image."""
    if not isinstance(raw, Mapping):
        return MalformedResult(f"expected a mapping, got {type(raw).__name__}")

    error = raw.get("error")
    if error is not None and not isinstance(error, str):
        return MalformedResult(f"'error' must be a string, got {type(error).__name__}")
    if error:
        return BackendErrorResult(error)

    image = raw.get("base64Image")
    if image is not None and not isinstance(image, str):
        return MalformedResult(f"'base64Image' must be a string, got {type(image).__name__}")
    if image:
        return ImageResult(image)

    return MalformedResult("response contains neither an image nor an error")
