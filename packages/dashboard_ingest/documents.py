"""Page images for statement extraction.

Statements usually arrive as PDFs; each page is rendered to a JPEG with
PyMuPDF so it can be sent to a vision model as a base64 data URI.
"""

from __future__ import annotations

import base64
from collections.abc import Iterable
from os import PathLike
from pathlib import Path

import fitz  # PyMuPDF

from .errors import InvalidInputError

_PDF_SUFFIXES = {".pdf"}

# (magic prefix, mime)
_SIGNATURES: tuple[tuple[bytes, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_mime(data: bytes) -> str:
    for magic, mime in _SIGNATURES:
        if data.startswith(magic):
            return mime
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def check_image(image: bytes | str) -> None:
    """Raise :class:`InvalidInputError` unless ``image`` is bytes or a ``data:`` URI."""

    if isinstance(image, str) and not image.startswith("data:"):
        raise InvalidInputError("image strings must be data URIs; pass raw bytes otherwise")
    if not isinstance(image, bytes | str):
        raise InvalidInputError(f"unsupported image type {type(image).__name__}")


def to_data_uri(image: bytes | str, mime: str | None = None) -> str:
    """Return ``image`` as a ``data:`` URI; existing URIs pass through."""

    check_image(image)
    if isinstance(image, str):
        return image
    encoded = base64.b64encode(image).decode("ascii")
    return f"data:{mime or sniff_mime(image)};base64,{encoded}"


def render_pdf_pages(path: str | PathLike[str], *, zoom: float = 2.0) -> list[bytes]:
    """Render every page of a PDF to JPEG bytes (1-based page order kept)."""

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"PDF not found: {p}")
    matrix = fitz.Matrix(zoom, zoom)
    pages: list[bytes] = []
    with fitz.open(str(p)) as doc:
        for page in doc:
            pix = page.get_pixmap(matrix=matrix)
            pages.append(pix.tobytes("jpeg"))
    return pages


def load_pages(paths: Iterable[str | PathLike[str]]) -> list[bytes]:
    """Expand PDFs into page images and read image files as-is."""

    pages: list[bytes] = []
    for raw in paths:
        p = Path(raw)
        if p.suffix.lower() in _PDF_SUFFIXES:
            pages.extend(render_pdf_pages(p))
        else:
            pages.append(p.read_bytes())
    return pages


__all__ = ["check_image", "load_pages", "render_pdf_pages", "sniff_mime", "to_data_uri"]
