"""
portals_webapi.webapi.files - File column helpers
==================================================

Filename recovery from ``Content-Disposition`` and the downloaded file type.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Union

logger = logging.getLogger("portals_webapi.files")

FILENAME_MARKER = "filename="
ENCODED_WORD_MARKER = '"=?utf-8?B?'
# trailing ?=" of the quoted encoded word
ENCODED_WORD_SUFFIX_LEN = 3

AnomalyHook = Callable[[Optional[str], Exception], None]


def _decode_encoded_word(text: str) -> str:
    text = "".join(text.split())
    text += "=" * (-len(text) % 4)
    raw = base64.b64decode(text, validate=True)
    # each byte percent-escaped then percent-decoded is a strict UTF-8 decode
    return raw.decode("utf-8")


def resolve_filename(
    header_value: Optional[str],
    default_name: str,
    on_anomaly: Optional[AnomalyHook] = None,
) -> str:
    """
    Best-effort file name from a ``Content-Disposition`` header value.

    A plain ``filename=`` value is returned verbatim, surrounding quotes
    included. A quoted ``=?utf-8?B?...?=`` encoded word is base64 and UTF-8
    decoded. Never raises: any parse anomaly yields ``default_name`` and is
    reported to the ``portals_webapi.files`` logger and to ``on_anomaly``.

    Examples
    --------
    >>> resolve_filename('attachment; filename="report.pdf"', "file.bin")
    '"report.pdf"'
    >>> resolve_filename(None, "file.bin")
    'file.bin'
    """
    if not header_value:
        return default_name

    try:
        idx = header_value.find(FILENAME_MARKER)
        if idx < 0:
            return default_name

        candidate = header_value[idx + len(FILENAME_MARKER):]
        start = candidate.find(ENCODED_WORD_MARKER)
        if start < 0:
            return candidate

        start += len(ENCODED_WORD_MARKER)
        end = len(candidate) - ENCODED_WORD_SUFFIX_LEN
        if end < start:
            raise ValueError("Truncated encoded-word file name")

        name = _decode_encoded_word(candidate[start:end])
        if not name:
            raise ValueError("Empty encoded-word file name")
        return name
    except Exception as exc:
        logger.debug("Falling back to %r for Content-Disposition %r: %s",
                     default_name, header_value, exc)
        if on_anomaly is not None:
            try:
                on_anomaly(header_value, exc)
            except Exception:
                logger.debug("Filename anomaly hook failed", exc_info=True)
        return default_name


@dataclass
class DownloadedFile:
    """Content of a file column together with its resolved name."""
    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    def save(self, directory: Union[str, Path] = ".") -> Path:
        """
        Write the file into ``directory`` under its resolved name.

        Quotes kept by :func:`resolve_filename` and any directory part are
        stripped from the name first.
        """
        safe_name = Path(self.name.strip().strip('"')).name
        if safe_name in ("", ".", ".."):
            safe_name = "file.bin"
        target = Path(directory) / safe_name
        target.write_bytes(self.content)
        logger.info("Saved %s (%d bytes)", target, self.size)
        return target
