# src/flashrelay/core/framing.py
from __future__ import annotations
import json
import logging
import re
from typing import Iterable, Iterator, List, Optional

from .errors import RecordParseWarning

logger = logging.getLogger(__name__)

_OPEN_FENCE = re.compile(r"^```json\s*")
_CLOSE_FENCE = re.compile(r"\s*```$")
_PREVIEW_CHARS = 50


def _reject_constant(name: str):
    raise ValueError(f"non-standard JSON constant {name}")


def _strict_loads(text: str):
    # json.loads accepts NaN/Infinity by default; standard JSON does not.
    return json.loads(text, parse_constant=_reject_constant)


def strip_fences(line: str) -> str:
    """Remove an opening ```json marker and a closing ``` marker, if present."""
    return _CLOSE_FENCE.sub("", _OPEN_FENCE.sub("", line))


class LineFramer:
    """
    Reassembles an arbitrary fragment stream into validated NDJSON lines.

    feed() returns the lines completed by that fragment, so callers can write
    them out before the next fragment arrives. flush() handles the trailing
    remainder once the stream is exhausted. Output depends only on the
    concatenated text, never on where the fragments were split.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self.card_count = 0
        self.warnings: List[RecordParseWarning] = []

    def feed(self, fragment: str) -> List[str]:
        self._buffer += fragment
        out: List[str] = []
        while True:
            idx = self._buffer.find("\n")
            if idx == -1:
                break
            candidate = self._buffer[:idx]
            self._buffer = self._buffer[idx + 1:]
            line = self._process(candidate)
            if line is not None:
                out.append(line)
        return out

    def flush(self) -> List[str]:
        remainder, self._buffer = self._buffer, ""
        line = self._process(remainder)
        return [line] if line is not None else []

    def _process(self, candidate: str) -> Optional[str]:
        text = candidate.strip()
        if not text:
            return None
        logger.debug("Processing line length: %d", len(text))

        cleaned = strip_fences(text)
        if cleaned.startswith("{"):
            try:
                parsed = _strict_loads(cleaned)
            except (ValueError, RecursionError):
                parsed = None
            if isinstance(parsed, dict):
                self.card_count += 1
                logger.info("Successfully parsed card #%d", self.card_count)
                return cleaned + "\n"

        self._warn(text)
        return None

    def _warn(self, text: str) -> None:
        preview = text[:_PREVIEW_CHARS]
        self.warnings.append(RecordParseWarning(preview))
        logger.warning("Skipping invalid JSON line/segment: %s", preview)


def frame_stream(fragments: Iterable[str], framer: Optional[LineFramer] = None) -> Iterator[str]:
    """
    Lazily turn fragments into validated lines, yielding each one as soon as
    its terminating newline arrives. Upstream errors propagate unchanged.
    """
    framer = framer or LineFramer()
    for fragment in fragments:
        yield from framer.feed(fragment)
    yield from framer.flush()
