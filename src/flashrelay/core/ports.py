from __future__ import annotations
from typing import Iterator, List, NamedTuple, Protocol

from .usage import UsageSummary


class OpenedStream(NamedTuple):
    fragments: Iterator[str]
    usage: UsageSummary


class Provider(Protocol):
    """
    Interface the relay uses to talk to any LLM backend.
    """

    # Surfaced for logging and /api/config
    name: str
    model: str

    def open_stream(self, topic: str, context: List[str]) -> OpenedStream:
        """
        Start one streaming generation for 'topic'.

        'fragments' is lazy and single-pass: raw text pieces in arrival order,
        each may hold zero, one or part of a JSON line. Iterating it raises
        UpstreamError if the upstream call fails.
        'usage' is updated in place whenever the upstream reports token counts.
        """
        ...
