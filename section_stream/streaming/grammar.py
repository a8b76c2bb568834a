# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/streaming/grammar.py

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from section_stream.streaming.sections import Section


class SectionGrammar(ABC):
    """
    How section boundaries are recognized in raw text.

    A grammar owns all of its parse state. `feed` must absorb malformed input
    (log it, never raise) so that subsequent deltas keep being decoded.
    """

    name: str = "abstract"

    @abstractmethod
    def feed(self, delta: str) -> None: ...

    @abstractmethod
    def sections(self, include_partial: bool = False) -> List[Section]:
        """Sections decoded so far, in order of appearance."""

    def finish(self) -> None:
        """End of stream: flush whatever is still buffered."""

    @abstractmethod
    def reset(self) -> None: ...
