# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/streaming/tag_grammar.py

from __future__ import annotations

import logging
import string
from enum import Enum
from typing import Dict, Iterable, List, Optional

from section_stream.streaming.grammar import SectionGrammar
from section_stream.streaming.sections import Section, ValueKind, finalize_section

logger = logging.getLogger(__name__)

_WORD_CHARS = frozenset(string.ascii_letters + string.digits + "_")
_WORD = "<word>"


class MarkerState(str, Enum):
    INIT = "init"
    FIRST_BRACKET = "first_bracket"
    AFTER_BRACKETS = "after_brackets"
    FIRST_HASH = "first_hash"
    AFTER_HASHES = "after_hashes"
    CAPTURING_NAME = "capturing_name"
    AFTER_NAME = "after_name"
    CLOSING_FIRST_HASH = "closing_first_hash"
    AFTER_CLOSING_HASHES = "after_closing_hashes"
    FIRST_CLOSING_BRACKET = "first_closing_bracket"
    COMPLETE = "complete"


class StepResult(str, Enum):
    CONTINUE = "continue"   # character belongs to a marker in progress
    BREAK = "break"         # pattern broken: buffered text is content
    COMPLETE = "complete"   # full marker recognized


S = MarkerState

# Marker shape: [[ ## name ## ]]  (spaces optional)
TRANSITIONS: Dict[MarkerState, Dict[str, MarkerState]] = {
    S.INIT: {"[": S.FIRST_BRACKET},
    S.FIRST_BRACKET: {"[": S.AFTER_BRACKETS},
    S.AFTER_BRACKETS: {" ": S.AFTER_BRACKETS, "#": S.FIRST_HASH},
    S.FIRST_HASH: {"#": S.AFTER_HASHES, " ": S.AFTER_BRACKETS},
    S.AFTER_HASHES: {" ": S.AFTER_HASHES, _WORD: S.CAPTURING_NAME},
    S.CAPTURING_NAME: {_WORD: S.CAPTURING_NAME, " ": S.AFTER_NAME, "#": S.CLOSING_FIRST_HASH},
    S.AFTER_NAME: {" ": S.AFTER_NAME, "#": S.CLOSING_FIRST_HASH},
    S.CLOSING_FIRST_HASH: {"#": S.AFTER_CLOSING_HASHES},
    S.AFTER_CLOSING_HASHES: {" ": S.AFTER_CLOSING_HASHES, "]": S.FIRST_CLOSING_BRACKET},
    S.FIRST_CLOSING_BRACKET: {"]": S.COMPLETE},
}


class MarkerDetector:
    """Strict recognizer for section markers, one character at a time."""

    def __init__(self, allowed_sections: Iterable[str]):
        self.allowed_sections = frozenset(allowed_sections)
        self.max_name_len = max((len(s) for s in self.allowed_sections), default=0)
        self.reset()

    def reset(self) -> None:
        self.state = MarkerState.INIT
        self.buffer: List[str] = []
        self.name = ""

    def take_buffer(self) -> str:
        text = "".join(self.buffer)
        self.buffer = []
        return text

    def step(self, c: str) -> StepResult:
        self.buffer.append(c)
        key = _WORD if c in _WORD_CHARS else c
        nxt = TRANSITIONS.get(self.state, {}).get(key)
        if nxt is None:
            return StepResult.BREAK

        if nxt is MarkerState.CAPTURING_NAME:
            self.name += c
            if len(self.name) > self.max_name_len:
                return StepResult.BREAK
        elif self.state is MarkerState.CAPTURING_NAME and self.name not in self.allowed_sections:
            return StepResult.BREAK

        self.state = nxt
        if nxt is MarkerState.COMPLETE:
            return StepResult.COMPLETE
        return StepResult.CONTINUE


class ContentAccumulator:
    """Raw text of the section currently open (the bucket)."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.name: Optional[str] = None
        self.parts: List[str] = []

    @property
    def is_open(self) -> bool:
        return self.name is not None

    @property
    def content(self) -> str:
        return "".join(self.parts)

    def open(self, name: str) -> None:
        self.name = name
        self.parts = []

    def absorb(self, text: str) -> None:
        if not text:
            return
        if self.name is None:
            logger.debug("dropping text outside of any section: %r", text[:80])
            return
        self.parts.append(text)

    def close(self) -> Optional[tuple[str, str]]:
        if self.name is None:
            return None
        closed = (self.name, self.content)
        self.reset()
        return closed


class DelimitedTagGrammar(SectionGrammar):
    """
    Sections are introduced by `[[ ## name ## ]]` markers in free text; content
    runs until the next marker or the end of the stream.

    A MarkerDetector watches for markers; whatever it cannot turn into a marker
    falls back to the ContentAccumulator of the open section. The open section
    is always visible in `sections()` with `complete=False`.
    """

    name = "tag"

    def __init__(self, allowed_sections: Iterable[str], *, payload_sections: Iterable[str] = ()):
        self.allowed_sections = list(allowed_sections)
        self.payload_sections = list(payload_sections or ())
        self.detector = MarkerDetector(self.allowed_sections)
        self.bucket = ContentAccumulator()
        self.reset()

    def reset(self) -> None:
        self.completed: List[Section] = []
        self.detector.reset()
        self.bucket.reset()
        self._skip_space = False

    def feed(self, delta: str) -> None:
        if not delta:
            return
        for c in delta:
            if self._skip_space:
                self._skip_space = False
                if c == " ":
                    continue
            result = self.detector.step(c)
            if result is StepResult.BREAK:
                self.bucket.absorb(self.detector.take_buffer())
                self.detector.reset()
            elif result is StepResult.COMPLETE:
                name = self.detector.name
                self.detector.reset()
                self._open_section(name)

    def finish(self) -> None:
        self.bucket.absorb(self.detector.take_buffer())
        self.detector.reset()
        self._close_section()

    def sections(self, include_partial: bool = False) -> List[Section]:
        out = list(self.completed)
        if self.bucket.is_open:
            content = self.bucket.content
            out.append(Section(
                name=self.bucket.name,
                value=content,
                value_kind=ValueKind.STRING,
                complete=False,
            ))
        return out

    def _open_section(self, name: str) -> None:
        self._close_section()
        logger.debug("tag section opened: %s", name)
        self.bucket.open(name)
        # a single space after the marker separates it from the content
        self._skip_space = True

    def _close_section(self) -> None:
        closed = self.bucket.close()
        if closed is None:
            return
        name, content = closed
        self.completed.append(finalize_section(name, content, self.payload_sections))
