# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/streaming/json_tokenizer.py

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

_WS = (" ", "\t", "\r", "\n")
_NUMBER_CHARS = set("0123456789+-.eE")
_LITERALS = {"true": True, "false": False, "null": None}
_SIMPLE_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "b": "\b", "f": "\f"}


class JsonTokenError(ValueError):
    def __init__(self, message: str, position: int, char: str = ""):
        super().__init__(f"{message} at {position} ({char!r})")
        self.position = position
        self.char = char


class JsonTokenListener(ABC):
    """Callbacks fired by JsonTokenizer, one per structural event."""

    @abstractmethod
    def on_open_object(self) -> None: ...

    @abstractmethod
    def on_key(self, key: str) -> None: ...

    @abstractmethod
    def on_close_object(self) -> None: ...

    @abstractmethod
    def on_open_array(self) -> None: ...

    @abstractmethod
    def on_close_array(self) -> None: ...

    @abstractmethod
    def on_value(self, value: Any) -> None: ...

    def on_error(self, error: JsonTokenError) -> None:
        logger.warning("JSON tokenizer: %s", error)


class JsonTokenizer:
    """
    Incremental, tolerant JSON tokenizer.

    - Accepts input in arbitrary chunks; state survives between `feed` calls.
    - Text outside of a root container (prose, code fences) is skipped.
    - Several root containers may follow each other ({"a":1}{"b":2}).
    - Unexpected characters are reported via `on_error` and skipped;
      tokenizing continues with the next character.
    - Strings are decoded (simple escapes and \\uXXXX, including surrogate pairs).
    """

    def __init__(self, listener: JsonTokenListener):
        self.listener = listener
        self.reset()

    def reset(self) -> None:
        self.position = 0
        # container stack: "{" or "["
        self.stack: List[str] = []
        # value | key | colon | comma
        self.expect = "value"

        self.in_string = False
        self.string_is_key = False
        self.string_buf: List[str] = []
        self.escaping = False
        self.unicode_buf: Optional[str] = None
        self.high_surrogate: Optional[int] = None

        self.number_buf: Optional[str] = None
        self.literal_buf: Optional[str] = None

    # ---------- introspection ----------

    @property
    def depth(self) -> int:
        return len(self.stack)

    def pending_string(self) -> Optional[str]:
        """Decoded text of a value string that is still being received."""
        if self.in_string and not self.string_is_key:
            return "".join(self.string_buf)
        return None

    # ---------- main streaming API ----------

    def feed(self, chunk: str) -> None:
        if not chunk:
            return
        for ch in chunk:
            self._step(ch)
            self.position += 1

    def end(self) -> None:
        """Flush a number that is only terminated by the end of input."""
        if self.number_buf is not None:
            self._flush_number()

    # ---------- internals ----------

    def _error(self, message: str, ch: str = "") -> None:
        self.listener.on_error(JsonTokenError(message, self.position, ch))

    def _step(self, ch: str) -> None:
        if self.in_string:
            self._string_char(ch)
            return

        if self.number_buf is not None:
            if ch in _NUMBER_CHARS:
                self.number_buf += ch
                return
            self._flush_number()

        if self.literal_buf is not None:
            self._literal_char(ch)
            return

        if ch in _WS:
            return

        if self.expect == "value":
            self._value_start(ch)
        elif self.expect == "key":
            if ch == '"':
                self._start_string(is_key=True)
            elif ch == "}":
                self._close("{")
            else:
                self._error("expected object key", ch)
        elif self.expect == "colon":
            if ch == ":":
                self.expect = "value"
            else:
                self._error("expected ':'", ch)
        elif self.expect == "comma":
            if ch == ",":
                self.expect = "key" if self.stack[-1] == "{" else "value"
            elif ch in "}]":
                self._close("{" if ch == "}" else "[")
            else:
                self._error("expected ',' or closing bracket", ch)

    def _value_start(self, ch: str) -> None:
        if ch == "{":
            self.stack.append("{")
            self.expect = "key"
            self.listener.on_open_object()
            return
        if ch == "[":
            self.stack.append("[")
            self.expect = "value"
            self.listener.on_open_array()
            return

        if not self.stack:
            # outside of any root container: not JSON, skip
            return

        if ch == '"':
            self._start_string(is_key=False)
        elif ch == "-" or ch.isdigit():
            self.number_buf = ch
        elif ch in "tfn":
            self.literal_buf = ch
        elif ch == "]" and self.stack[-1] == "[":
            # empty array or trailing comma
            self._close("[")
        elif ch == "}" and self.stack[-1] == "{":
            # trailing comma after a member
            self._close("{")
        else:
            self._error("unexpected character for a value", ch)

    def _close(self, opener: str) -> None:
        if not self.stack or self.stack[-1] != opener:
            self._error("mismatched closing bracket", "}" if opener == "{" else "]")
            return
        self.stack.pop()
        if opener == "{":
            self.listener.on_close_object()
        else:
            self.listener.on_close_array()
        self._after_value()

    def _after_value(self) -> None:
        self.expect = "comma" if self.stack else "value"

    def _emit_value(self, value: Any) -> None:
        self.listener.on_value(value)
        self._after_value()

    # strings

    def _start_string(self, *, is_key: bool) -> None:
        self.in_string = True
        self.string_is_key = is_key
        self.string_buf = []
        self.escaping = False
        self.unicode_buf = None
        self.high_surrogate = None

    def _append_char(self, decoded: str) -> None:
        if self.high_surrogate is not None:
            # a lone high surrogate is dropped
            self.high_surrogate = None
        self.string_buf.append(decoded)

    def _string_char(self, ch: str) -> None:
        if self.unicode_buf is not None:
            self.unicode_buf += ch
            if len(self.unicode_buf) < 4:
                return
            try:
                code = int(self.unicode_buf, 16)
            except ValueError:
                self._error("invalid \\u escape", self.unicode_buf)
                code = None
            self.unicode_buf = None
            if code is None:
                return
            if 0xD800 <= code <= 0xDBFF:
                self.high_surrogate = code
                return
            if 0xDC00 <= code <= 0xDFFF and self.high_surrogate is not None:
                combined = 0x10000 + ((self.high_surrogate - 0xD800) << 10) + (code - 0xDC00)
                self.high_surrogate = None
                self.string_buf.append(chr(combined))
                return
            self._append_char(chr(code))
            return

        if self.escaping:
            self.escaping = False
            if ch == "u":
                self.unicode_buf = ""
                return
            # \" \\ \/ or unknown escape
            self._append_char(_SIMPLE_ESCAPES.get(ch, ch))
            return

        if ch == "\\":
            self.escaping = True
            return

        if ch == '"':
            self.in_string = False
            text = "".join(self.string_buf)
            self.string_buf = []
            if self.string_is_key:
                self.expect = "colon"
                self.listener.on_key(text)
            else:
                self._emit_value(text)
            return

        self._append_char(ch)

    # scalars

    def _flush_number(self) -> None:
        raw, self.number_buf = self.number_buf, None
        try:
            if any(c in raw for c in ".eE"):
                value: Any = float(raw)
            else:
                value = int(raw)
        except ValueError:
            self._error("invalid number", raw)
            self._after_value()
            return
        self._emit_value(value)

    def _literal_char(self, ch: str) -> None:
        candidate = self.literal_buf + ch
        if candidate in _LITERALS:
            self.literal_buf = None
            self._emit_value(_LITERALS[candidate])
            return
        if any(word.startswith(candidate) for word in _LITERALS):
            self.literal_buf = candidate
            return
        self.literal_buf = None
        self._error("invalid literal", candidate)
        self._after_value()
        # the breaking character is tokenized on its own
        self._step(ch)
