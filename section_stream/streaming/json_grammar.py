# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/streaming/json_grammar.py

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, Iterable, List, Optional

from section_stream.streaming.grammar import SectionGrammar
from section_stream.streaming.json_tokenizer import JsonTokenError, JsonTokenListener, JsonTokenizer
from section_stream.streaming.sections import Section, ValueKind, classify, finalize_section

logger = logging.getLogger(__name__)

ROOT_SECTION = "root"


class JsonObjectGrammar(SectionGrammar, JsonTokenListener):
    """
    Sections are the top-level keys of a streamed JSON object.

    - Tracks depth (root = 1) and a stack of container builders.
    - A key at depth 1 starts capturing a section (if allowed); its value is
      final when a scalar arrives at depth 1 or when the container holding it
      closes back to depth 1.
    - Keys rejected by the allow-list are still consumed structurally.
    - A bare root array becomes one synthetic "root" section.
    """

    name = "json"

    def __init__(
            self,
            allowed_sections: Optional[Iterable[str]] = None,
            *,
            loose: bool = False,
            payload_sections: Iterable[str] = (),
    ):
        self.allowed_sections = list(allowed_sections) if allowed_sections is not None else None
        self.loose = loose
        self.payload_sections = list(payload_sections or ())
        self.tokenizer = JsonTokenizer(self)
        self.reset()

    def reset(self) -> None:
        self.completed: List[Section] = []

        self.depth = 0
        self.value_stack: List[Any] = []
        # pending key per depth, for attaching children to objects
        self.key_stack: Dict[int, str] = {}
        self.is_root_array = False

        self.capturing = False
        self.current_name: Optional[str] = None
        self.current_value: Any = None

        self.errors = 0
        self.tokenizer.reset()

    # ---------- SectionGrammar ----------

    def feed(self, delta: str) -> None:
        try:
            self.tokenizer.feed(delta)
        except Exception:
            # the tokenizer reports its own errors; anything else is a bug we must survive
            logger.exception("JSON grammar failed on delta %r", delta[:80])

    def finish(self) -> None:
        self.tokenizer.end()
        if self.capturing:
            self._finalize()

    def sections(self, include_partial: bool = False) -> List[Section]:
        out = list(self.completed)
        if include_partial:
            partial = self._partial_section()
            if partial is not None:
                out.append(partial)
        return out

    def is_valid_section(self, name: str) -> bool:
        if self.loose:
            return True
        if self.allowed_sections is None:
            return True
        return name in self.allowed_sections

    # ---------- JsonTokenListener ----------

    def on_open_object(self) -> None:
        self._open({})

    def on_open_array(self) -> None:
        if self.depth == 0:
            self.is_root_array = True
        self._open([])

    def on_key(self, key: str) -> None:
        self.key_stack[self.depth] = key
        if self.depth == 1:
            self._handle_root_key(key)

    def on_close_object(self) -> None:
        self._close()

    def on_close_array(self) -> None:
        self._close()

    def on_value(self, value: Any) -> None:
        if self.depth == 1 and self.capturing:
            self.current_value = value
            self._finalize()
        elif self.depth > 1 or self.is_root_array:
            self._add_to_parent(value)
        # else: scalar of a rejected root key

    def on_error(self, error: JsonTokenError) -> None:
        self.errors += 1
        logger.warning("JSON section stream: %s", error)

    # ---------- internals ----------

    def _open(self, container: Any) -> None:
        if self.depth > 0:
            # attach right away so partial snapshots see nested content
            self._add_to_parent(container)
        self.depth += 1
        if self.depth == 2 and self.capturing:
            self.current_value = container
        self.value_stack.append(container)

    def _close(self) -> None:
        if not self.value_stack:
            return
        closed = self.value_stack.pop()
        self.key_stack.pop(self.depth, None)
        self.depth -= 1

        if self.depth == 0:
            if self.is_root_array:
                self.is_root_array = False
                self.completed.append(Section(
                    name=ROOT_SECTION,
                    value=closed,
                    value_kind=ValueKind.ARRAY,
                ))
            elif self.capturing:
                # root closed while a key had no value
                self._finalize()
        elif self.depth == 1 and self.capturing:
            self.current_value = closed
            self._finalize()

    def _add_to_parent(self, value: Any) -> None:
        if not self.value_stack:
            return
        parent = self.value_stack[-1]
        if isinstance(parent, list):
            parent.append(value)
            return
        key = self.key_stack.get(self.depth)
        if key is not None:
            parent[key] = value

    def _handle_root_key(self, key: str) -> None:
        if self.capturing:
            self._finalize()
        if self.is_valid_section(key):
            self.capturing = True
            self.current_name = key
            self.current_value = None
        else:
            logger.debug("skipping non-section key %r", key)

    def _finalize(self) -> None:
        if not self.capturing or self.current_name is None:
            return
        self.completed.append(
            finalize_section(self.current_name, self.current_value, self.payload_sections)
        )
        self.capturing = False
        self.current_name = None
        self.current_value = None

    def _partial_section(self) -> Optional[Section]:
        if self.is_root_array and self.value_stack:
            return Section(
                name=ROOT_SECTION,
                value=copy.deepcopy(self.value_stack[0]),
                value_kind=ValueKind.ARRAY,
                complete=False,
            )
        if not self.capturing or self.current_name is None:
            return None
        value = self.current_value
        if value is None and self.depth == 1:
            value = self.tokenizer.pending_string()
            if value is None:
                return None
        else:
            value = copy.deepcopy(value)
        return Section(name=self.current_name, value=value, value_kind=classify(value), complete=False)
