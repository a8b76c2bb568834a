# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/timeline/reconciler.py

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Optional, Sequence

from section_stream.streaming.sections import Section, ValueKind
from section_stream.timeline.items import (
    ParsedSection,
    RawToken,
    ReasoningSpan,
    StreamEnd,
    TimelineItem,
    UserMessage,
)

logger = logging.getLogger(__name__)

REASONING_SECTION = "reasoning"


@dataclass
class _MirrorEntry:
    name: str
    content: Any
    item_index: int


class TimelineReconciler:
    """
    Owns the ordered display timeline of one stream session.

    Raw and reasoning deltas extend the nearest same-kind item unless a
    boundary sits between it and the end of the timeline. Decoder snapshots
    are reconciled positionally against a private mirror of the entries
    already shown: the tail entry may be updated (or renamed) in place,
    anything beyond the mirror is appended. Shown entries that drop out of
    the decoder output are removed and the timeline is renumbered.

    Only the last mirrored entry is compared, so a revision of an earlier,
    already shown entry is not picked up.

    Several streams may share one timeline; `begin_stream()` starts a new
    one, and each stream gets at most one streamEnd.
    """

    def __init__(
            self,
            *,
            batchable_sections: Iterable[str] = ("action_json",),
            display_sections: Optional[Iterable[str]] = None,
            clock: Callable[[], float] = time.time,
    ):
        self.batchable_sections = frozenset(batchable_sections or ())
        self.display_sections = frozenset(display_sections) if display_sections is not None else None
        self.clock = clock
        self.items: List[TimelineItem] = []
        self._mirror: List[_MirrorEntry] = []
        # index of the first item of the current stream
        self._stream_start = 0

    # ---------- deltas ----------

    def apply_raw_delta(self, text: str) -> None:
        if not text:
            return
        for item in reversed(self.items):
            if isinstance(item, UserMessage):
                break
            if isinstance(item, RawToken):
                item.content += text
                item.started_at = self.clock()
                return
        self._append(RawToken(order=len(self.items), content=text, started_at=self.clock()))

    def apply_reasoning_delta(self, text: str, ts: Optional[float] = None) -> None:
        if not text:
            return
        ts = self.clock() if ts is None else ts
        for item in reversed(self.items):
            if isinstance(item, UserMessage):
                break
            if isinstance(item, ParsedSection) and item.section_name != REASONING_SECTION:
                break
            if isinstance(item, ReasoningSpan):
                item.content += text
                item.ended_at = ts
                return
        self._append(ReasoningSpan(order=len(self.items), content=text, started_at=ts, ended_at=ts))

    def insert_user_message(self, payload: Any = None) -> UserMessage:
        item = UserMessage(order=len(self.items), payload=payload, created_at=self.clock())
        self._append(item)
        return item

    def mark_stream_end(self) -> None:
        if self.items and isinstance(self.items[-1], StreamEnd):
            logger.debug("last item is already streamEnd, skipping duplicate")
            return
        if any(isinstance(item, StreamEnd) for item in self.items[self._stream_start:]):
            logger.debug("current stream already has a streamEnd, skipping duplicate")
            return
        self._append(StreamEnd(order=len(self.items), created_at=self.clock()))

    def begin_stream(self) -> None:
        """A new stream starts on the same timeline; it gets its own stream end."""
        self._mirror = []
        self._stream_start = len(self.items)

    # ---------- decoder output ----------

    def apply_decoder_snapshot(self, sections: Sequence[Section]) -> None:
        entries = self._display_entries(sections)

        # An open section can fan out to fewer entries once finalized
        # (a payload string that turns into an empty batch)
        if len(entries) < len(self._mirror):
            self._drop_shown(len(entries))

        # Compare only our last entry with the one at the same index
        last = len(self._mirror) - 1
        if last >= 0:
            known = self._mirror[last]
            name, content = entries[last]
            if name != known.name or content != known.content:
                self._revise(known, name, content)

        # Everything beyond the mirror is new
        for name, content in entries[len(self._mirror):]:
            item = ParsedSection(
                order=len(self.items),
                section_name=name,
                content=copy.deepcopy(content),
                created_at=self.clock(),
                action_id=self._action_id(name, content),
            )
            self._append(item)
            self._mirror.append(_MirrorEntry(name=name, content=copy.deepcopy(content), item_index=item.order))

    def reset_sections(self) -> None:
        """Forget which sections were shown; the timeline itself is kept."""
        self._mirror = []

    # ---------- internals ----------

    def _revise(self, known: _MirrorEntry, name: str, content: Any) -> None:
        item = self.items[known.item_index]
        action_id = self._action_id(name, content)
        if name != known.name:
            logger.debug("shown section %r became %r", known.name, name)
            item.section_name = name
            item.action_id = action_id
        else:
            item.action_id = action_id or item.action_id
        item.content = copy.deepcopy(content)
        item.is_new = False
        item.is_updated = True
        known.name = name
        known.content = copy.deepcopy(content)

    def _drop_shown(self, keep: int) -> None:
        stale = {entry.item_index for entry in self._mirror[keep:]}
        logger.debug("removing %s shown entries no longer in decoder output", len(stale))
        self._mirror = self._mirror[:keep]
        moved = {}
        kept: List[TimelineItem] = []
        for item in self.items:
            if item.order in stale:
                continue
            moved[item.order] = len(kept)
            item.order = len(kept)
            kept.append(item)
        self.items[:] = kept
        for entry in self._mirror:
            entry.item_index = moved[entry.item_index]

    def _append(self, item: TimelineItem) -> None:
        self.items.append(item)

    def _display_entries(self, sections: Sequence[Section]) -> List[tuple[str, Any]]:
        entries: List[tuple[str, Any]] = []
        for section in sections:
            if self.display_sections is not None and section.name not in self.display_sections:
                continue
            if section.name in self.batchable_sections and section.value_kind is ValueKind.ARRAY:
                # one entry per action; an empty batch shows nothing
                entries.extend((section.name, element) for element in section.value)
                continue
            entries.append((section.name, section.value))
        return entries

    def _action_id(self, name: str, content: Any) -> Optional[str]:
        if name not in self.batchable_sections or not isinstance(content, dict):
            return None
        code = content.get("action_code")
        return str(code) if code is not None else None
