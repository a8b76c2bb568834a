# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/streaming/decoder.py

from __future__ import annotations

import logging
from typing import List, Optional

from section_stream.config import Settings, get_settings
from section_stream.streaming.grammar import SectionGrammar
from section_stream.streaming.json_grammar import JsonObjectGrammar
from section_stream.streaming.sections import Section
from section_stream.streaming.tag_grammar import DelimitedTagGrammar

logger = logging.getLogger(__name__)


class SectionStreamDecoder:
    """
    Incremental decoder of named sections from a token stream.

    One grammar instance per decoder; one decoder per stream session.
    The completed part of `snapshot()` only ever grows until `reset()`.
    """

    def __init__(self, grammar: SectionGrammar, *, emit_partial: bool = False):
        self.grammar = grammar
        self.emit_partial = emit_partial
        self.deltas = 0

    def feed(self, delta: str) -> None:
        if not delta:
            return
        self.deltas += 1
        try:
            self.grammar.feed(delta)
        except Exception:
            # grammars absorb malformed input themselves; keep the stream alive regardless
            logger.exception("%s grammar raised on delta #%s", self.grammar.name, self.deltas)

    def snapshot(self, include_partial: Optional[bool] = None) -> List[Section]:
        if include_partial is None:
            include_partial = self.emit_partial
        return self.grammar.sections(include_partial=include_partial)

    def finish(self) -> None:
        try:
            self.grammar.finish()
        except Exception:
            logger.exception("%s grammar raised on finish", self.grammar.name)

    def reset(self) -> None:
        self.grammar.reset()
        self.deltas = 0


def build_grammar(settings: Settings) -> SectionGrammar:
    if settings.GRAMMAR == "json":
        return JsonObjectGrammar(
            settings.JSON_SECTIONS or None,
            loose=settings.JSON_SECTIONS_LOOSE,
            payload_sections=settings.PAYLOAD_SECTIONS,
        )
    if settings.GRAMMAR == "tag":
        return DelimitedTagGrammar(
            settings.TAG_SECTIONS,
            payload_sections=settings.PAYLOAD_SECTIONS,
        )
    raise ValueError(f"Unknown section grammar: {settings.GRAMMAR!r}")


def build_decoder(settings: Optional[Settings] = None) -> SectionStreamDecoder:
    if settings is None:
        settings = get_settings()
    return SectionStreamDecoder(build_grammar(settings), emit_partial=settings.EMIT_PARTIAL)
