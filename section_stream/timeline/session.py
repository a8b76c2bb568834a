# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/timeline/session.py

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Set

from pydantic import ValidationError

from section_stream.config import Settings, get_settings
from section_stream.protocol import (
    DecoderDelta,
    LifecycleEvent,
    RawDelta,
    ReasoningDelta,
    StreamEvent,
    TokenDelta,
    UserMessageEvent,
    parse_event,
)
from section_stream.streaming.decoder import SectionStreamDecoder, build_decoder
from section_stream.timeline.items import TimelineItem
from section_stream.timeline.reconciler import TimelineReconciler

logger = logging.getLogger(__name__)


class StreamSession:
    """
    One decoder + reconciler pair, fed by discrete stream events.

    Lifecycle:
      started               -> decoder reset, new stream begun on the timeline, event ids forgotten
      completed/interrupted -> decoder flushed, last snapshot applied, stream end marked, reset
      error                 -> decoder and section mirror reset (no stream end)
    """

    def __init__(self, decoder: SectionStreamDecoder, reconciler: TimelineReconciler):
        self.decoder = decoder
        self.reconciler = reconciler
        self._handled_ids: Set[str] = set()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "StreamSession":
        settings = settings or get_settings()
        reconciler = TimelineReconciler(
            batchable_sections=settings.BATCHABLE_SECTIONS,
            display_sections=settings.DISPLAY_SECTIONS or None,
        )
        return cls(build_decoder(settings), reconciler)

    @property
    def timeline(self) -> List[TimelineItem]:
        return self.reconciler.items

    def handle_raw(self, data: Dict[str, Any]) -> bool:
        """Validate a plain message and handle it; malformed messages are logged and ignored."""
        try:
            event = parse_event(data)
        except ValidationError as e:
            logger.warning("ignoring malformed stream event: %s", e.errors()[:1])
            return False
        return self.handle(event)

    def handle(self, event: StreamEvent) -> bool:
        """Process one event. Returns False when the event id was already handled."""
        if event.id is not None:
            if event.id in self._handled_ids:
                logger.debug("event %s already handled, skipping", event.id)
                return False
            self._handled_ids.add(event.id)

        if isinstance(event, RawDelta):
            self.reconciler.apply_raw_delta(event.text)
        elif isinstance(event, ReasoningDelta):
            self.reconciler.apply_reasoning_delta(event.text, event.ts)
        elif isinstance(event, DecoderDelta):
            self._decode(event.text)
        elif isinstance(event, TokenDelta):
            self._decode(event.text)
            self.reconciler.apply_raw_delta(event.text)
        elif isinstance(event, UserMessageEvent):
            self.reconciler.insert_user_message(event.payload)
        elif isinstance(event, LifecycleEvent):
            self._lifecycle(event)
        return True

    def mark_stream_end(self) -> None:
        """Terminal state for a stream that was cancelled by the caller."""
        self.reconciler.mark_stream_end()

    def _decode(self, text: str) -> None:
        self.decoder.feed(text)
        self.reconciler.apply_decoder_snapshot(self.decoder.snapshot())

    def _reset_turn(self) -> None:
        self.decoder.reset()
        self.reconciler.reset_sections()

    def _lifecycle(self, event: LifecycleEvent) -> None:
        if event.signal == "started":
            self.decoder.reset()
            self.reconciler.begin_stream()
            # ids are unique within one stream only
            self._handled_ids = {event.id} if event.id is not None else set()
            return
        if event.signal in ("completed", "interrupted"):
            logger.info("stream %s after %s decoder deltas", event.signal, self.decoder.deltas)
            self.decoder.finish()
            self.reconciler.apply_decoder_snapshot(self.decoder.snapshot())
            self.reconciler.mark_stream_end()
            self._reset_turn()
            return
        logger.warning("stream error: %s", event.message or "<no message>")
        self._reset_turn()
