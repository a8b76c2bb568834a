# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

"""
Incremental section decoding and timeline reconciliation for agent token streams.
File: section_stream/__init__.py
"""
from section_stream.streaming.sections import Section, ValueKind
from section_stream.streaming.decoder import SectionStreamDecoder, build_decoder
from section_stream.timeline.reconciler import TimelineReconciler
from section_stream.timeline.session import StreamSession
from section_stream.logging_config import configure_logging

__all__ = [
    "Section",
    "ValueKind",
    "SectionStreamDecoder",
    "build_decoder",
    "TimelineReconciler",
    "StreamSession",
    "configure_logging",
]
