# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/protocol.py
from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter


class _EventBase(BaseModel):
    """
    One inbound message of a stream session.

    id: optional idempotency key; a session handles each id at most once.
    """
    id: Optional[str] = None

    def dump_model(self) -> Dict[str, Any]:
        return self.model_dump()


class RawDelta(_EventBase):
    type: Literal["delta.raw"] = "delta.raw"
    text: str


class ReasoningDelta(_EventBase):
    type: Literal["delta.reasoning"] = "delta.reasoning"
    text: str
    ts: Optional[float] = None


class DecoderDelta(_EventBase):
    type: Literal["delta.decoder"] = "delta.decoder"
    text: str


class TokenDelta(_EventBase):
    """Text that is both shown as narration and decoded into sections."""
    type: Literal["delta.token"] = "delta.token"
    text: str


class UserMessageEvent(_EventBase):
    type: Literal["user.message"] = "user.message"
    payload: Any = None


class LifecycleEvent(_EventBase):
    type: Literal["lifecycle"] = "lifecycle"
    signal: Literal["started", "completed", "interrupted", "error"]
    message: Optional[str] = None


StreamEvent = Annotated[
    Union[RawDelta, ReasoningDelta, DecoderDelta, TokenDelta, UserMessageEvent, LifecycleEvent],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter = TypeAdapter(StreamEvent)


def parse_event(data: Dict[str, Any]) -> StreamEvent:
    return _event_adapter.validate_python(data)
