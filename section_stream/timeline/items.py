# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/timeline/items.py
from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field


class _ItemBase(BaseModel):
    """Base for timeline items; `order` equals the item's position in the timeline."""
    order: int

    def dump_model(self) -> Dict[str, Any]:
        return self.model_dump()


class RawToken(_ItemBase):
    type: Literal["rawToken"] = "rawToken"
    content: str = ""
    started_at: float


class ReasoningSpan(_ItemBase):
    type: Literal["reasoningSpan"] = "reasoningSpan"
    content: str = ""
    started_at: float
    ended_at: float


class ParsedSection(_ItemBase):
    type: Literal["parsedSection"] = "parsedSection"
    section_name: str
    content: Any = None
    created_at: float
    is_new: bool = True
    is_updated: bool = False
    # action_code of an action payload, links the entry to the action it describes
    action_id: Optional[str] = None


class UserMessage(_ItemBase):
    type: Literal["userMessage"] = "userMessage"
    payload: Any = None
    created_at: float


class StreamEnd(_ItemBase):
    type: Literal["streamEnd"] = "streamEnd"
    created_at: float


TimelineItem = Annotated[
    Union[RawToken, ReasoningSpan, ParsedSection, UserMessage, StreamEnd],
    Field(discriminator="type"),
]
