# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/config.py
from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Only top-level sections belong here, not nested object properties
DEFAULT_JSON_SECTIONS = [
    "response",
    "action_json",
    "section_id",
    "name",
    "node_payload",
    "node_id",
]
DEFAULT_TAG_SECTIONS = ["response", "action_json", "reasoning"]
DEFAULT_PAYLOAD_SECTIONS = ["action_json", "params"]
DEFAULT_BATCHABLE_SECTIONS = ["action_json"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SECTION_STREAM_",
        env_file=".env",
        extra="ignore",
    )

    # Decoder
    GRAMMAR: Literal["json", "tag"] = "json"
    JSON_SECTIONS: Annotated[Optional[list[str]], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_JSON_SECTIONS)
    )
    JSON_SECTIONS_LOOSE: bool = False
    PAYLOAD_SECTIONS: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_PAYLOAD_SECTIONS)
    )
    TAG_SECTIONS: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_TAG_SECTIONS)
    )
    EMIT_PARTIAL: bool = False

    # Timeline
    BATCHABLE_SECTIONS: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_BATCHABLE_SECTIONS)
    )
    DISPLAY_SECTIONS: Annotated[Optional[list[str]], NoDecode] = None

    LOG_LEVEL: str = "INFO"

    # Comma-separated env values become lists; an empty list disables an allow-list
    @field_validator(
        "JSON_SECTIONS",
        "PAYLOAD_SECTIONS",
        "TAG_SECTIONS",
        "BATCHABLE_SECTIONS",
        "DISPLAY_SECTIONS",
        mode="before",
    )
    @classmethod
    def _split_csv(cls, v):
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        return v


@lru_cache()
def get_settings() -> Settings:
    return Settings()
