# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Elena Viter

# section_stream/streaming/sections.py

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


class ValueKind(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    OBJECT = "object"
    ARRAY = "array"


@dataclass
class Section:
    """
    One named unit of structured output extracted from the stream.

    Identity is positional (index among the decoder's sections); the same name
    may appear several times. `complete` is False only for a section that is
    still being captured and was surfaced by a partial snapshot.
    """
    name: str
    value: Any
    value_kind: ValueKind
    complete: bool = True

    @property
    def content(self) -> Any:
        if self.value_kind in (ValueKind.OBJECT, ValueKind.ARRAY):
            return json.dumps(self.value, ensure_ascii=False)
        return self.value


def classify(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    # bool before number: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, list):
        return ValueKind.ARRAY
    return ValueKind.OBJECT


# A string that opens a container whose first member is an escaped quote,
# e.g. "{\"tool_name\": ...}" or "[{\"a\": 1}]"
ESCAPED_JSON_RE = re.compile(r'^["\s]*\[?\s*\{\s*\\"')


def _unescape_double_encoded(s: str) -> str:
    return re.sub(r'"\s*([\[{])', r"\1", s.replace('\\"', '"'))


def _loads_container(text: str) -> Optional[Any]:
    try:
        data = json.loads(text)
    except (ValueError, TypeError):
        return None
    return data if isinstance(data, (dict, list)) else None


def recover_double_encoded(name: str, value: Any, payload_names: Iterable[str] = ()) -> Any:
    """
    Best-effort recovery of JSON that arrived serialized inside a JSON string.

    Payload-like section names are always tried; other strings only when they
    look like escaped JSON. Returns the parsed container, or the original value
    when nothing could be recovered. Never raises.
    """
    if not isinstance(value, str):
        return value
    is_payload = name in set(payload_names or ())
    if not is_payload and not ESCAPED_JSON_RE.search(value):
        return value

    candidates = []
    if is_payload:
        candidates.append(value)
    candidates.append(_unescape_double_encoded(value))
    for text in candidates:
        data = _loads_container(text.strip())
        if data is not None:
            logger.debug("recovered double-encoded JSON for section %s", name)
            return data
    return value


def finalize_section(name: str, value: Any, payload_names: Iterable[str] = ()) -> Section:
    value = recover_double_encoded(name, value, payload_names)
    return Section(name=name, value=value, value_kind=classify(value))
