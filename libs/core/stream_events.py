"""Typed events sent over the enrichment stream and their SSE framing."""

from __future__ import annotations

import json
from typing import List, Literal, Optional, Union

from pydantic import BaseModel

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class StatusEvent(BaseModel):
    type: Literal["status"] = "status"
    message: str


class SummaryEvent(BaseModel):
    type: Literal["summary"] = "summary"
    content: str


class TagsEvent(BaseModel):
    type: Literal["tags"] = "tags"
    tags: List[str]


class CompleteEvent(BaseModel):
    type: Literal["complete"] = "complete"
    summary: str
    tags: List[str]
    tokens: int


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    message: str
    code: Optional[str] = None


StreamEvent = Union[StatusEvent, SummaryEvent, TagsEvent, CompleteEvent, ErrorEvent]

TERMINAL_TYPES = frozenset({"complete", "error"})


def is_terminal(event: StreamEvent) -> bool:
    return event.type in TERMINAL_TYPES


def to_sse(event: StreamEvent) -> str:
    """Frame an event as one ``data:`` line followed by a blank line."""
    payload = event.model_dump(exclude_none=True)
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


__all__ = [
    "SSE_HEADERS",
    "StatusEvent",
    "SummaryEvent",
    "TagsEvent",
    "CompleteEvent",
    "ErrorEvent",
    "StreamEvent",
    "is_terminal",
    "to_sse",
]
