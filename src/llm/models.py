# src/llm/models.py — v2
"""Provider-neutral request/response types for model calls.

Adapters receive Message and ImageInput lists and must return an
LLMResponse whose ``content`` is the raw, untrusted model text.
"""

from __future__ import annotations

import base64
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class Message(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ImageInput(BaseModel):
    """A dish photo attached to a vision call."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    media_type: str

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_uri(self) -> str:
        """``data:`` URI form used by providers that take image URLs."""
        return f"data:{self.media_type};base64,{self.to_base64()}"


class LLMResponse(BaseModel):
    """Normalized result of one model call."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str
    provider: str
    latency_ms: int
    raw_response: Any = None
