# src/llm/adapters/ollama_adapter.py — v2
"""Ollama local LLM adapter implementing BaseLLMClient.

Uses the ollama Python SDK. Vision support is model-dependent. This is the
default provider: llava for identification, llama3.2 for detail generation.
"""

from __future__ import annotations

import time
from typing import Any

import httpx
from pydantic import BaseModel

from bitecache.core.errors import ModelUnavailableError
from bitecache.llm.base_client import BaseLLMClient
from bitecache.llm.models import ImageInput, LLMResponse, Message

# Models known to support vision
_VISION_MODELS = {"llava", "bakllava", "llava-llama3", "moondream", "llama3.2-vision"}


class OllamaAdapter(BaseLLMClient):
    """Ollama local inference adapter."""

    def __init__(
        self, model: str = "llava:7b", host: str = "http://localhost:11434", **kwargs: Any,
    ):
        self._model = model
        self._host = host

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        msgs: list[dict[str, Any]] = []
        if system:
            msgs.append({"role": "system", "content": system})
        for m in messages:
            msgs.append({"role": m.role, "content": m.content})
        return await self._chat(msgs, max_tokens, temperature, response_format)

    async def complete_with_vision(
        self,
        messages: list[Message],
        images: list[ImageInput],
        system: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        response_format: type[BaseModel] | None = None,
    ) -> LLMResponse:
        msgs: list[dict[str, Any]] = []
        if system:
            msgs.append({"role": "system", "content": system})

        # Combine text + images into single user message
        text = " ".join(m.content for m in messages)
        img_data = [img.to_base64() for img in images]
        msgs.append({"role": "user", "content": text, "images": img_data})
        return await self._chat(msgs, max_tokens, temperature, response_format)

    @property
    def supports_vision(self) -> bool:
        return any(v in self._model.lower() for v in _VISION_MODELS)

    @property
    def provider_name(self) -> str:
        return "ollama"

    @property
    def model_name(self) -> str:
        return self._model

    async def _chat(
        self,
        msgs: list[dict[str, Any]],
        max_tokens: int,
        temperature: float,
        response_format: type[BaseModel] | None,
    ) -> LLMResponse:
        import ollama

        client = ollama.AsyncClient(host=self._host)
        kwargs: dict[str, Any] = {
            "model": self._model,
            "messages": msgs,
            "options": {"num_predict": max_tokens, "temperature": temperature},
        }
        if response_format is not None:
            kwargs["format"] = "json"

        t0 = time.monotonic()
        try:
            resp = await client.chat(**kwargs)
        except (ollama.ResponseError, httpx.HTTPError, ConnectionError) as e:
            raise ModelUnavailableError(f"Ollama call to {self._model} failed: {e}") from e
        latency = int((time.monotonic() - t0) * 1000)

        return LLMResponse(
            content=resp["message"]["content"] or "",
            input_tokens=resp.get("prompt_eval_count", 0) or 0,
            output_tokens=resp.get("eval_count", 0) or 0,
            model=self._model,
            provider="ollama",
            latency_ms=latency,
            raw_response=resp,
        )
