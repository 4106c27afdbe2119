from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, Optional

import replicate

from libs.core.exceptions import UpstreamModelError
from libs.core.settings import Settings, get_settings
from .llm_client import LLMClient


class LLMClientError(UpstreamModelError):
    """Raised when interaction with LLM fails."""


class ReplicateLLMClient(LLMClient):
    """LLM client powered by Replicate API."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(__name__)
        # Fall back to sensible defaults if custom Settings class is used in tests
        self._log_payloads: bool = bool(getattr(self.settings, "llm_log_payloads", False))
        self.default_model: str = getattr(
            self.settings, "summary_model", "openai/gpt-4o-mini"
        )
        # An empty token leaves the SDK to read REPLICATE_API_TOKEN itself
        token = getattr(self.settings, "replicate_api_token", "") or None
        self.client = replicate.Client(api_token=token)

    def _build_input(
        self, system: str, text: str, temperature: float, max_tokens: int
    ) -> Dict[str, Any]:
        return {
            "system_prompt": system,
            "prompt": text,
            "temperature": temperature,
            "max_completion_tokens": max_tokens,
        }

    def _log_request(self, model: str, input_payload: Dict[str, Any]) -> None:
        try:
            payload_json = json.dumps(input_payload, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            payload_json = repr(input_payload)
        lvl = logging.INFO if self._log_payloads else logging.DEBUG
        self.logger.log(lvl, "Replicate request | model=%s | input=%s", model, payload_json)

    def _join_output(self, out: Any) -> str:
        """Normalize the various shapes ``replicate.run`` may return into text."""
        if out is None:
            return ""
        if isinstance(out, str):
            return out
        if isinstance(out, dict):
            # Some models return a dict with keys like 'json_output' or 'text'
            if "json_output" in out:
                jo = out.get("json_output")
                return jo if isinstance(jo, str) else json.dumps(jo, ensure_ascii=False)
            if isinstance(out.get("text"), str):
                return out["text"]
            return json.dumps(out, ensure_ascii=False, default=str)
        # Many models stream an iterator of string chunks
        try:
            return "".join(str(c) for c in out)
        except TypeError as exc:
            raise LLMClientError("Unexpected output shape from Replicate") from exc

    def complete(
        self,
        system: str,
        text: str,
        *,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> str:
        model = model or self.default_model
        input_payload = self._build_input(system, text, temperature, max_tokens)
        self._log_request(model, input_payload)
        try:
            out = self.client.run(model, input=input_payload)
        except Exception as exc:
            self.logger.exception("Replicate request failed: %s", exc)
            raise LLMClientError(f"Replicate request failed: {exc}") from exc
        return self._join_output(out)

    def stream(
        self,
        system: str,
        text: str,
        *,
        temperature: float,
        max_tokens: int,
        model: Optional[str] = None,
    ) -> Iterator[str]:
        model = model or self.default_model
        input_payload = self._build_input(system, text, temperature, max_tokens)
        self._log_request(model, input_payload)
        try:
            for event in self.client.stream(model, input=input_payload):
                # Non-output server events render as empty strings
                fragment = str(event)
                if fragment:
                    yield fragment
        except Exception as exc:
            self.logger.exception("Replicate stream failed: %s", exc)
            raise LLMClientError(f"Replicate stream failed: {exc}") from exc


__all__ = ["LLMClientError", "ReplicateLLMClient"]
