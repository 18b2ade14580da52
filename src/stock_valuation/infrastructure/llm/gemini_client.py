"""LLM gateway for Gemini access via the OpenAI-compatible Poe API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from openai import OpenAI, OpenAIError

from stock_valuation.domain.errors import NarrativeError


class GeminiClient:
    """Minimal Gemini client hiding transport plumbing from the narrative stage."""

    def __init__(
        self,
        api_key: str,
        model: str,
        *,
        proxy_url: Optional[str] = None,
        timeout: float = 60.0,
        default_thinking_budget: Optional[int] = None,
        base_url: str = "https://api.poe.com/v1",
    ) -> None:
        if not api_key:
            raise ValueError("POE_API_KEY is required to contact Gemini endpoints.")

        http_client_kwargs: Dict[str, Any] = {
            "timeout": httpx.Timeout(timeout, connect=10.0),
        }
        if proxy_url:
            http_client_kwargs["proxy"] = proxy_url

        self._http_client = httpx.Client(**http_client_kwargs)
        self._client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            http_client=self._http_client,
        )
        self._model = model
        self._default_thinking_budget = default_thinking_budget

    @property
    def model(self) -> str:
        return self._model

    def generate(
        self,
        messages: List[Dict[str, str]],
        *,
        temperature: float = 0.3,
        thinking_budget: Optional[int] = None,
    ) -> str:
        """Fire a chat completion request and return the assistant message content."""
        resolved_budget = (
            self._default_thinking_budget if thinking_budget is None else thinking_budget
        )
        extra_body: Dict[str, Any] = {}
        if resolved_budget is not None:
            extra_body["thinking_budget"] = resolved_budget

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                temperature=temperature,
                messages=messages,
                extra_body=extra_body or None,
            )
        except OpenAIError as exc:
            raise NarrativeError(
                "Failed to get analysis from AI. The model may be overloaded.",
                {"model": self._model, "reason": str(exc)},
            ) from exc
        if not response.choices:
            raise NarrativeError("No analysis content received from AI.", {"model": self._model})
        content = response.choices[0].message.content or ""
        if not content.strip():
            raise NarrativeError("No analysis content received from AI.", {"model": self._model})
        return content

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self._http_client.close()
