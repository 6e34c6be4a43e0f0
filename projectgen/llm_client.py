"""Async client for the LLM completion service.

Wraps an Ollama-compatible HTTP API (``/api/generate``, ``/api/tags``) with
per-request timeouts and structured responses. Transport failures never raise;
they come back as an ``LLMResponse`` with ``success=False`` so callers can map
them onto the pipeline's error taxonomy. Timeouts are flagged separately via
``timed_out`` because they are retryable by the caller while malformed output
is not.

Typical usage::

    client = LLMClient()
    resp = await client.generate("Plan a SaaS app", model="qwen3:8b", max_tokens=4096)
    if resp.success:
        print(resp.text)
"""

from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, Field


class LLMResponse(BaseModel):
    """Structured response from a completion call."""

    text: str = Field(default="", description="Generated text")
    model: str = Field(default="", description="Model that produced the response")
    duration_ms: float = Field(default=0.0, description="Server-side generation time in ms")
    prompt_tokens: int = Field(default=0)
    completion_tokens: int = Field(default=0)
    success: bool = Field(default=True, description="Whether the request succeeded")
    timed_out: bool = Field(default=False, description="Whether the deadline was exceeded")
    error: str | None = Field(default=None, description="Error message on failure")


class LLMClient:
    """Async client for the completion service.

    The client uses ``httpx.AsyncClient`` for non-blocking HTTP. Cancelling
    the awaiting task cancels the in-flight request.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout: int = 120,
        temperature: float = 0.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.temperature = temperature

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        """Return a fresh ``AsyncClient`` configured with our base URL and timeout."""
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
        )

    @staticmethod
    def _extract_text(data: dict) -> str:
        """Pull the generated text out of a /api/generate JSON response."""
        return data.get("response", "")

    @staticmethod
    def _extract_duration_ms(data: dict) -> float:
        """Extract the total generation duration in milliseconds.

        The API returns ``total_duration`` in **nanoseconds**.
        """
        ns = data.get("total_duration", 0)
        return ns / 1_000_000.0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        model: str,
        system: str = "",
        max_tokens: Optional[int] = None,
        seed: Optional[int] = None,
    ) -> LLMResponse:
        """Generate text from a prompt.

        Args:
            prompt: The user prompt.
            model: Model tag to use.
            system: Optional system prompt.
            max_tokens: Upper bound on generated tokens.
            seed: Sampling seed; identical prompts with the same seed are
                reproducible at temperature 0.

        Returns:
            An ``LLMResponse`` with the generated text or an error.
        """
        options: dict = {"temperature": self.temperature}
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        if seed is not None:
            options["seed"] = seed

        payload: dict = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": options,
        }
        if system:
            payload["system"] = system

        try:
            async with self._client() as client:
                response = await client.post("/api/generate", json=payload)
                response.raise_for_status()
                data = response.json()
                return LLMResponse(
                    text=self._extract_text(data),
                    model=data.get("model", model),
                    duration_ms=self._extract_duration_ms(data),
                    prompt_tokens=data.get("prompt_eval_count", 0),
                    completion_tokens=data.get("eval_count", 0),
                    success=True,
                )
        except httpx.ConnectError:
            return LLMResponse(
                model=model,
                success=False,
                error=f"Cannot connect to the completion service at {self.base_url}.",
            )
        except httpx.TimeoutException:
            return LLMResponse(
                model=model,
                success=False,
                timed_out=True,
                error=f"Completion request timed out after {self.timeout}s.",
            )
        except httpx.HTTPStatusError as exc:
            return LLMResponse(
                model=model,
                success=False,
                error=f"Completion service returned HTTP {exc.response.status_code}: "
                f"{exc.response.text[:500]}",
            )
        except (httpx.HTTPError, ValueError) as exc:
            return LLMResponse(
                model=model,
                success=False,
                error=f"Unexpected error during completion: {exc}",
            )
