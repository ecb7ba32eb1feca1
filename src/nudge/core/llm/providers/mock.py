"""Mock LLM provider for testing."""

from __future__ import annotations

import asyncio

from nudge.core.llm.provider import ProviderResponse


class MockProvider:
    """Mock provider for testing: returns canned copy, optionally slow or failing."""

    def __init__(
        self,
        response_content: str = "Keep the streak alive today",
        *,
        delay_seconds: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.response_content = response_content
        self.delay_seconds = delay_seconds
        self.error = error
        self.last_system_message: str = ""
        self.last_user_message: str = ""
        self.call_count: int = 0

    async def generate(
        self,
        system_message: str,
        user_message: str,
        max_tokens: int = 100,
        temperature: float = 0.8,
    ) -> ProviderResponse:
        self.last_system_message = system_message
        self.last_user_message = user_message
        self.call_count += 1
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return ProviderResponse(
            content=self.response_content,
            input_tokens=len(system_message.split()) + len(user_message.split()),
            output_tokens=len(self.response_content.split()),
            model="mock",
            latency_ms=self.delay_seconds * 1000,
        )
