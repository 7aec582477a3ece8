"""Groq model backend via its OpenAI-compatible chat completions API."""

import os
import time
from typing import Optional, Sequence
from openai import AsyncOpenAI
import structlog

from .base import InvocationHandle, ModelInfo
from ...state.history import ConversationMessage
from ...tools.base import Tool


logger = structlog.get_logger()


class GroqChatModel(InvocationHandle):
    """
    Groq-hosted Llama models.

    Retries are delegated to the OpenAI client (`max_retries` retries after
    the first attempt), which backs off on rate limits, timeouts and 5xx
    responses. When tools are configured, requested tool calls are run and
    their results sent back, for at most `max_tool_rounds` rounds.
    """

    def __init__(
        self,
        info: ModelInfo,
        api_key: Optional[str] = None,
        base_url: str = "https://api.groq.com/openai/v1",
        temperature: float = 0.0,
        max_retries: int = 2,
        timeout: float = 30.0,
        tools: Optional[Sequence[Tool]] = None,
        max_tool_rounds: int = 4,
    ):
        super().__init__(info, tools)
        self.api_key = api_key
        self.base_url = base_url
        self.temperature = temperature
        self.max_retries = max_retries
        self.timeout = timeout
        self.max_tool_rounds = max_tool_rounds
        self.client: Optional[AsyncOpenAI] = None
        self.last_latency_ms: Optional[float] = None

    def _get_client(self) -> AsyncOpenAI:
        if self.client is None:
            api_key = self.api_key or os.getenv("GROQ_API_KEY")
            if not api_key:
                raise ValueError("GROQ_API_KEY environment variable not set")

            self.client = AsyncOpenAI(
                api_key=api_key,
                base_url=self.base_url,
                max_retries=self.max_retries,
                timeout=self.timeout,
            )
            logger.info(
                "Groq client initialized",
                model=self.info.model_name,
                max_retries=self.max_retries,
            )
        return self.client

    async def invoke(self, messages: Sequence[ConversationMessage]) -> str:
        client = self._get_client()
        start_time = time.time()
        self.last_tool_calls = []

        request = [message.to_request() for message in messages]
        options = {"model": self.info.model_name, "temperature": self.temperature}
        if self.tools:
            options["tools"] = [tool.to_openai() for tool in self.tools]

        for _ in range(self.max_tool_rounds + 1):
            response = await client.chat.completions.create(
                messages=list(request), **options
            )
            if not response.choices:
                raise RuntimeError("Groq returned no choices")

            message = response.choices[0].message
            if not message.tool_calls:
                break

            request.append(
                {
                    "role": "assistant",
                    "content": message.content or "",
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.function.name,
                                "arguments": call.function.arguments,
                            },
                        }
                        for call in message.tool_calls
                    ],
                }
            )
            for call in message.tool_calls:
                result = self.call_tool(call.function.name, call.function.arguments)
                request.append(
                    {"role": "tool", "tool_call_id": call.id, "content": result}
                )
        else:
            raise RuntimeError("Groq kept requesting tools")

        self.last_latency_ms = (time.time() - start_time) * 1000
        content = message.content
        if content is None:
            raise RuntimeError("Groq returned an empty message")

        logger.debug(
            "Groq response received",
            model=self.info.model_name,
            latency_ms=round(self.last_latency_ms, 1),
            response_length=len(content),
            tool_calls=len(self.last_tool_calls),
        )
        return content

    async def close(self) -> None:
        if self.client is not None:
            await self.client.close()
            self.client = None

    def get_status(self) -> dict:
        status = super().get_status()
        status.update(
            {
                "initialized": self.client is not None,
                "max_retries": self.max_retries,
                "last_latency_ms": self.last_latency_ms,
            }
        )
        return status
