"""Gemini model backend."""

import asyncio
import os
from typing import List, Optional, Sequence
import google.generativeai as genai
import structlog

from .base import InvocationHandle, ModelInfo
from ...state.history import ConversationMessage, Role
from ...tools.base import Tool


logger = structlog.get_logger()


class GeminiChatModel(InvocationHandle):
    """
    Gemini models through the google-generativeai SDK.

    The system message becomes the model's system instruction; user and
    assistant turns map to Gemini's "user" and "model" roles. Each request
    is retried up to `max_retries` times after the first attempt, with
    exponential backoff. Function calls are answered with the tool result
    for at most `max_tool_rounds` rounds.
    """

    def __init__(
        self,
        info: ModelInfo,
        api_key: Optional[str] = None,
        temperature: float = 0.7,
        max_output_tokens: int = 2048,
        max_retries: int = 2,
        timeout: float = 30.0,
        tools: Optional[Sequence[Tool]] = None,
        max_tool_rounds: int = 4,
    ):
        super().__init__(info, tools)
        self.api_key = api_key
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.max_retries = max(0, max_retries)
        self.timeout = timeout
        self.max_tool_rounds = max_tool_rounds
        self.configured = False

    def _configure(self) -> None:
        if self.configured:
            return

        api_key = self.api_key or os.getenv("GOOGLE_API_KEY")
        if not api_key:
            raise ValueError("GOOGLE_API_KEY environment variable not set")

        genai.configure(api_key=api_key)
        self.configured = True
        logger.info("Gemini client configured", model=self.info.model_name)

    @staticmethod
    def _split_messages(messages: Sequence[ConversationMessage]):
        system_parts = []
        contents = []
        for message in messages:
            if message.role == Role.SYSTEM:
                system_parts.append(message.content)
            else:
                contents.append(
                    {
                        "role": "model" if message.role == Role.ASSISTANT else "user",
                        "parts": [message.content],
                    }
                )
        return "\n\n".join(system_parts), contents

    @staticmethod
    def _function_calls(response) -> List:
        if not response.candidates:
            return []
        calls = []
        for part in response.candidates[0].content.parts:
            function_call = getattr(part, "function_call", None)
            if function_call and function_call.name:
                calls.append(function_call)
        return calls

    async def _generate(self, model, contents, generation_config):
        for attempt in range(self.max_retries + 1):
            try:
                return await model.generate_content_async(
                    contents,
                    generation_config=generation_config,
                    request_options={"timeout": self.timeout},
                )

            except Exception as e:
                logger.warning(
                    f"Gemini attempt {attempt + 1} failed",
                    model=self.info.model_name,
                    error=str(e),
                )
                if attempt == self.max_retries:
                    logger.error("All Gemini retry attempts failed", error=str(e))
                    raise

                wait_time = 2**attempt
                logger.info(f"Retrying Gemini in {wait_time}s", attempt=attempt + 1)
                await asyncio.sleep(wait_time)

    async def invoke(self, messages: Sequence[ConversationMessage]) -> str:
        self._configure()
        self.last_tool_calls = []

        system_instruction, contents = self._split_messages(messages)
        options = {
            "model_name": self.info.model_name,
            "system_instruction": system_instruction or None,
        }
        if self.tools:
            options["tools"] = [
                {
                    "function_declarations": [
                        tool.to_function_declaration() for tool in self.tools
                    ]
                }
            ]
        model = genai.GenerativeModel(**options)
        generation_config = genai.GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
        )

        for _ in range(self.max_tool_rounds + 1):
            response = await self._generate(model, contents, generation_config)
            function_calls = self._function_calls(response)
            if not function_calls:
                text = response.text
                if not text:
                    raise RuntimeError("Gemini returned an empty response")
                return text

            contents.append(response.candidates[0].content)
            contents.append(
                {
                    "role": "user",
                    "parts": [
                        genai.protos.Part(
                            function_response=genai.protos.FunctionResponse(
                                name=call.name,
                                response={
                                    "result": self.call_tool(call.name, dict(call.args))
                                },
                            )
                        )
                        for call in function_calls
                    ],
                }
            )

        raise RuntimeError("Gemini kept requesting tools")

    def get_status(self) -> dict:
        status = super().get_status()
        status.update(
            {"initialized": self.configured, "max_retries": self.max_retries}
        )
        return status
