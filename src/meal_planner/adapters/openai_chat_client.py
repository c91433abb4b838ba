"""OpenAI chat-completions client with tool calling."""

from dataclasses import dataclass

import openai
from openai import AsyncOpenAI

from meal_planner.domain.generation import ChatTurn, ToolCall
from meal_planner.errors import GenerationFailedError, GenerationTimeoutError
from meal_planner.services.generation import ChatClient


@dataclass
class OpenAIChatClient(ChatClient):
    """Chat client backed by the OpenAI chat-completions API."""

    client: AsyncOpenAI
    model: str

    @classmethod
    def create(
        cls,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 60,
    ) -> "OpenAIChatClient":
        """Create a client for OpenAI or any compatible endpoint."""
        return cls(
            client=AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout_seconds),
            model=model,
        )

    async def complete(
        self,
        *,
        messages: list[dict[str, object]],
        tools: list[dict[str, object]],
        temperature: float,
        max_tokens: int,
    ) -> ChatTurn:
        """Request the next assistant turn."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=tools,
                tool_choice="auto",
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APITimeoutError as exc:
            raise GenerationTimeoutError("The generative service timed out.") from exc
        except openai.APIError as exc:
            raise GenerationFailedError(f"Generative service error: {exc}") from exc

        if not response.choices:
            raise GenerationFailedError("The generative service returned no choices.")
        choice = response.choices[0]
        message = choice.message
        tool_calls = tuple(
            ToolCall(id=call.id, name=call.function.name, arguments=call.function.arguments)
            for call in message.tool_calls or []
        )
        return ChatTurn(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.client.close()
