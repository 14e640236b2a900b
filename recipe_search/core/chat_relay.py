"""
Relays a conversation to the chat-completion service and returns the first completion.
"""

import openai
from openai import AsyncOpenAI

from .errors import MalformedResponse, UpstreamUnavailable
from .validation import validate_conversation
from ..util.logging import logger


class ChatRelay:
    """Forward role/content messages verbatim with fixed sampling parameters."""

    def __init__(self, client: AsyncOpenAI, model: str = "gpt-3.5-turbo", temperature: float = 0.7, max_tokens: int = 1000):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def reply(self, conversation) -> str:
        messages = validate_conversation(conversation)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except openai.OpenAIError as e:
            logger.log_chat_relay(self.model, len(messages), "failed", {"error": str(e)})
            raise UpstreamUnavailable(f"Chat completion request failed: {e}") from e

        if not getattr(response, "choices", None):
            raise MalformedResponse("Chat completion response contained no choices")

        content = response.choices[0].message.content
        logger.log_chat_relay(self.model, len(messages))
        return content or ""
