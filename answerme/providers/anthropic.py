"""Anthropic Messages API."""

from typing import Any

from langchain_core.messages import BaseMessage, SystemMessage

from answerme.providers.base import ChatCompletionsProvider
from answerme.providers.prompts import to_openai_messages

ANTHROPIC_VERSION = "2023-06-01"


class AnthropicProvider(ChatCompletionsProvider):
    """
    Claude models through the Messages API.

    Differs from the chat-completions envelope: the key goes in ``x-api-key``,
    the system prompt is a top-level field and the reply is a list of typed
    content blocks.
    """

    name = "anthropic"
    display_name = "Anthropic"
    default_endpoint = "https://api.anthropic.com/v1/messages"
    default_model = "claude-3-5-sonnet-latest"
    tokens_per_question = 300
    max_output_tokens = 8192

    def build_headers(self, api_key: str) -> dict[str, str]:
        return {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}

    def build_body(self, model: str, messages: list[BaseMessage], max_tokens: int) -> dict[str, Any]:
        system = "\n\n".join(str(m.content) for m in messages if isinstance(m, SystemMessage))
        conversation = [m for m in messages if not isinstance(m, SystemMessage)]
        body: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": self.temperature,
            "messages": to_openai_messages(conversation),
        }
        if system:
            body["system"] = system
        return body

    def extract_text(self, payload: dict[str, Any]) -> str | None:
        blocks = payload.get("content") or []
        texts = [
            block["text"]
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        return "".join(texts) if texts else None

    def extract_tokens(self, payload: dict[str, Any]) -> int | None:
        usage = payload.get("usage") or {}
        input_tokens = usage.get("input_tokens")
        output_tokens = usage.get("output_tokens")
        if not isinstance(input_tokens, int) and not isinstance(output_tokens, int):
            return None
        return (input_tokens or 0) + (output_tokens or 0)
