"""OpenAIExecutor - Chat Completions API adapter."""

from __future__ import annotations

import json
import logging
from typing import Any

from astrid_agent.executors.base import DEFAULT_MAX_TOKENS, Executor
from astrid_agent.executors.exceptions import ModelAPIError
from astrid_agent.executors.models import Message, ModelResponse, ToolCall

logger = logging.getLogger("astrid_agent.executors.openai")

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def _decode_arguments(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Model sent malformed tool arguments: %s", raw[:200])
        return {}
    return decoded if isinstance(decoded, dict) else {}


class OpenAIExecutor(Executor):
    """Executor backed by the OpenAI Chat Completions API."""

    provider = "openai"
    default_model = "gpt-4o"

    @staticmethod
    def to_wire_messages(system: str, messages: list[Message]) -> list[dict[str, Any]]:
        wire: list[dict[str, Any]] = [{"role": "system", "content": system}]
        for message in messages:
            if message.role == "assistant":
                entry: dict[str, Any] = {"role": "assistant", "content": message.content}
                if message.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": json.dumps(call.arguments)},
                        }
                        for call in message.tool_calls
                    ]
                wire.append(entry)
            elif message.role == "tool":
                wire.append(
                    {
                        "role": "tool",
                        "tool_call_id": message.tool_call_id,
                        "content": message.content or "",
                    }
                )
            else:
                wire.append({"role": "user", "content": message.content or ""})
        return wire

    def _call_model(
        self, system: str, messages: list[Message], tools: list[dict[str, Any]]
    ) -> ModelResponse:
        body = {
            "model": self.model,
            "messages": self.to_wire_messages(system, messages),
            "tools": [{"type": "function", "function": tool} for tool in tools],
            "tool_choice": "auto",
            "max_tokens": DEFAULT_MAX_TOKENS,
        }
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        data = self._post(OPENAI_URL, headers, body)

        choices = data.get("choices") or []
        if not choices:
            raise ModelAPIError("OpenAI API returned no choices")
        choice = choices[0]
        message = choice.get("message", {})
        calls = [
            ToolCall(
                id=raw["id"],
                name=raw["function"]["name"],
                arguments=_decode_arguments(raw["function"].get("arguments")),
            )
            for raw in message.get("tool_calls") or []
        ]
        usage = data.get("usage", {})
        return ModelResponse(
            text=message.get("content") or None,
            tool_calls=calls,
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            stop_reason=choice.get("finish_reason"),
        )
