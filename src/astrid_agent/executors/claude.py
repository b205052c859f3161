"""ClaudeExecutor - Anthropic Messages API adapter."""

from __future__ import annotations

from typing import Any

from astrid_agent.executors.base import DEFAULT_MAX_TOKENS, Executor
from astrid_agent.executors.models import Message, ModelResponse, ToolCall

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class ClaudeExecutor(Executor):
    """Executor backed by the Anthropic Messages API."""

    provider = "claude"
    default_model = "claude-sonnet-4-20250514"

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }

    @staticmethod
    def to_wire_messages(messages: list[Message]) -> list[dict[str, Any]]:
        """Translate the neutral conversation into Anthropic messages.

        Tool results become ``tool_result`` blocks in a user turn, and
        consecutive user-side turns are merged so roles alternate.
        """
        wire: list[dict[str, Any]] = []
        for message in messages:
            if message.role == "assistant":
                blocks: list[dict[str, Any]] = []
                if message.content:
                    blocks.append({"type": "text", "text": message.content})
                for call in message.tool_calls:
                    blocks.append(
                        {"type": "tool_use", "id": call.id, "name": call.name, "input": call.arguments}
                    )
                wire.append({"role": "assistant", "content": blocks})
                continue

            if message.role == "tool":
                block = {
                    "type": "tool_result",
                    "tool_use_id": message.tool_call_id,
                    "content": message.content or "",
                    "is_error": message.is_error,
                }
            else:
                block = {"type": "text", "text": message.content or ""}

            if wire and wire[-1]["role"] == "user":
                wire[-1]["content"].append(block)
            else:
                wire.append({"role": "user", "content": [block]})
        return wire

    def _call_model(
        self, system: str, messages: list[Message], tools: list[dict[str, Any]]
    ) -> ModelResponse:
        body = {
            "model": self.model,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "system": system,
            "messages": self.to_wire_messages(messages),
            "tools": [
                {
                    "name": tool["name"],
                    "description": tool["description"],
                    "input_schema": tool["parameters"],
                }
                for tool in tools
            ],
        }
        data = self._post(ANTHROPIC_URL, self._headers(), body)

        texts: list[str] = []
        calls: list[ToolCall] = []
        for block in data.get("content", []):
            if block.get("type") == "text":
                texts.append(block.get("text", ""))
            elif block.get("type") == "tool_use":
                calls.append(
                    ToolCall(id=block["id"], name=block["name"], arguments=block.get("input") or {})
                )

        usage = data.get("usage", {})
        return ModelResponse(
            text="\n".join(texts) or None,
            tool_calls=calls,
            input_tokens=usage.get("input_tokens", 0),
            output_tokens=usage.get("output_tokens", 0),
            stop_reason=data.get("stop_reason"),
        )
