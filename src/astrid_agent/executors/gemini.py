"""GeminiExecutor - Gemini generateContent API adapter."""

from __future__ import annotations

from typing import Any

from astrid_agent.executors.base import DEFAULT_MAX_TOKENS, Executor
from astrid_agent.executors.models import Message, ModelResponse, ToolCall

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class GeminiExecutor(Executor):
    """Executor backed by the Gemini generateContent API.

    Gemini function calls carry no ids, so ids are synthesized from the
    call position; function responses are matched back by name.
    """

    provider = "gemini"
    default_model = "gemini-2.5-flash"

    @staticmethod
    def to_wire_contents(messages: list[Message]) -> list[dict[str, Any]]:
        contents: list[dict[str, Any]] = []
        for message in messages:
            if message.role == "assistant":
                parts: list[dict[str, Any]] = []
                if message.content:
                    parts.append({"text": message.content})
                for call in message.tool_calls:
                    parts.append({"functionCall": {"name": call.name, "args": call.arguments}})
                contents.append({"role": "model", "parts": parts})
                continue

            if message.role == "tool":
                part = {
                    "functionResponse": {
                        "name": message.name,
                        "response": {"result": message.content or ""},
                    }
                }
            else:
                part = {"text": message.content or ""}

            if contents and contents[-1]["role"] == "user":
                contents[-1]["parts"].append(part)
            else:
                contents.append({"role": "user", "parts": [part]})
        return contents

    def _call_model(
        self, system: str, messages: list[Message], tools: list[dict[str, Any]]
    ) -> ModelResponse:
        body = {
            "systemInstruction": {"parts": [{"text": system}]},
            "contents": self.to_wire_contents(messages),
            "tools": [{"functionDeclarations": tools}],
            "generationConfig": {"maxOutputTokens": DEFAULT_MAX_TOKENS},
        }
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        data = self._post(GEMINI_URL.format(model=self.model), headers, body)

        candidates = data.get("candidates") or [{}]
        parts = (candidates[0].get("content") or {}).get("parts", [])
        texts: list[str] = []
        calls: list[ToolCall] = []
        for index, part in enumerate(parts):
            if "text" in part:
                texts.append(part["text"])
            elif "functionCall" in part:
                function_call = part["functionCall"]
                calls.append(
                    ToolCall(
                        id=f"call_{index}_{function_call['name']}",
                        name=function_call["name"],
                        arguments=function_call.get("args") or {},
                    )
                )

        usage = data.get("usageMetadata", {})
        return ModelResponse(
            text="\n".join(texts) or None,
            tool_calls=calls,
            input_tokens=usage.get("promptTokenCount", 0),
            output_tokens=usage.get("candidatesTokenCount", 0),
            stop_reason=candidates[0].get("finishReason"),
        )
