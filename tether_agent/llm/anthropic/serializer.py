from __future__ import annotations

import json
from typing import Any, cast

from anthropic.types import MessageParam, TextBlockParam, ToolResultBlockParam, ToolUseBlockParam

from tether_agent.llm.messages import Message, Role

# The API requires the first turn to come from the user
CONTINUATION_TEXT = "(continuing the conversation summarized above)"


class AnthropicMessageSerializer:
    """Serializer for converting conversation messages into Anthropic message params."""

    @staticmethod
    def _tool_use_block(message: Message) -> list[ToolUseBlockParam]:
        blocks: list[ToolUseBlockParam] = []
        for call in message.tool_calls:
            try:
                tool_input = json.loads(call.arguments) if call.arguments else {}
            except json.JSONDecodeError:
                # Keep malformed arguments visible to the model instead of dropping the call
                tool_input = {"arguments": call.arguments}
            if not isinstance(tool_input, dict):
                tool_input = {"value": tool_input}
            blocks.append(
                ToolUseBlockParam(
                    type="tool_use",
                    id=call.id,
                    name=call.name,
                    input=tool_input,
                )
            )
        return blocks

    @staticmethod
    def _serialize_content(message: Message) -> list[Any]:
        if message.role == Role.TOOL:
            return [
                ToolResultBlockParam(
                    type="tool_result",
                    tool_use_id=message.tool_call_id or "",
                    content=message.text,
                    is_error=message.is_error,
                )
            ]

        blocks: list[Any] = []
        if message.text.strip():
            blocks.append(TextBlockParam(type="text", text=message.text))
        if message.role == Role.ASSISTANT:
            blocks.extend(AnthropicMessageSerializer._tool_use_block(message))
        return blocks

    @staticmethod
    def serialize_messages(messages: list[Message]) -> tuple[list[MessageParam], str | None]:
        """Serialize a conversation into (anthropic_messages, system_prompt).

        System messages (the prompt at index 0 and any compaction summaries)
        are joined into the ``system`` parameter. Tool results are sent as
        ``tool_result`` blocks on a user turn, and consecutive turns with the
        same role are merged since the API requires alternation.
        """
        system_parts: list[str] = []
        serialized: list[MessageParam] = []
        known_tool_ids: set[str] = set()

        for message in messages:
            if message.role == Role.SYSTEM:
                if message.text:
                    system_parts.append(message.text)
                continue

            if message.role == Role.ASSISTANT:
                known_tool_ids.update(call.id for call in message.tool_calls)
            elif message.role == Role.TOOL and message.tool_call_id not in known_tool_ids:
                # The matching tool_use was compacted or truncated away
                continue

            role = "assistant" if message.role == Role.ASSISTANT else "user"
            content = AnthropicMessageSerializer._serialize_content(message)
            if not content:
                # Empty text blocks are rejected by the API
                continue

            if serialized and serialized[-1]["role"] == role:
                previous = cast(list[Any], serialized[-1]["content"])
                previous.extend(content)
                continue

            serialized.append(MessageParam(role=role, content=content))

        if serialized and serialized[0]["role"] == "assistant":
            serialized.insert(
                0,
                MessageParam(role="user", content=[TextBlockParam(type="text", text=CONTINUATION_TEXT)]),
            )

        system_prompt = "\n\n".join(system_parts) if system_parts else None
        return serialized, system_prompt
