import json
import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx
from anthropic import (
    APIConnectionError,
    APIStatusError,
    AsyncAnthropic,
    NotGiven,
    RateLimitError,
    omit,
)
from anthropic.types import Message as AnthropicMessage
from anthropic.types import ToolParam
from anthropic.types.text_block import TextBlock
from anthropic.types.tool_use_block import ToolUseBlock
from httpx import Timeout

from tether_agent.llm.anthropic.serializer import AnthropicMessageSerializer
from tether_agent.llm.base import ToolDefinition
from tether_agent.llm.exceptions import ModelProviderError, ModelRateLimitError
from tether_agent.llm.messages import Message, ToolCall
from tether_agent.llm.views import ChatInvokeCompletion, ChatInvokeUsage

logger = logging.getLogger("tether_agent.llm.anthropic")

DEFAULT_MAX_TOKENS = 4096


@dataclass
class ChatAnthropic:
    """
    A wrapper around Anthropic's chat model.
    """

    # Model configuration
    model: str
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float | None = None
    top_p: float | None = None

    # Client initialization parameters
    api_key: str | None = None
    base_url: str | httpx.URL | None = None
    timeout: float | Timeout | None | NotGiven = NotGiven()
    max_retries: int = 3
    default_headers: Mapping[str, str] | None = None
    http_client: httpx.AsyncClient | None = None

    # Internal client cache
    _client: AsyncAnthropic | None = field(default=None, repr=False, compare=False)

    @property
    def provider(self) -> str:
        return "anthropic"

    @property
    def name(self) -> str:
        return str(self.model)

    def _get_client_params(self) -> dict[str, Any]:
        """Prepare client parameters dictionary."""
        base_params = {
            "api_key": self.api_key,
            "base_url": self.base_url,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "default_headers": dict(self.default_headers) if self.default_headers else None,
            "http_client": self.http_client,
        }

        # Create client_params dict with non-None values and non-NotGiven values
        client_params = {}
        for k, v in base_params.items():
            if v is not None and not isinstance(v, NotGiven):
                client_params[k] = v

        return client_params

    def _get_client_params_for_invoke(self) -> dict[str, Any]:
        """Prepare request parameters for invoke."""
        client_params: dict[str, Any] = {"max_tokens": self.max_tokens}

        if self.temperature is not None:
            client_params["temperature"] = self.temperature

        if self.top_p is not None:
            client_params["top_p"] = self.top_p

        return client_params

    def get_client(self) -> AsyncAnthropic:
        """
        Returns an AsyncAnthropic client (cached).
        """
        if self._client is not None:
            return self._client

        self._client = AsyncAnthropic(**self._get_client_params())
        return self._client

    def get_usage(self, response: AnthropicMessage) -> ChatInvokeUsage:
        """Map Anthropic usage into SDK usage fields."""
        cache_read = response.usage.cache_read_input_tokens or 0
        cache_creation = response.usage.cache_creation_input_tokens or 0
        prompt_tokens = response.usage.input_tokens + cache_read + cache_creation
        return ChatInvokeUsage(
            prompt_tokens=prompt_tokens,
            completion_tokens=response.usage.output_tokens,
            total_tokens=prompt_tokens + response.usage.output_tokens,
            prompt_cached_tokens=response.usage.cache_read_input_tokens,
        )

    def _serialize_tools(self, tools: list[ToolDefinition]) -> list[ToolParam]:
        """Convert ToolDefinitions to Anthropic's tool format."""
        anthropic_tools: list[ToolParam] = []
        for tool in tools:
            # Remove title from schema if present (Anthropic doesn't like it in parameters)
            schema = dict(tool.parameters)
            schema.pop("title", None)
            anthropic_tools.append(
                ToolParam(
                    name=tool.name,
                    description=tool.description,
                    input_schema=schema,
                )
            )
        return anthropic_tools

    def _extract_tool_calls(self, response: AnthropicMessage) -> list[ToolCall]:
        """Extract tool calls from Anthropic response."""
        tool_calls: list[ToolCall] = []

        for content_block in response.content:
            if isinstance(content_block, ToolUseBlock):
                # Arguments travel as raw JSON text through the rest of the agent
                arguments = (
                    json.dumps(content_block.input)
                    if isinstance(content_block.input, dict)
                    else str(content_block.input)
                )
                tool_calls.append(
                    ToolCall(
                        id=content_block.id,
                        name=content_block.name,
                        arguments=arguments,
                    )
                )

        return tool_calls

    def _extract_text_content(self, response: AnthropicMessage) -> str | None:
        """Extract text content from Anthropic response."""
        text_parts: list[str] = []

        for content_block in response.content:
            if isinstance(content_block, TextBlock):
                text_parts.append(content_block.text)

        return "\n".join(text_parts) if text_parts else None

    async def ainvoke(
        self,
        messages: list[Message],
        tools: list[ToolDefinition] | None = None,
        **kwargs: Any,
    ) -> ChatInvokeCompletion:
        """
        Invoke the model with the given messages and optional tools.

        Args:
            messages: List of chat messages
            tools: Optional list of tools the model can call

        Returns:
            ChatInvokeCompletion with content and/or tool_calls
        """
        anthropic_messages, system_prompt = AnthropicMessageSerializer.serialize_messages(messages)

        try:
            invoke_params = self._get_client_params_for_invoke()
            if tools:
                invoke_params["tools"] = self._serialize_tools(tools)

            response = await self.get_client().messages.create(
                model=self.model,
                messages=anthropic_messages,
                system=system_prompt or omit,
                **invoke_params,
            )

            if not isinstance(response, AnthropicMessage):
                raise ModelProviderError(
                    message=f"Unexpected response type from Anthropic API: {type(response).__name__}",
                    status_code=502,
                    model=self.name,
                )

            usage = self.get_usage(response)
            if os.getenv("TETHER_LLM_DEBUG"):
                logger.info(
                    f"{self.model}: {usage.prompt_tokens:,} in + {usage.completion_tokens:,} out"
                )

            return ChatInvokeCompletion(
                content=self._extract_text_content(response),
                tool_calls=self._extract_tool_calls(response),
                usage=usage,
                stop_reason=response.stop_reason,
            )

        except ModelProviderError:
            raise
        except APIConnectionError as e:
            raise ModelProviderError(message=e.message, model=self.name) from e
        except RateLimitError as e:
            raise ModelRateLimitError(message=e.message, model=self.name) from e
        except APIStatusError as e:
            raise ModelProviderError(
                message=e.message, status_code=e.status_code, model=self.name
            ) from e
        except Exception as e:
            raise ModelProviderError(message=str(e), model=self.name) from e

    async def prompt(self, text: str) -> str:
        """Single user turn without tools; returns the reply text."""
        completion = await self.ainvoke([Message.user(text)])
        return completion.content or ""
