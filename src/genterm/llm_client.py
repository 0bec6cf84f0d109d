"""
LLM client for the backend service.

Wraps an OpenAI-compatible chat model (langchain-openai) and lays out the
conversation: system prompt, uploaded-file context, earlier turns of the
session, then the new user message (plain text or multimodal content).
"""
from __future__ import annotations

import json
from typing import Any, Sequence

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from .config import (
    LLM_API_KEY,
    LLM_BASE_URL,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_TEMPERATURE,
    SYSTEM_PROMPT,
    console,
)
from .errors import ConfigError
from .observability import get_logger
from .session_manager import SessionMessage

logger = get_logger(__name__)

MessageContent = str | list[dict[str, Any]]


def _initialize_chat_model() -> BaseChatModel:
    """Builds the chat model from global configuration."""
    if not LLM_API_KEY:
        raise ConfigError("LLM_API_KEY environment variable is required")
    console.print(f"[green]Using API Model: {LLM_MODEL} ({LLM_BASE_URL})[/green]")
    return ChatOpenAI(
        model=LLM_MODEL,
        base_url=LLM_BASE_URL,
        api_key=LLM_API_KEY,
        max_tokens=LLM_MAX_TOKENS,
        temperature=LLM_TEMPERATURE,
    )


def format_context_message(context: Sequence[str]) -> str:
    message = "Context information:\n\n"
    for index, ctx in enumerate(context, start=1):
        message += f"[{index}] {ctx}\n\n"
    return message


def _history_message(message: SessionMessage) -> BaseMessage:
    if message.role == "assistant":
        return AIMessage(content=message.content)
    if message.role == "system":
        return SystemMessage(content=message.content)
    return HumanMessage(content=message.content)


def build_messages(
    history: Sequence[SessionMessage],
    content: MessageContent,
    context: Sequence[str],
    system_prompt: str = SYSTEM_PROMPT,
) -> list[BaseMessage]:
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    if context:
        messages.append(HumanMessage(content=format_context_message(context)))
    messages.extend(_history_message(m) for m in history)
    messages.append(HumanMessage(content=content))
    return messages


def _content_to_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, default=str)


class LLMClient:
    def __init__(self, chat_model: BaseChatModel | None = None, system_prompt: str = SYSTEM_PROMPT):
        self._chat_model = chat_model
        self.system_prompt = system_prompt

    @property
    def chat_model(self) -> BaseChatModel:
        if self._chat_model is None:
            self._chat_model = _initialize_chat_model()
        return self._chat_model

    async def generate(self, messages: list[BaseMessage]) -> str:
        result = await self.chat_model.ainvoke(messages)
        return _content_to_text(getattr(result, "content", result))

    async def generate_with_history(
        self,
        history: Sequence[SessionMessage],
        query: str,
        context: Sequence[str],
    ) -> str:
        messages = build_messages(history, query, context, self.system_prompt)
        logger.info("llm_completion_requested", messages=len(messages), context_items=len(context))
        return await self.generate(messages)

    async def generate_multimodal_with_history(
        self,
        history: Sequence[SessionMessage],
        message_content: list[dict[str, Any]],
        context: Sequence[str],
    ) -> str:
        messages = build_messages(history, message_content, context, self.system_prompt)
        logger.info(
            "llm_multimodal_completion_requested",
            messages=len(messages),
            context_items=len(context),
            content_parts=len(message_content),
        )
        return await self.generate(messages)
