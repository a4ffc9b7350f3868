"""
Language-model gateway.

Wraps the OpenAI chat-completions API behind a single ``respond`` call that
never raises: task-tagged system prompts, streaming first, one non-streaming
fallback, cosmetic cleanup of the result and a canned reply when the API is
unreachable.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

import openai
from openai import AsyncOpenAI
from openai.types.chat import ChatCompletionMessageParam
from tenacity import (
    retry,
    stop_after_attempt,
    wait_random_exponential,
    retry_if_exception_type,
)

from app.types.parser_contract import ApiStatus
from app.utils.text import cleanup_markdown, short_prefix

_LOGGER = logging.getLogger(__name__)

# ──────────────────────────────────────────────────────────────────────────
# Prompts
# ──────────────────────────────────────────────────────────────────────────

_ASSISTANT_PROMPT = (
    "You are Milestone Madness, an AI assistant focused on helping with project management. "
    "Respond conversationally and be helpful, clear, and concise. "
    "If asked something you don't know, be honest about your limitations. "
    "If asked about capabilities, mention you can help with audits, drafts, reminders, and general questions."
)

SYSTEM_PROMPTS: dict[str, str] = {
    "audit": (
        "You are an expert data analyst and business consultant helping perform an audit. "
        "Provide detailed, thoughtful analysis with clear recommendations. "
        "Format your response with clear sections and bullet points where appropriate."
    ),
    "draft": (
        "You are a professional content creator with expertise in business communications. "
        "Create well-structured, engaging content tailored to the specific request. "
        "Use appropriate tone, formatting, and structure for the content type."
    ),
    "reminder": (
        "You are a productivity and time management expert. "
        "Provide thoughtful analysis of tasks with realistic time estimates and breakdowns. "
        "Your advice should be practical, specific, and actionable."
    ),
    "direct": _ASSISTANT_PROMPT,
    "mention": _ASSISTANT_PROMPT,
    "default": (
        "You are Milestone Madness, an AI assistant for project management. "
        "Be helpful, clear, and concise in your responses."
    ),
}

EMPTY_PROMPT_REPLY = "I'm sorry, I didn't receive any content to process. How can I help you today?"

_FALLBACKS: dict[str, str] = {
    "audit": (
        "I'd like to help you audit \"{topic}\", but I'm having trouble connecting to my AI services "
        "right now. Please try again in a few minutes, or let me know if there's something else I can assist with."
    ),
    "draft": (
        "I'd be happy to help draft content related to \"{topic}\", but I'm currently experiencing "
        "connection issues with my AI services. Please try again shortly, or let me know if there's "
        "another way I can help."
    ),
    "reminder": (
        "I'd like to help you set a reminder for \"{topic}\", but I'm having trouble accessing my AI "
        "capabilities at the moment. Please try again soon, or feel free to ask for assistance with something else."
    ),
    "direct": (
        "Thanks for your message about \"{topic}\". I'm currently having trouble connecting to my AI "
        "services. Please try again in a few minutes, or let me know if there's something else I can help with."
    ),
    "mention": (
        "I noticed you mentioned me regarding \"{topic}\". I'm currently experiencing some technical "
        "difficulties with my AI capabilities. Please try again shortly, or let me know if there's "
        "another way I can assist you."
    ),
    "default": (
        "I'd like to help with your request about \"{topic}\", but I'm having trouble connecting to my "
        "AI services right now. Please try again in a few minutes, or let me know if there's something "
        "else I can assist with."
    ),
}


def _normalise_task(task: str | None) -> str:
    task = (task or "default").lower()
    return task if task in SYSTEM_PROMPTS else "default"


def fallback_response(prompt: str | None, task: str = "default") -> str:
    """Deterministic reply used whenever the completion API fails."""
    if not prompt or not prompt.strip():
        return EMPTY_PROMPT_REPLY
    return _FALLBACKS[_normalise_task(task)].format(topic=short_prefix(prompt))


# Retry only on transport / rate-limit / backend errors
RETRY_ERRORS = (
    openai.APIStatusError,
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.APITimeoutError,
)


# ──────────────────────────────────────────────────────────────────────────
# Gateway
# ──────────────────────────────────────────────────────────────────────────


class AIGateway:
    """Task-tagged access to the completion API.

    ``client`` may be ``None`` (no API key configured); every call then
    returns the fallback reply.
    """

    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        model: str = "gpt-4o",
        max_tokens: int = 1000,
        timeout: float = 30,
        status: Optional[ApiStatus] = None,
    ):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.status = status or ApiStatus(available=client is not None)
        if client is None:
            self.status.last_error = "OPENAI_API_KEY not set"

    @classmethod
    def from_settings(cls, settings) -> "AIGateway":
        client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY) if settings.OPENAI_API_KEY else None
        return cls(
            client,
            model=settings.OPENAI_MODEL,
            max_tokens=settings.OPENAI_MAX_TOKENS,
            timeout=settings.OPENAI_TIMEOUT,
        )

    def _messages(self, prompt: str, task: str) -> List[ChatCompletionMessageParam]:
        return [
            {"role": "system", "content": SYSTEM_PROMPTS[task]},
            {"role": "user", "content": prompt},
        ]

    async def _stream(self, messages: List[ChatCompletionMessageParam]) -> str:
        stream = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            stream=True,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        parts: list[str] = []
        async for chunk in stream:
            if chunk.choices and chunk.choices[0].delta.content:
                parts.append(chunk.choices[0].delta.content)
        return "".join(parts)

    @retry(
        wait=wait_random_exponential(multiplier=1, max=10),
        stop=stop_after_attempt(2),
        retry=retry_if_exception_type(RETRY_ERRORS),
        reraise=True,
    )
    async def _complete(self, messages: List[ChatCompletionMessageParam]) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            stream=False,
            max_tokens=self.max_tokens,
            timeout=self.timeout,
        )
        return response.choices[0].message.content or ""

    async def respond(self, prompt: str, task: str = "default") -> str:
        """Return cleaned model output for ``prompt``, or a fallback reply."""
        task = _normalise_task(task)
        if not prompt or not prompt.strip():
            return fallback_response(prompt, task)

        self.status.attempts += 1
        self.status.last_attempt = datetime.now(timezone.utc)

        if self.client is None:
            self.status.available = False
            return fallback_response(prompt, task)

        messages = self._messages(prompt, task)
        _LOGGER.info("Sending completion request (%s): %r", task, prompt[:50])
        try:
            try:
                text = await self._stream(messages)
            except Exception as exc:  # noqa: BLE001
                _LOGGER.warning("Streaming completion failed, retrying without streaming: %s", exc)
                text = await self._complete(messages)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Completion request failed: %s", exc)
            self.status.available = False
            self.status.last_error = str(exc)
            return fallback_response(prompt, task)

        self.status.available = True
        self.status.last_error = None
        self.status.last_success = datetime.now(timezone.utc)
        return cleanup_markdown(text.strip()) or fallback_response(prompt, task)
