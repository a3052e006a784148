"""Chat-completion client for the hosted LLM."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import requests

from kpi_digest.config import DEFAULT_API_URL, DEFAULT_MODEL, DigestConfig

logger = logging.getLogger(__name__)

OFFLINE_ANSWER = "DEBUG\nOPENAI ANSWER"


class LLMResponseError(ValueError):
    """The endpoint answered, but not with a chat completion we can read."""


class ChatClient(Protocol):
    def complete(self, user_message: str, system_message: str) -> str: ...


def build_payload(
    user_message: str,
    system_message: str,
    *,
    model: str,
    temperature: float,
    max_tokens: int,
) -> dict[str, Any]:
    return {
        "model": model,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "messages": [
            {"role": "system", "content": system_message},
            {"role": "user", "content": user_message},
        ],
    }


def extract_content(body: Any) -> str:
    """Return ``choices[0].message.content`` from a chat-completion response body."""
    try:
        content = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise LLMResponseError("Response has no choices[0].message.content") from exc
    if not isinstance(content, str):
        raise LLMResponseError(
            f"choices[0].message.content must be a string, got {type(content).__name__}"
        )
    return content


class OpenAIChatClient:
    """Blocking client for an OpenAI-compatible ``/chat/completions`` endpoint.

    No retries: an HTTP error or a malformed body raises and aborts the run.
    """

    def __init__(
        self,
        api_key: str | None,
        *,
        url: str = DEFAULT_API_URL,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.25,
        max_tokens: int = 2000,
        timeout: float = 120.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key:
            raise ValueError(
                "LLM API key is not set (use KPI_DIGEST_API_KEY or OPENAI_API_KEY)"
            )
        self.api_key = api_key
        self.url = url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    @classmethod
    def from_config(
        cls, config: DigestConfig, session: requests.Session | None = None
    ) -> OpenAIChatClient:
        return cls(
            config.api_key,
            url=config.api_url,
            model=config.model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.request_timeout,
            session=session,
        )

    def complete(self, user_message: str, system_message: str) -> str:
        payload = build_payload(
            user_message,
            system_message,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        logger.debug("LLM request system prompt:\n%s", system_message)
        logger.debug("LLM request user prompt:\n%s", user_message)

        response = self.session.post(
            self.url,
            json=payload,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            timeout=self.timeout,
        )
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as exc:
            raise LLMResponseError("Response body is not valid JSON") from exc

        content = extract_content(body)
        logger.debug("LLM answer:\n%s", content)
        return content


class CannedChatClient:
    """Offline stand-in that answers every prompt with the same text."""

    def __init__(self, answer: str = OFFLINE_ANSWER) -> None:
        self.answer = answer
        self.calls: list[tuple[str, str]] = []

    def complete(self, user_message: str, system_message: str) -> str:
        self.calls.append((user_message, system_message))
        logger.info("Offline mode: returning canned LLM answer")
        return self.answer
