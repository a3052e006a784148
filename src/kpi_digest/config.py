"""Run configuration — one explicit object instead of module-level globals."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from kpi_digest import VIEWS
from kpi_digest.models import SheetLayout

DEFAULT_SHEET_NAME = "analysis_overview"
DEFAULT_SUBJECT = "Monthly KPI Report"
DEFAULT_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = "gpt-4o"

ENV_PREFIX = "KPI_DIGEST_"


def _split_addresses(raw: str | None) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _to_address_list(values: Sequence[Any] | None, field_name: str) -> list[str]:
    if values is None:
        return []
    if isinstance(values, str):
        raise TypeError(f"{field_name} must be a sequence of strings")
    addresses: list[str] = []
    for item in values:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} items must be strings")
        item = item.strip()
        if item:
            addresses.append(item)
    return addresses


@dataclass
class DigestConfig:
    """Everything a digest run needs to know about its collaborators.

    Secrets (``api_key``, ``smtp_password``) are expected to come from the
    environment; see :meth:`from_env`.
    """

    sheet_name: str = DEFAULT_SHEET_NAME
    sheet_url: str = ""
    subject: str = DEFAULT_SUBJECT
    sender: str = ""
    recipients: list[str] = field(default_factory=list)

    api_url: str = DEFAULT_API_URL
    api_key: str | None = None
    model: str = DEFAULT_MODEL
    temperature: float = 0.25
    max_tokens: int = 2000
    request_timeout: float = 120.0

    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_tls: bool = True

    layout: SheetLayout = field(default_factory=SheetLayout)
    views: dict[str, str] = field(default_factory=lambda: dict(VIEWS))

    def __post_init__(self) -> None:
        if not self.sheet_name:
            raise ValueError("sheet_name must not be empty")
        self.recipients = _to_address_list(self.recipients, "recipients")
        if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int):
            raise TypeError("max_tokens must be an integer")
        if self.max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if not 0 <= float(self.temperature) <= 2:
            raise ValueError("temperature must be between 0 and 2")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be > 0")
        if not self.views:
            raise ValueError("views must define at least one view")
        if len(self.views) != self.layout.views_per_kpi:
            raise ValueError(
                f"layout.views_per_kpi ({self.layout.views_per_kpi}) must match "
                f"the number of views ({len(self.views)})"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> DigestConfig:
        """Build a config from ``KPI_DIGEST_*`` variables, then apply *overrides*.

        ``OPENAI_API_KEY`` is accepted as a fallback for the API key.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value if value else None

        values: dict[str, Any] = {}
        simple = {
            "SHEET_NAME": "sheet_name",
            "SHEET_URL": "sheet_url",
            "SUBJECT": "subject",
            "SENDER": "sender",
            "API_URL": "api_url",
            "MODEL": "model",
            "SMTP_HOST": "smtp_host",
            "SMTP_USERNAME": "smtp_username",
            "SMTP_PASSWORD": "smtp_password",
        }
        for env_name, attr in simple.items():
            value = get(env_name)
            if value is not None:
                values[attr] = value

        api_key = get("API_KEY") or env.get("OPENAI_API_KEY") or None
        if api_key:
            values["api_key"] = api_key
        recipients = _split_addresses(get("RECIPIENTS"))
        if recipients:
            values["recipients"] = recipients

        numeric: dict[str, tuple[str, Callable[[str], Any]]] = {
            "TEMPERATURE": ("temperature", float),
            "MAX_TOKENS": ("max_tokens", int),
            "REQUEST_TIMEOUT": ("request_timeout", float),
            "SMTP_PORT": ("smtp_port", int),
        }
        for env_name, (attr, convert) in numeric.items():
            raw = get(env_name)
            if raw is None:
                continue
            try:
                values[attr] = convert(raw)
            except ValueError as exc:
                raise ValueError(
                    f"Invalid numeric setting {ENV_PREFIX}{env_name}={raw!r}"
                ) from exc

        tls = get("SMTP_USE_TLS")
        if tls is not None:
            values["smtp_use_tls"] = tls.strip().lower() not in {"0", "false", "no", "off"}

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
