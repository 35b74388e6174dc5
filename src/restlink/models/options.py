"""Client configuration models.

Options are frozen pydantic models: a client reads them on every request from
many concurrent tasks and never mutates them.
"""

from __future__ import annotations

import os
from collections.abc import Iterable

from pydantic import Field, field_validator

from restlink.models.base import RestLinkBaseModel
from restlink.models.constants import (
    DEFAULT_TIMEOUT_SECONDS,
    ENV_DEFAULT_TIMEOUT,
    ENV_FORWARDED_HEADERS,
    ENV_LOG_FORWARDED_HEADERS,
)


def parse_bool(value: str | None, default: bool) -> bool:
    """Parse an environment flag; unset or blank keeps ``default``."""
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("true", "1", "yes", "on")


def _unique_names(names: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        name = name.strip()
        if not name or name.lower() in seen:
            continue
        seen.add(name.lower())
        result.append(name)
    return tuple(result)


class HeaderOptions(RestLinkBaseModel):
    """Which inbound headers are forwarded downstream and how they are logged.

    Attributes:
        forwarded_headers: Header names copied from the inbound call, in
            insertion order, without duplicates (compared case-insensitively).
        log_forwarded_headers: When False, forwarded header values are
            replaced by a placeholder in log events. Forwarding itself is
            unaffected.
    """

    forwarded_headers: tuple[str, ...] = Field(default_factory=tuple)
    log_forwarded_headers: bool = True

    @field_validator("forwarded_headers", mode="before")
    @classmethod
    def _dedupe(cls, value: Iterable[str]) -> tuple[str, ...]:
        if isinstance(value, str):
            value = [value]
        return _unique_names(value)

    def add_forwarded_header(self, header: str) -> HeaderOptions:
        """Return a copy with ``header`` appended (no-op if already present)."""
        return self.model_copy(
            update={"forwarded_headers": _unique_names([*self.forwarded_headers, header])}
        )


class RestClientOptions(RestLinkBaseModel):
    """Configuration shared read-only by every request of one client.

    Attributes:
        headers: Header forwarding options.
        default_timeout: Deadline in seconds for calls that pass neither a
            timeout nor a cancellation token.
    """

    headers: HeaderOptions = Field(default_factory=HeaderOptions)
    default_timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)

    @classmethod
    def from_env(cls) -> RestClientOptions:
        """Build options from RESTLINK_* environment variables.

        RESTLINK_FORWARDED_HEADERS is a comma-separated list of header names,
        RESTLINK_LOG_FORWARDED_HEADERS a boolean flag and
        RESTLINK_DEFAULT_TIMEOUT a number of seconds.
        """
        raw_headers = os.environ.get(ENV_FORWARDED_HEADERS, "")
        raw_timeout = os.environ.get(ENV_DEFAULT_TIMEOUT, "").strip()
        return cls(
            headers=HeaderOptions(
                forwarded_headers=raw_headers.split(","),
                log_forwarded_headers=parse_bool(
                    os.environ.get(ENV_LOG_FORWARDED_HEADERS), default=True
                ),
            ),
            default_timeout=float(raw_timeout) if raw_timeout else DEFAULT_TIMEOUT_SECONDS,
        )
