"""Connection settings shared with plugins through their environment."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

__all__ = [
    "ClientConfig",
    "ConnectionConfigError",
    "DEFAULT_NAMESPACE",
    "ImpersonationConfig",
    "format_duration",
    "parse_duration",
    "resolve_client_config",
    "resolve_namespace",
]


DEFAULT_NAMESPACE = "default"

# Unit sizes in microseconds.
_DURATION_UNITS: Mapping[str, float] = {
    "ns": 0.001,
    "us": 1.0,
    "µs": 1.0,
    "ms": 1_000.0,
    "s": 1_000_000.0,
    "m": 60_000_000.0,
    "h": 3_600_000_000.0,
}
_DURATION_TERM = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_BARE_SECONDS = re.compile(r"\d+(?:\.\d*)?")


class ConnectionConfigError(ValueError):
    """Raised when connection settings cannot be interpreted."""


@dataclass(frozen=True)
class ImpersonationConfig:
    user_name: str = ""
    groups: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClientConfig:
    """Settings used to reach the API server."""

    host: str = ""
    api_path: str = ""
    prefix: str = ""
    username: str = ""
    password: str = ""
    bearer_token: str = ""
    impersonate: ImpersonationConfig = field(default_factory=ImpersonationConfig)
    insecure: bool = False
    server_name: str = ""
    cert_file: str = ""
    key_file: str = ""
    ca_file: str = ""
    cert_data: str = ""
    key_data: str = ""
    ca_data: str = ""
    user_agent: str = ""
    timeout: timedelta = timedelta(0)

    @property
    def timeout_ms(self) -> int:
        return self.timeout // timedelta(milliseconds=1)


def _timedelta(raw: Any, **units: float) -> timedelta:
    try:
        return timedelta(**units)
    except (OverflowError, ValueError) as exc:
        raise ConnectionConfigError(f"invalid duration {raw!r}: {exc}") from exc


def parse_duration(value: str | int | float) -> timedelta:
    """Parse a duration such as ``"1m30s"``, ``"250ms"`` or bare seconds.

    Bare numbers (including the ``"0"`` default) are interpreted as seconds.
    """

    if isinstance(value, bool):
        raise ConnectionConfigError(f"invalid duration {value!r}")
    if isinstance(value, (int, float)):
        return _timedelta(value, seconds=value)

    text = str(value).strip()
    if _BARE_SECONDS.fullmatch(text):
        return _timedelta(value, seconds=float(text))

    sign = 1
    if text.startswith(("+", "-")):
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if not text:
        raise ConnectionConfigError(f"invalid duration {value!r}")

    position = 0
    micros = 0.0
    while position < len(text):
        match = _DURATION_TERM.match(text, position)
        if match is None:
            raise ConnectionConfigError(f"invalid duration {value!r}")
        micros += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()
    return _timedelta(value, microseconds=sign * micros)


def _format_fraction(whole: int, fraction: int, width: int) -> str:
    if not fraction:
        return str(whole)
    return f"{whole}.{fraction:0{width}d}".rstrip("0")


def format_duration(duration: timedelta) -> str:
    """Render ``duration`` the way Go's ``time.Duration.String`` does."""

    micros = duration // timedelta(microseconds=1)
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_format_fraction(micros // 1_000, micros % 1_000, 3)}ms"

    seconds, fraction = divmod(micros, 1_000_000)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    text = f"{_format_fraction(seconds, fraction, 6)}s"
    if hours:
        return f"{sign}{hours}h{minutes}m{text}"
    if minutes:
        return f"{sign}{minutes}m{text}"
    return f"{sign}{text}"


def _section(config: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    section = (config or {}).get("connection", {})
    if isinstance(section, Mapping):
        return section
    raise ConnectionConfigError("'connection' must be a table")


def _pick(namespace: Any, option: str, section: Mapping[str, Any], key: str) -> Any:
    value = getattr(namespace, option, None)
    if value is not None:
        return value
    return section.get(key)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _as_groups(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Sequence):
        return tuple(str(item) for item in value)
    raise ConnectionConfigError("impersonation groups must be a list of strings")


def resolve_client_config(
    namespace: Any,
    config: Optional[Mapping[str, Any]] = None,
) -> ClientConfig:
    """Merge command-line options over the ``[connection]`` configuration table."""

    section = _section(config)

    insecure = bool(getattr(namespace, "insecure_skip_tls_verify", False)) or bool(
        section.get("insecure", False)
    )
    raw_timeout = _pick(namespace, "request_timeout", section, "timeout")
    timeout = parse_duration(raw_timeout) if raw_timeout is not None else timedelta(0)

    return ClientConfig(
        host=_as_text(_pick(namespace, "server", section, "host")),
        api_path=_as_text(section.get("api_path")),
        prefix=_as_text(section.get("prefix")),
        username=_as_text(_pick(namespace, "username", section, "username")),
        password=_as_text(_pick(namespace, "password", section, "password")),
        bearer_token=_as_text(_pick(namespace, "token", section, "bearer_token")),
        impersonate=ImpersonationConfig(
            user_name=_as_text(_pick(namespace, "as_user", section, "impersonate_user")),
            groups=_as_groups(_pick(namespace, "as_group", section, "impersonate_groups")),
        ),
        insecure=insecure,
        server_name=_as_text(_pick(namespace, "tls_server_name", section, "server_name")),
        cert_file=_as_text(_pick(namespace, "client_certificate", section, "cert_file")),
        key_file=_as_text(_pick(namespace, "client_key", section, "key_file")),
        ca_file=_as_text(_pick(namespace, "certificate_authority", section, "ca_file")),
        cert_data=_as_text(section.get("cert_data")),
        key_data=_as_text(section.get("key_data")),
        ca_data=_as_text(section.get("ca_data")),
        user_agent=_as_text(section.get("user_agent")),
        timeout=timeout,
    )


def resolve_namespace(namespace: Any, config: Optional[Mapping[str, Any]] = None) -> str:
    value = getattr(namespace, "namespace", None) or (config or {}).get("namespace")
    return str(value) if value else DEFAULT_NAMESPACE
