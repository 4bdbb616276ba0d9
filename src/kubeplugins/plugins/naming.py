"""Helpers translating flag and field names into environment variable names."""

from __future__ import annotations

import re

__all__ = [
    "field_to_env",
    "field_to_env_name",
    "flag_to_env",
    "flag_to_env_name",
    "split_camel_case",
]


# An uppercase run directly followed by a capitalised word keeps all but its
# last capital, e.g. ``APIPath`` -> ``API`` + ``Path``.
_CAMEL_WORD = re.compile(
    r"[A-Z]+(?=[A-Z][a-z])"
    r"|[A-Z]?[a-z]+"
    r"|[A-Z]+"
    r"|[0-9]+"
    r"|[^A-Za-z0-9]+"
)


def split_camel_case(word: str) -> list[str]:
    """Split ``word`` into its camel-case components.

    Consecutive capitals are treated as a single acronym so ``CAFile`` yields
    ``["CA", "File"]`` and ``TimeoutMS`` yields ``["Timeout", "MS"]``. Digit
    runs and any other characters form their own components.
    """

    return _CAMEL_WORD.findall(word)


def flag_to_env_name(flag_name: str, prefix: str) -> str:
    """Return the environment variable name exposing ``flag_name``."""

    env_name = flag_name.lstrip("-")
    env_name = env_name.upper().replace("-", "_")
    return prefix + env_name


def flag_to_env(flag_name: str, value: str, prefix: str) -> str:
    return f"{flag_to_env_name(flag_name, prefix)}={value}"


def field_to_env_name(field_name: str, prefix: str) -> str:
    """Return the environment variable name for a (possibly dotted) field.

    ``Impersonate.Groups`` becomes ``<prefix>IMPERSONATE_GROUPS``.
    """

    parts = []
    for segment in field_name.split("."):
        parts.append("_".join(split_camel_case(segment)).upper())
    return prefix + "_".join(parts)


def field_to_env(field_name: str, value: str, prefix: str) -> str:
    return f"{field_to_env_name(field_name, prefix)}={value}"
