"""Tests for :mod:`kubeplugins.connection`."""

from __future__ import annotations

import argparse
from datetime import timedelta

import pytest

from kubeplugins.connection import (
    ClientConfig,
    ConnectionConfigError,
    ImpersonationConfig,
    format_duration,
    parse_duration,
    resolve_client_config,
    resolve_namespace,
)


def _namespace(**overrides: object) -> argparse.Namespace:
    values: dict[str, object] = {
        "namespace": None,
        "server": None,
        "token": None,
        "username": None,
        "password": None,
        "as_user": None,
        "as_group": None,
        "insecure_skip_tls_verify": False,
        "tls_server_name": None,
        "client_certificate": None,
        "client_key": None,
        "certificate_authority": None,
        "request_timeout": None,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("0", timedelta(0)),
        ("5", timedelta(seconds=5)),
        ("1.5", timedelta(seconds=1.5)),
        ("250ms", timedelta(milliseconds=250)),
        ("1m30s", timedelta(minutes=1, seconds=30)),
        ("2h", timedelta(hours=2)),
        ("1.5h", timedelta(hours=1, minutes=30)),
        ("10us", timedelta(microseconds=10)),
        ("10µs", timedelta(microseconds=10)),
        ("3000ns", timedelta(microseconds=3)),
        ("-1s", timedelta(seconds=-1)),
        (" 45s ", timedelta(seconds=45)),
        (30, timedelta(seconds=30)),
        (0.25, timedelta(milliseconds=250)),
    ],
)
def test_parse_duration(raw: object, expected: timedelta) -> None:
    assert parse_duration(raw) == expected  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "raw",
    ["", "-", "abc", "1x", "1s2", "s", True, "999999999999h", "9" * 400, 10**20, float("nan")],
)
def test_parse_duration_rejects_invalid_values(raw: object) -> None:
    with pytest.raises(ConnectionConfigError):
        parse_duration(raw)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "duration, expected",
    [
        (timedelta(0), "0s"),
        (timedelta(microseconds=5), "5µs"),
        (timedelta(microseconds=1500), "1.5ms"),
        (timedelta(milliseconds=250), "250ms"),
        (timedelta(seconds=1), "1s"),
        (timedelta(seconds=2, milliseconds=500), "2.5s"),
        (timedelta(minutes=1, seconds=30), "1m30s"),
        (timedelta(hours=1), "1h0m0s"),
        (timedelta(hours=26, seconds=5), "26h0m5s"),
        (timedelta(seconds=-90), "-1m30s"),
    ],
)
def test_format_duration(duration: timedelta, expected: str) -> None:
    assert format_duration(duration) == expected


def test_timeout_ms_truncates_to_milliseconds() -> None:
    config = ClientConfig(timeout=timedelta(seconds=1, microseconds=1999))

    assert config.timeout_ms == 1001


def test_resolve_client_config_defaults() -> None:
    config = resolve_client_config(_namespace(), {})

    assert config == ClientConfig()
    assert config.timeout == timedelta(0)
    assert config.impersonate == ImpersonationConfig()


def test_resolve_client_config_reads_configuration_table() -> None:
    config = resolve_client_config(
        _namespace(),
        {
            "connection": {
                "host": "https://cluster.example:6443",
                "api_path": "/api",
                "bearer_token": "secret",
                "impersonate_user": "jane",
                "impersonate_groups": ["admins", "devs"],
                "insecure": True,
                "ca_file": "/etc/ca.pem",
                "ca_data": "Q0E=",
                "user_agent": "kubeplugins/0.1.0",
                "timeout": "30s",
            }
        },
    )

    assert config.host == "https://cluster.example:6443"
    assert config.api_path == "/api"
    assert config.bearer_token == "secret"
    assert config.impersonate == ImpersonationConfig("jane", ("admins", "devs"))
    assert config.insecure is True
    assert config.ca_file == "/etc/ca.pem"
    assert config.ca_data == "Q0E="
    assert config.user_agent == "kubeplugins/0.1.0"
    assert config.timeout == timedelta(seconds=30)


def test_resolve_client_config_prefers_command_line() -> None:
    namespace = _namespace(
        server="https://override:443",
        token="flag-token",
        as_user="bob",
        as_group=["ops"],
        insecure_skip_tls_verify=True,
        client_certificate="/tmp/cert.pem",
        request_timeout="1m",
    )

    config = resolve_client_config(
        namespace,
        {
            "connection": {
                "host": "https://configured:443",
                "bearer_token": "configured-token",
                "impersonate_groups": "admins",
                "timeout": "5s",
            }
        },
    )

    assert config.host == "https://override:443"
    assert config.bearer_token == "flag-token"
    assert config.impersonate == ImpersonationConfig("bob", ("ops",))
    assert config.insecure is True
    assert config.cert_file == "/tmp/cert.pem"
    assert config.timeout == timedelta(minutes=1)


def test_resolve_client_config_rejects_invalid_timeout() -> None:
    with pytest.raises(ConnectionConfigError):
        resolve_client_config(_namespace(request_timeout="soon"), {})


def test_resolve_client_config_rejects_non_table_section() -> None:
    with pytest.raises(ConnectionConfigError):
        resolve_client_config(_namespace(), {"connection": "https://cluster"})


@pytest.mark.parametrize(
    "flag, configured, expected",
    [
        (None, None, "default"),
        (None, "team-a", "team-a"),
        ("kube-system", "team-a", "kube-system"),
    ],
)
def test_resolve_namespace(flag: str | None, configured: str | None, expected: str) -> None:
    config = {} if configured is None else {"namespace": configured}

    assert resolve_namespace(_namespace(namespace=flag), config) == expected
