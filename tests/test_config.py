from __future__ import annotations

import pytest

from core.config import Settings, parse_duration
from serve import build_parser


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("200ms", 0.2),
        ("10ms", 0.01),
        ("1s", 1.0),
        ("1.5s", 1.5),
        ("2m", 120.0),
        ("1m30s", 90.0),
        ("500us", 0.0005),
        ("0.25", 0.25),
        ("3", 3.0),
    ],
)
def test_parse_duration(raw: str, expected: float) -> None:
    assert parse_duration(raw) == pytest.approx(expected)


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["", "ms", "10 ms", "10x", "-1s", "-2", "1s2"])
def test_parse_duration_rejects_garbage(raw: str) -> None:
    with pytest.raises(ValueError):
        parse_duration(raw)


@pytest.mark.unit
def test_settings_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "9090")
    monkeypatch.setenv("QUERY_TIMEOUT", "300ms")
    monkeypatch.setenv("PERSIST_TIMEOUT", "not-a-duration")
    monkeypatch.setenv("EXCHANGE_PAIR", "eur-brl")
    monkeypatch.setenv("EXCHANGE_BASE_URL", "http://rates.test/")

    settings = Settings.from_env()

    assert settings.port == 9090
    assert settings.query_timeout_s == pytest.approx(0.3)
    assert settings.persist_timeout_s == pytest.approx(0.01)
    assert settings.exchange_url == "http://rates.test/json/last/EUR-BRL"


@pytest.mark.unit
def test_server_flags_override_defaults() -> None:
    args = build_parser(Settings()).parse_args(
        ["--port", "9000", "--query-timeout", "1s", "--persist-timeout", "50ms", "--drain-timeout", "2s"]
    )

    assert args.port == 9000
    assert args.query_timeout == pytest.approx(1.0)
    assert args.persist_timeout == pytest.approx(0.05)
    assert args.drain_timeout == pytest.approx(2.0)


@pytest.mark.unit
def test_server_flag_defaults_match_settings() -> None:
    args = build_parser(Settings()).parse_args([])

    assert args.port == 8080
    assert args.query_timeout == pytest.approx(0.2)
    assert args.persist_timeout == pytest.approx(0.01)
    assert args.drain_timeout == pytest.approx(10.0)
