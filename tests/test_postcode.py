from __future__ import annotations

import asyncio

import httpx
import pytest

from core.calls import CallOutcome
from core.errors import ContextCancelledError, NoWinnerError
from core.server import ShutdownSignal
from fakes import delayed_json, routed
from postcode import cli
from postcode.providers import build_specs, decode_viacep, normalize_cep

ADDRESS = {"cep": "01001-000", "logradouro": "Praça da Sé", "localidade": "São Paulo", "uf": "SP"}


def _query(routes: dict, timeout_s: float = 1.0) -> CallOutcome:
    async def scenario() -> CallOutcome:
        async with httpx.AsyncClient(transport=routed(routes)) as client:
            return await cli.query("01001-000", timeout_s, client=client, shutdown=ShutdownSignal())

    return asyncio.run(scenario())


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["01001-000", "01001000", " 01001000 "])
def test_normalize_cep_accepts_both_forms(raw: str) -> None:
    assert normalize_cep(raw) == "01001000"


@pytest.mark.unit
@pytest.mark.parametrize("raw", ["", "0100-1000", "1234567", "abcde-fgh", "01001-0000"])
def test_normalize_cep_rejects_invalid(raw: str) -> None:
    with pytest.raises(ValueError, match="Invalid CEP"):
        normalize_cep(raw)


@pytest.mark.unit
def test_specs_are_declared_in_provider_order() -> None:
    specs = build_specs("01001-000", 0.5)
    assert [s.label for s in specs] == ["ViaCEP", "BrasilAPI"]
    assert specs[0].url == "http://viacep.com.br/ws/01001000/json/"
    assert specs[1].url == "https://brasilapi.com.br/api/cep/v1/01001000"
    assert all(s.timeout_s == 0.5 for s in specs)


@pytest.mark.unit
def test_viacep_not_found_body_is_rejected() -> None:
    with pytest.raises(ValueError):
        decode_viacep(b'{"erro": true}')
    assert decode_viacep(b'{"cep": "01001-000"}') == {"cep": "01001-000"}


@pytest.mark.integration
def test_fastest_provider_wins() -> None:
    winner = _query(
        {
            "viacep.com.br": delayed_json(0.12, ADDRESS),
            "brasilapi.com.br": delayed_json(0.02, {**ADDRESS, "service": "brasilapi"}),
        }
    )

    assert winner.label == "BrasilAPI"
    assert winner.payload["service"] == "brasilapi"


@pytest.mark.integration
def test_not_found_answer_never_wins() -> None:
    winner = _query(
        {
            "viacep.com.br": delayed_json(0.0, {"erro": True}),
            "brasilapi.com.br": delayed_json(0.08, ADDRESS),
        }
    )

    assert winner.label == "BrasilAPI"


@pytest.mark.integration
def test_all_providers_timing_out_means_no_winner() -> None:
    with pytest.raises(NoWinnerError):
        _query(
            {
                "viacep.com.br": delayed_json(1.0, ADDRESS),
                "brasilapi.com.br": delayed_json(1.0, ADDRESS),
            },
            timeout_s=0.05,
        )


@pytest.mark.integration
def test_termination_signal_cancels_every_branch() -> None:
    routes = {
        "viacep.com.br": delayed_json(2.0, ADDRESS),
        "brasilapi.com.br": delayed_json(2.0, ADDRESS),
    }

    async def scenario() -> None:
        shutdown = ShutdownSignal()
        asyncio.get_running_loop().call_later(0.03, shutdown.fire, "SIGINT")
        async with httpx.AsyncClient(transport=routed(routes)) as client:
            await cli.query("01001000", 5.0, client=client, shutdown=shutdown)

    with pytest.raises(NoWinnerError) as excinfo:
        asyncio.run(scenario())

    assert len(excinfo.value.outcomes) == 2
    for outcome in excinfo.value.outcomes:
        assert isinstance(outcome.error, ContextCancelledError)
        assert "SIGINT" in str(outcome.error)


@pytest.mark.unit
def test_main_rejects_invalid_cep() -> None:
    assert cli.main(["--cep", "not-a-cep"]) == 2
