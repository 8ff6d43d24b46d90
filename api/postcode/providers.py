"""
Postal-code (CEP) providers raced against each other.

Declaration order matters only for tie-breaks.
"""

from __future__ import annotations

import re
from typing import Any

from core.calls import CallSpec, decode_json

CEP_PATTERN = re.compile(r"^\d{5}-?\d{3}$")

VIACEP_URL = "http://viacep.com.br/ws/{cep}/json/"
BRASILAPI_URL = "https://brasilapi.com.br/api/cep/v1/{cep}"


def normalize_cep(raw: str) -> str:
    cep = (raw or "").strip()
    if not CEP_PATTERN.match(cep):
        raise ValueError(f"Invalid CEP: {raw}")
    return cep.replace("-", "")


def _decode_object(body: bytes) -> dict[str, Any]:
    data = decode_json(body)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def decode_viacep(body: bytes) -> dict[str, Any]:
    data = _decode_object(body)
    # ViaCEP answers unknown CEPs with 200 and {"erro": true}.
    if data.get("erro"):
        raise ValueError("CEP not found")
    return data


def decode_brasilapi(body: bytes) -> dict[str, Any]:
    return _decode_object(body)


def build_specs(cep: str, timeout_s: float) -> list[CallSpec]:
    cep = normalize_cep(cep)
    return [
        CallSpec(
            label="ViaCEP",
            url=VIACEP_URL.format(cep=cep),
            timeout_s=timeout_s,
            decode=decode_viacep,
        ),
        CallSpec(
            label="BrasilAPI",
            url=BRASILAPI_URL.format(cep=cep),
            timeout_s=timeout_s,
            decode=decode_brasilapi,
        ),
    ]
