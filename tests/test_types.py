from __future__ import annotations

import pytest
from pydantic import ValidationError

from nope_sdk.types import (
    EvaluateConfig,
    EvaluateResponse,
    Message,
    calculate_speaker_imminence,
    calculate_speaker_severity,
    has_third_party_risk,
)


def _domain(domain: str, severity: str, imminence: str) -> dict:
    return {"domain": domain, "severity": severity, "imminence": imminence, "confidence": 0.8, "risk_features": []}


def _response(*domains: dict, legal_flags: dict | None = None) -> EvaluateResponse:
    body = {
        "domains": list(domains),
        "global": {"overall_severity": "none", "overall_imminence": "not_applicable", "primary_concerns": []},
        "confidence": 0.9,
        "crisis_resources": [],
    }
    if legal_flags is not None:
        body["legal_flags"] = legal_flags
    return EvaluateResponse.model_validate(body)


def test_speaker_severity_is_highest_self_or_victimisation_domain() -> None:
    response = _response(
        _domain("self", "moderate", "chronic"),
        _domain("victimisation", "high", "subacute"),
        _domain("others", "critical", "emergency"),
    )

    assert calculate_speaker_severity(response) == "high"
    assert calculate_speaker_imminence(response) == "subacute"


def test_speaker_levels_default_when_no_speaker_domains() -> None:
    response = _response(_domain("others", "high", "urgent"))

    assert calculate_speaker_severity(response) == "none"
    assert calculate_speaker_imminence(response) == "not_applicable"


def test_third_party_risk_from_domains() -> None:
    assert has_third_party_risk(_response(_domain("dependent_at_risk", "mild", "chronic"))) is True
    assert has_third_party_risk(_response(_domain("others", "none", "not_applicable"))) is False
    assert has_third_party_risk(_response(_domain("self", "critical", "emergency"))) is False


def test_third_party_risk_from_legal_flags() -> None:
    response = _response(
        legal_flags={
            "third_party_threat": {
                "present": True,
                "identifiable_victim": False,
                "confidence": 0.7,
                "rationale": "threat toward coworker",
            }
        }
    )

    assert has_third_party_risk(response) is True


def test_global_is_reachable_by_alias_and_name() -> None:
    response = _response()

    assert response.global_.overall_severity == "none"
    assert response.model_dump(by_alias=True)["global"]["overall_severity"] == "none"


def test_request_models_reject_unknown_fields() -> None:
    with pytest.raises(ValidationError):
        EvaluateConfig(user_country="US", country="US")
    with pytest.raises(ValidationError):
        Message(role="bot", content="hi")
