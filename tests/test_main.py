from __future__ import annotations

import io
import json

import httpx

from nope_sdk import __main__ as cli
from nope_sdk.client import NopeClient
from nope_sdk.webhook import sign_webhook, verify_webhook


def _patch_client(monkeypatch, handler) -> None:
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        cli,
        "create_client_from_env",
        lambda: NopeClient(api_key="test_key", client_factory=lambda: httpx.AsyncClient(transport=transport)),
    )


def test_evaluate_prints_response_json(monkeypatch, capsys) -> None:
    sent: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(
            status_code=200,
            json={
                "domains": [],
                "global": {"overall_severity": "none", "overall_imminence": "not_applicable", "primary_concerns": []},
                "confidence": 0.97,
                "crisis_resources": [],
            },
        )

    _patch_client(monkeypatch, handler)

    exit_code = cli.main(["evaluate", "Hello, how are you?", "--country", "GB"])

    assert exit_code == 0
    assert sent == [{"config": {"user_country": "GB"}, "text": "Hello, how are you?"}]
    printed = json.loads(capsys.readouterr().out)
    assert printed["global"]["overall_severity"] == "none"
    assert printed["confidence"] == 0.97


def test_screen_reports_api_error(monkeypatch, capsys) -> None:
    _patch_client(monkeypatch, lambda _: httpx.Response(status_code=401, json={"error": "Invalid API key"}))

    exit_code = cli.main(["screen", "I need help"])

    assert exit_code == 1
    assert "auth: [401] Invalid API key" in capsys.readouterr().err


def test_sign_webhook_prints_headers(monkeypatch, capsys) -> None:
    body = '{"event":"test.ping","event_id":"evt_1","timestamp":"2025-10-09T08:53:20Z","api_version":"2025-01"}'
    monkeypatch.setenv("NOPE_WEBHOOK_SECRET", "whsec_cli")
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(body.encode("utf-8"))))

    exit_code = cli.main(["sign-webhook", "--timestamp", "1760000000"])

    assert exit_code == 0
    lines = dict(line.split(": ", 1) for line in capsys.readouterr().out.splitlines())
    event = verify_webhook(
        body,
        lines["X-NOPE-Signature"],
        lines["X-NOPE-Timestamp"],
        "whsec_cli",
        now=1760000000,
    )
    assert event.event_id == "evt_1"


def test_sign_webhook_requires_secret(monkeypatch, capsys, tmp_path) -> None:
    monkeypatch.delenv("NOPE_WEBHOOK_SECRET", raising=False)
    payload_file = tmp_path / "payload.json"
    payload_file.write_text("{}")

    exit_code = cli.main(["sign-webhook", str(payload_file)])

    assert exit_code == 1
    assert "NOPE_WEBHOOK_SECRET" in capsys.readouterr().err


def test_verify_webhook_honours_configured_max_age(monkeypatch, capsys, tmp_path) -> None:
    body = '{"event":"test.ping","event_id":"evt_2","timestamp":"2025-10-09T08:53:20Z","api_version":"2025-01"}'
    payload_file = tmp_path / "payload.json"
    payload_file.write_text(body)
    monkeypatch.setenv("NOPE_WEBHOOK_SECRET", "whsec_cli")
    monkeypatch.setenv("NOPE_WEBHOOK_MAX_AGE_SECONDS", "60")
    signed = sign_webhook(body, "whsec_cli", timestamp=1760000000)
    args = ["verify-webhook", str(payload_file), "--signature", signed.signature, "--timestamp", signed.timestamp]

    assert cli.main([*args, "--now", "1760000060"]) == 0
    assert json.loads(capsys.readouterr().out)["event_id"] == "evt_2"

    assert cli.main([*args, "--now", "1760000061"]) == 1
    assert "webhook_signature: Timestamp too old: 61s ago (max: 60s)" in capsys.readouterr().err


def test_verify_webhook_rejects_tampered_stdin(monkeypatch, capsys) -> None:
    body = '{"event":"test.ping","event_id":"evt_3","timestamp":"2025-10-09T08:53:20Z","api_version":"2025-01"}'
    monkeypatch.setenv("NOPE_WEBHOOK_SECRET", "whsec_cli")
    signed = sign_webhook(body, "whsec_cli", timestamp=1760000000)
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(body.replace("evt_3", "evt_4").encode("utf-8"))))

    exit_code = cli.main(
        ["verify-webhook", "--signature", signed.signature, "--timestamp", signed.timestamp, "--now", "1760000000"]
    )

    assert exit_code == 1
    assert "webhook_signature: Signature verification failed" in capsys.readouterr().err
