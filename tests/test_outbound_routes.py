from __future__ import annotations

import json
from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from bridge.errors import SetupFailure
from integrations.twilio_client import TwilioConfig
from llm.opening_line import OpeningLineGenerator


class FakeTwilioCall:
    def __init__(self, sid: str) -> None:
        self.sid = sid


class FakeTwilioCalls:
    def __init__(self, *, fail: bool = False) -> None:
        self.created: list[dict] = []
        self.fail = fail

    def create(self, *, to: str, from_: str, url: str, method: str):
        if self.fail:
            raise RuntimeError("Twilio is down")
        self.created.append({"to": to, "from_": from_, "url": url, "method": method})
        return FakeTwilioCall("CA123")


class FakeTwilioClient:
    def __init__(self, *, fail: bool = False) -> None:
        self.calls = FakeTwilioCalls(fail=fail)


class FailingConnector:
    async def connect(self):
        raise SetupFailure("Failed to get signed URL: 401 Unauthorized")


class NoopOrchestrator:
    async def transfer(self, call_sid: str, target_number: str) -> None:
        return None


def _cfg() -> TwilioConfig:
    return TwilioConfig(
        account_sid="AC123",
        auth_token="token",
        from_number="+15005550006",
        public_base_url="https://example.com",
    )


@pytest.fixture()
def twilio_client(app):
    import api.dependencies as deps

    fake = FakeTwilioClient()
    app.dependency_overrides[deps.get_twilio_client] = lambda: fake
    app.dependency_overrides[deps.get_twilio_cfg] = _cfg
    app.dependency_overrides[deps.get_opening_line_generator] = lambda: OpeningLineGenerator(None)
    return fake


def test_health(app):
    with TestClient(app) as client:
        resp = client.get("/")
    assert resp.status_code == 200
    assert resp.json() == {"message": "Server is running"}


def test_outbound_call_requires_number(app, twilio_client):
    with TestClient(app) as client:
        resp = client.post("/outbound-call", json={"prompt": "hi"})

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Phone number is required"
    assert twilio_client.calls.created == []


def test_outbound_call_creates_call_with_parameters(app, twilio_client):
    body = {
        "number": "+14155550100",
        "prompt": "Qualify the lead",
        "client": "Dana",
        "source": "facebook",
        "damage": "hail on the roof",
        "insurance": "yes",
        "forward_to": "+15550001111",
    }
    with TestClient(app) as client:
        resp = client.post("/outbound-call", json=body)

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Call initiated", "callSid": "CA123"}

    created = twilio_client.calls.created[0]
    assert created["to"] == "+14155550100"
    assert created["from_"] == "+15005550006"

    url = urlparse(created["url"])
    assert f"{url.scheme}://{url.netloc}{url.path}" == "https://example.com/outbound-call-twiml"
    query = {key: values[0] for key, values in parse_qs(url.query).items()}
    assert query["prompt"] == "Qualify the lead"
    assert query["forward_to"] == "+15550001111"
    assert "age" not in query
    assert query["first_message"].startswith("Hi Dana,")
    assert "facebook" in query["first_message"]


def test_outbound_call_keeps_explicit_first_message(app, twilio_client):
    with TestClient(app) as client:
        resp = client.post("/outbound-call", json={"number": "+14155550100", "first_message": "Hello!"})

    assert resp.status_code == 200
    query = parse_qs(urlparse(twilio_client.calls.created[0]["url"]).query)
    assert query["first_message"] == ["Hello!"]


def test_outbound_call_reports_twilio_failure(app):
    import api.dependencies as deps

    app.dependency_overrides[deps.get_twilio_client] = lambda: FakeTwilioClient(fail=True)
    app.dependency_overrides[deps.get_twilio_cfg] = _cfg
    app.dependency_overrides[deps.get_opening_line_generator] = lambda: OpeningLineGenerator(None)

    with TestClient(app) as client:
        resp = client.post("/outbound-call", json={"number": "+14155550100"})

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "error": "Failed to initiate call"}


@pytest.mark.parametrize("method", ["get", "post"])
def test_twiml_connects_stream_with_parameters(app, method):
    params = {"prompt": "Say <hi> & bye", "client": "Dana", "forward_to": "+15550001111"}
    with TestClient(app) as client:
        resp = getattr(client, method)("/outbound-call-twiml", params=params)

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/xml")
    assert '<Stream url="wss://bridge.example.com/outbound-media-stream">' in resp.text
    assert '<Parameter name="prompt" value="Say &lt;hi&gt; &amp; bye" />' in resp.text
    assert '<Parameter name="client" value="Dana" />' in resp.text
    assert '<Parameter name="forward_to" value="+15550001111" />' in resp.text
    assert 'name="source"' not in resp.text


def test_twiml_falls_back_to_request_host_without_public_url(app):
    import api.dependencies as deps

    app.dependency_overrides[deps.get_twilio_cfg] = lambda: TwilioConfig(
        account_sid="AC123",
        auth_token="token",
        from_number="+15005550006",
        public_base_url=None,
    )
    with TestClient(app) as client:
        resp = client.get("/outbound-call-twiml", params={"client": "Dana"})

    assert '<Stream url="wss://testserver/outbound-media-stream">' in resp.text


def test_media_stream_without_agent_stays_open_until_stop(app):
    import api.dependencies as deps

    app.dependency_overrides[deps.get_agent_connector] = lambda: FailingConnector()
    app.dependency_overrides[deps.get_transfer_orchestrator] = lambda: NoopOrchestrator()

    start = {
        "event": "start",
        "start": {"streamSid": "MZ1", "callSid": "CA1", "customParameters": {"client": "Dana"}},
    }
    with TestClient(app) as client:
        with client.websocket_connect("/outbound-media-stream") as ws:
            ws.send_text(json.dumps({"event": "connected", "protocol": "Call"}))
            ws.send_text(json.dumps(start))
            ws.send_text(json.dumps({"event": "media", "media": {"payload": "AAAA"}}))
            ws.send_text(json.dumps({"event": "stop", "streamSid": "MZ1"}))
            with pytest.raises(WebSocketDisconnect):
                ws.receive_text()
