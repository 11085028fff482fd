from __future__ import annotations

from integrations.twiml import to_ws_url, twiml_agent_conference, twiml_caller_conference, twiml_connect_stream


def test_to_ws_url_maps_schemes():
    assert to_ws_url("https://host/path") == "wss://host/path"
    assert to_ws_url("http://host/path") == "ws://host/path"
    assert to_ws_url("wss://host/path") == "wss://host/path"


def test_connect_stream_skips_empty_parameters():
    xml = twiml_connect_stream(stream_url="wss://h/s", parameters={"prompt": "", "client": "O'Neil"})
    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?><Response><Connect>')
    assert 'name="prompt"' not in xml
    assert "<Parameter name=\"client\" value=\"O'Neil\" />" in xml


def test_conference_legs_differ_only_in_mix_control():
    caller = twiml_caller_conference("transfer-CA1")
    agent = twiml_agent_conference("transfer-CA1")
    assert caller != agent
    assert caller.replace('OnEnter="false"', 'OnEnter="true"').replace('OnExit="false"', 'OnExit="true"') == agent
    assert 'beep="false"' in agent
