"""TwiML documents used to stream outbound calls and hand them to a person."""

from __future__ import annotations

from collections.abc import Mapping
from xml.sax.saxutils import escape, quoteattr


def to_ws_url(http_url: str) -> str:
    if http_url.startswith("https://"):
        return "wss://" + http_url.removeprefix("https://")
    if http_url.startswith("http://"):
        return "ws://" + http_url.removeprefix("http://")
    return http_url


def twiml_connect_stream(*, stream_url: str, parameters: Mapping[str, str]) -> str:
    params = "".join(
        f"<Parameter name={quoteattr(name)} value={quoteattr(value)} />"
        for name, value in parameters.items()
        if value
    )
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Connect>"
        f"<Stream url={quoteattr(stream_url)}>"
        f"{params}"
        "</Stream>"
        "</Connect>"
        "</Response>"
    )


def _twiml_conference(*, name: str, start_on_enter: bool, end_on_exit: bool) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\"?>"
        "<Response>"
        "<Dial>"
        f"<Conference startConferenceOnEnter=\"{str(start_on_enter).lower()}\" "
        f"endConferenceOnExit=\"{str(end_on_exit).lower()}\" beep=\"false\">"
        f"{escape(name)}"
        "</Conference>"
        "</Dial>"
        "</Response>"
    )


def twiml_caller_conference(name: str) -> str:
    """Caller waits in the conference; it neither starts nor ends the mix."""

    return _twiml_conference(name=name, start_on_enter=False, end_on_exit=False)


def twiml_agent_conference(name: str) -> str:
    """The human agent's leg starts the mix on entry and ends it on exit."""

    return _twiml_conference(name=name, start_on_enter=True, end_on_exit=True)
