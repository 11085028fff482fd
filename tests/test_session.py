from __future__ import annotations

import pytest

from bridge.errors import ProtocolError
from bridge.session import CallPhase, CallSession


def test_new_session_awaits_start():
    session = CallSession()
    assert session.phase is CallPhase.AWAITING_START
    assert session.stream_sid is None
    assert session.call_sid is None
    assert not session.is_streaming


def test_start_records_identifiers_and_parameters():
    session = CallSession()
    session.start("MZ1", "CA1", {"prompt": "Be brief", "client": "Dana"})

    assert session.phase is CallPhase.STREAMING
    assert session.stream_sid == "MZ1"
    assert session.call_sid == "CA1"
    assert session.parameter("client") == "Dana"
    assert session.is_streaming


def test_custom_parameters_are_read_only():
    session = CallSession()
    session.start("MZ1", "CA1", {"client": "Dana"})
    with pytest.raises(TypeError):
        session.custom_parameters["client"] = "Eve"  # type: ignore[index]


def test_second_start_is_rejected():
    session = CallSession()
    session.start("MZ1", "CA1", {})
    with pytest.raises(ProtocolError):
        session.start("MZ2", "CA2", {})
    assert session.stream_sid == "MZ1"


def test_parameter_treats_blank_values_as_missing():
    session = CallSession()
    session.start("MZ1", "CA1", {"prompt": "  ", "forward_to": ""})
    assert session.parameter("prompt", "default") == "default"
    assert session.parameter("forward_to") is None
    assert session.parameter("absent", "x") == "x"


def test_transfer_only_from_streaming():
    session = CallSession()
    assert session.begin_transfer() is False

    session.start("MZ1", "CA1", {})
    assert session.begin_transfer() is True
    assert session.phase is CallPhase.TRANSFERRING
    assert session.is_streaming
    assert session.begin_transfer() is False


@pytest.mark.parametrize("advance", ["none", "start", "transfer"])
def test_close_is_idempotent_from_any_phase(advance):
    session = CallSession()
    if advance in {"start", "transfer"}:
        session.start("MZ1", "CA1", {})
    if advance == "transfer":
        session.begin_transfer()

    assert session.close() is True
    assert session.phase is CallPhase.CLOSED
    assert session.close() is False
    assert session.phase is CallPhase.CLOSED
    assert not session.is_streaming
