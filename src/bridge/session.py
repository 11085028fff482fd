"""Per-call state tracked by a media bridge."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from bridge.errors import ProtocolError


class CallPhase(str, enum.Enum):
    AWAITING_START = "awaiting_start"
    STREAMING = "streaming"
    TRANSFERRING = "transferring"
    CLOSED = "closed"


@dataclass
class CallSession:
    """Identity and lifecycle of one bridged call.

    Owned by exactly one bridge and never shared between calls. The Twilio
    identifiers and custom parameters stay empty until the stream's
    ``start`` event arrives and are read-only afterwards.
    """

    stream_sid: str | None = None
    call_sid: str | None = None
    custom_parameters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    phase: CallPhase = CallPhase.AWAITING_START

    @property
    def is_streaming(self) -> bool:
        return self.stream_sid is not None and self.phase in (CallPhase.STREAMING, CallPhase.TRANSFERRING)

    @property
    def is_closed(self) -> bool:
        return self.phase is CallPhase.CLOSED

    def parameter(self, name: str, default: str | None = None) -> str | None:
        value = self.custom_parameters.get(name)
        if value is None or not str(value).strip():
            return default
        return str(value)

    def start(self, stream_sid: str, call_sid: str, custom_parameters: Mapping[str, str] | None) -> None:
        if self.phase is not CallPhase.AWAITING_START:
            raise ProtocolError(f"Stream already started (phase={self.phase.value})")
        self.stream_sid = stream_sid
        self.call_sid = call_sid
        self.custom_parameters = MappingProxyType(
            {str(key): str(value) for key, value in (custom_parameters or {}).items()}
        )
        self.phase = CallPhase.STREAMING

    def begin_transfer(self) -> bool:
        """Move a streaming call into the transfer phase; False if it is not streaming."""

        if self.phase is not CallPhase.STREAMING:
            return False
        self.phase = CallPhase.TRANSFERRING
        return True

    def close(self) -> bool:
        """Mark the call closed. Returns False when it already was."""

        if self.phase is CallPhase.CLOSED:
            return False
        self.phase = CallPhase.CLOSED
        return True
