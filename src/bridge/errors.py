"""Error kinds raised while placing, bridging and transferring calls.

These exceptions are safe to import from configuration and API layers without
pulling in socket or telephony clients.
"""

from __future__ import annotations


class BridgeError(Exception):
    default_detail: str = "Bridge error"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.default_detail)
        self.detail = detail or self.default_detail


class ConfigurationError(BridgeError):
    default_detail = "Required configuration is missing."


class SetupFailure(BridgeError):
    default_detail = "Could not establish the agent connection."


class ProtocolError(BridgeError):
    default_detail = "Malformed socket frame."


class TransferFailure(BridgeError):
    default_detail = "Call transfer failed."
