"""APDU and HTTP transport interfaces and APDU framing."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Protocol, Sequence


class EuiccError(Exception):
    """Base error for eUICC operations."""


class ApduError(EuiccError):
    """An APDU exchange failed or the card returned an error status."""

    def __init__(self, message: str, sw1: int | None = None, sw2: int | None = None):
        super().__init__(message)
        self.sw1 = sw1
        self.sw2 = sw2


class StatusWord(IntEnum):
    """SW1 values that drive the exchange."""

    OK = 0x90
    LAST = 0x61


class ApduInterface(Protocol):
    """A card reader able to exchange raw APDUs."""

    def connect(self) -> None:
        """Connect to the card."""

    def disconnect(self) -> None:
        """Disconnect from the card."""

    def logic_channel_open(self, aid: bytes) -> int:
        """Open a logical channel to the application ``aid``; return its number."""

    def logic_channel_close(self, channel: int) -> None:
        """Close a logical channel."""

    def transmit(self, data: bytes) -> bytes:
        """Send a command APDU and return the response including SW1 SW2."""


class HttpInterface(Protocol):
    """An HTTP client able to post a request body."""

    def transmit(self, url: str, data: bytes, headers: Sequence[str]) -> tuple[int, bytes]:
        """Post ``data`` to ``url``; return the status code and response body."""


@dataclass(frozen=True)
class ApduRequest:
    """A command APDU with a one-byte Lc or Le field."""

    cla: int
    ins: int
    p1: int
    p2: int
    length: int
    data: bytes = b""

    def to_bytes(self) -> bytes:
        """Return the wire form of the command."""
        return bytes([self.cla, self.ins, self.p1, self.p2, self.length]) + self.data


@dataclass(frozen=True)
class ApduResponse:
    """A response APDU split into its data and status word."""

    data: bytes
    sw1: int
    sw2: int


def apdu_lc(cla: int, ins: int, p1: int, p2: int, data: bytes) -> ApduRequest:
    """Build a command carrying ``data``."""
    if len(data) > 0xFF:
        raise ValueError("APDU data longer than 255 bytes")
    return ApduRequest(cla, ins, p1, p2, len(data), bytes(data))


def apdu_le(cla: int, ins: int, p1: int, p2: int, length: int) -> ApduRequest:
    """Build a command expecting ``length`` bytes back."""
    if not 0 <= length <= 0xFF:
        raise ValueError("Le out of range")
    return ApduRequest(cla, ins, p1, p2, length)


def _debug_enabled() -> bool:
    return bool(os.environ.get("LIBEUICC_DEBUG_APDU"))


def transmit_apdu(interface: ApduInterface, request: ApduRequest) -> ApduResponse:
    """Send ``request`` and split the status word off the reply."""
    if _debug_enabled():
        print(
            f"[DEBUG] [APDU] [TX] CLA: {request.cla:02X}, INS: {request.ins:02X}, "
            f"P1: {request.p1:02X}, P2: {request.p2:02X}, Lc: {request.length:02X}, Data: "
            + "".join(f"{b:02X} " for b in request.data),
            file=sys.stderr,
        )

    raw = interface.transmit(request.to_bytes())
    if len(raw) < 2:
        raise ApduError("response shorter than a status word")
    response = ApduResponse(bytes(raw[:-2]), raw[-2], raw[-1])

    if _debug_enabled():
        print(
            f"[DEBUG] [APDU] [RX] SW1: {response.sw1:02X}, SW2: {response.sw2:02X}, Data: "
            + "".join(f"{b:02X} " for b in response.data),
            file=sys.stderr,
        )
    return response