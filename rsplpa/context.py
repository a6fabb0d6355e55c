"""eUICC session context: channel handling and segmented ES10x commands."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from .interface import (
    ApduError,
    ApduInterface,
    ApduRequest,
    EuiccError,
    HttpInterface,
    StatusWord,
    apdu_lc,
    apdu_le,
    transmit_apdu,
)

ISD_R_AID = bytes.fromhex("A0000005591010FFFFFFFF8900000100")
DEFAULT_MSS = 120

_ES10X_CLA = 0x80
_ES10X_INS = 0xE2
_P1_CONTINUE = 0x11
_P1_LAST = 0x91
_GET_RESPONSE = (0x80, 0xC0, 0x00, 0x00)


@dataclass
class HttpStatus:
    """Status reported by the last server exchange."""

    subject_code: str = ""
    reason_code: str = ""
    subject_identifier: str = ""
    message: str = ""


@dataclass
class AuthenticateServerParam:
    """Server data needed for AuthenticateServer."""

    b64_server_signed1: str
    b64_server_signature1: str
    b64_euicc_ci_pkid_to_be_used: str
    b64_server_certificate: str


@dataclass
class PrepareDownloadParam:
    """Server data needed for PrepareDownload."""

    b64_profile_metadata: str
    b64_smdp_signed2: str
    b64_smdp_signature2: str
    b64_smdp_certificate: str


@dataclass
class HttpSessionState:
    """Intermediate values handed between the steps of a download session."""

    transaction_id_http: str | None = None
    transaction_id_bin: bytes | None = None
    b64_euicc_challenge: str | None = None
    b64_euicc_info_1: str | None = None
    authenticate_server_param: AuthenticateServerParam | None = None
    b64_authenticate_server_response: str | None = None
    prepare_download_param: PrepareDownloadParam | None = None
    b64_prepare_download_response: str | None = None
    b64_bound_profile_package: str | None = None
    b64_cancel_session_response: str | None = None


class EuiccContext:
    """A connection to an eUICC plus the state of an RSP session."""

    def __init__(
        self,
        apdu: ApduInterface,
        http: HttpInterface | None = None,
        server_address: str | None = None,
        aid: bytes | None = None,
    ):
        self.apdu = apdu
        self.http = http
        self.server_address = server_address
        self.aid = bytes(aid) if aid is not None else ISD_R_AID
        self.es10x_mss = DEFAULT_MSS
        self.logic_channel = 0
        self.http_status = HttpStatus()
        self.session = HttpSessionState()

    def init(self) -> None:
        """Connect to the card and open a logical channel to the ISD-R."""
        self.es10x_mss = DEFAULT_MSS
        self.apdu.connect()
        try:
            channel = self.apdu.logic_channel_open(self.aid)
        except Exception:
            self.apdu.disconnect()
            raise
        if channel is None or channel < 0:
            self.apdu.disconnect()
            raise EuiccError("failed to open logical channel")
        self.logic_channel = channel

    def fini(self) -> None:
        """Close the logical channel and disconnect."""
        self.apdu.logic_channel_close(self.logic_channel)
        self.apdu.disconnect()
        self.logic_channel = 0

    def __enter__(self) -> EuiccContext:
        self.init()
        return self

    def __exit__(self, *args) -> None:
        self.fini()

    def _send(self, request: ApduRequest):
        cla = (request.cla & 0xF0) | (self.logic_channel & 0x0F)
        return transmit_apdu(self.apdu, ApduRequest(cla, request.ins, request.p1, request.p2, request.length, request.data))

    def _exchange(self, request: ApduRequest) -> Iterator[bytes]:
        response = self._send(request)
        while True:
            if response.data:
                yield response.data
            if response.sw1 == StatusWord.LAST:
                response = self._send(apdu_le(*_GET_RESPONSE, response.sw2))
                continue
            if response.sw1 & 0xF0 == StatusWord.OK:
                return
            raise ApduError(
                f"card returned status {response.sw1:02X}{response.sw2:02X}",
                response.sw1,
                response.sw2,
            )

    def command_iter(self, request: bytes) -> Iterator[bytes]:
        """Send a DER request in segments and yield each chunk of response data."""
        mss = self.es10x_mss
        for seq, start in enumerate(range(0, len(request), mss)):
            segment = request[start : start + mss]
            is_last = start + mss >= len(request)
            p1 = _P1_LAST if is_last else _P1_CONTINUE
            yield from self._exchange(apdu_lc(_ES10X_CLA, _ES10X_INS, p1, seq & 0xFF, segment))

    def command(self, request: bytes) -> bytes:
        """Send a DER request and return the whole response."""
        return b"".join(self.command_iter(request))

    def http_cleanup(self) -> None:
        """Forget every intermediate value of the download session."""
        self.session = HttpSessionState()