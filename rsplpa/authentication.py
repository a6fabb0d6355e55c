"""ES10b AuthenticateServer: build the request and run it on the eUICC."""

from __future__ import annotations

import base64

from .context import AuthenticateServerParam
from .encoding import Tlv, encode_tlv, find_tag, gsmbcd2bin
from .interface import EuiccError

_TAG_AUTHENTICATE_SERVER = 0xBF38
_IMEI_SIZE = 8
_TAC_SIZE = 4
_DEFAULT_TAC = bytes([0x35, 0x29, 0x06, 0x11])


def _decode_element(b64_value: str, tag: int, name: str) -> Tlv:
    raw = base64.b64decode(b64_value, validate=True)
    try:
        return find_tag(raw, tag)
    except KeyError as exc:
        raise ValueError(f"malformed {name}: {exc}") from exc


def build_authenticate_server_request(
    param: AuthenticateServerParam,
    matching_id: str | None = None,
    imei: str | None = None,
) -> tuple[bytes, bytes]:
    """Return the transaction id and the AuthenticateServerRequest bytes."""
    signed1 = _decode_element(param.b64_server_signed1, 0x30, "serverSigned1")
    try:
        transaction_id = signed1.find(0x80).value
    except KeyError as exc:
        raise ValueError(f"malformed serverSigned1: {exc}") from exc
    signature1 = _decode_element(param.b64_server_signature1, 0x5F37, "serverSignature1")
    pkid = _decode_element(param.b64_euicc_ci_pkid_to_be_used, 0x04, "euiccCiPKIdToBeUsed")
    certificate = _decode_element(param.b64_server_certificate, 0x30, "serverCertificate")

    if imei is not None:
        imei_bin = gsmbcd2bin(imei)
        if len(imei_bin) > _IMEI_SIZE:
            raise ValueError("IMEI too long")
        if len(imei_bin) < _TAC_SIZE:
            raise ValueError("IMEI too short")
        device_info = (
            encode_tlv(0x80, imei_bin[:_TAC_SIZE])
            + encode_tlv(0xA1)
            + encode_tlv(0x82, imei_bin)
        )
    else:
        device_info = encode_tlv(0x80, _DEFAULT_TAC) + encode_tlv(0xA1)

    ctx_params = b""
    if matching_id is not None:
        ctx_params += encode_tlv(0x80, matching_id.encode("utf-8"))
    ctx_params += encode_tlv(0xA1, device_info)

    request = encode_tlv(
        _TAG_AUTHENTICATE_SERVER,
        signed1.raw + signature1.raw + pkid.raw + certificate.raw + encode_tlv(0xA0, ctx_params),
    )
    return transaction_id, request


def authenticate_server(ctx, matching_id: str | None = None, imei: str | None = None) -> str:
    """Run AuthenticateServer with the session's server data.

    Stores the binary transaction id and the base64 response in the session
    and returns the response.
    """
    session = ctx.session
    if session.b64_authenticate_server_response is not None:
        raise EuiccError("AuthenticateServer response already present")
    if session.authenticate_server_param is None:
        raise EuiccError("no AuthenticateServer parameters in the session")

    session.transaction_id_bin = None
    transaction_id, request = build_authenticate_server_request(
        session.authenticate_server_param, matching_id, imei
    )
    response = ctx.command(request)

    b64_response = base64.b64encode(response).decode("ascii")
    session.transaction_id_bin = transaction_id
    session.b64_authenticate_server_response = b64_response
    session.authenticate_server_param = None
    return b64_response