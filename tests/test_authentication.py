import base64

import pytest

from rsplpa.authentication import authenticate_server, build_authenticate_server_request
from rsplpa.context import AuthenticateServerParam, HttpSessionState
from rsplpa.encoding import encode_tlv, find_tag, gsmbcd2bin, iter_tlv
from rsplpa.interface import EuiccError

TRANSACTION_ID = bytes(range(16))
SIGNED1 = encode_tlv(0x30, encode_tlv(0x80, TRANSACTION_ID) + encode_tlv(0x83, b"\xaa" * 16))
SIGNATURE1 = encode_tlv(0x5F37, b"\x11" * 64)
PKID = encode_tlv(0x04, b"\x22" * 20)
CERTIFICATE = encode_tlv(0x30, encode_tlv(0x30, b"\x33" * 10))
IMEI = "35123456789012"


def b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def make_param(**overrides) -> AuthenticateServerParam:
    values = dict(
        b64_server_signed1=b64(SIGNED1),
        b64_server_signature1=b64(SIGNATURE1),
        b64_euicc_ci_pkid_to_be_used=b64(PKID),
        b64_server_certificate=b64(CERTIFICATE),
    )
    values.update(overrides)
    return AuthenticateServerParam(**values)


class FakeCtx:
    def __init__(self, response: bytes = b"", fail: bool = False):
        self.response = response
        self.fail = fail
        self.requests = []
        self.session = HttpSessionState()

    def command(self, request: bytes) -> bytes:
        self.requests.append(request)
        if self.fail:
            raise EuiccError("card failure")
        return self.response


def test_request_structure_without_options():
    transaction_id, request = build_authenticate_server_request(make_param())
    assert transaction_id == TRANSACTION_ID
    children = list(find_tag(request, 0xBF38).children())
    assert [c.tag for c in children] == [0x30, 0x5F37, 0x04, 0x30, 0xA0]
    assert [c.raw for c in children[:4]] == [SIGNED1, SIGNATURE1, PKID, CERTIFICATE]
    ctx_params = children[4]
    device_info = ctx_params.find(0xA1)
    assert [c.tag for c in ctx_params.children()] == [0xA1]
    assert device_info.find(0x80).value == bytes.fromhex("35290611")
    assert [c.tag for c in device_info.children()] == [0x80, 0xA1]


def test_request_with_matching_id_and_imei():
    _, request = build_authenticate_server_request(make_param(), "MATCH-ID", IMEI)
    ctx_params = find_tag(request, 0xBF38).find(0xA0)
    elements = list(ctx_params.children())
    assert elements[0].tag == 0x80 and elements[0].value == b"MATCH-ID"
    device_info = elements[1]
    imei_bin = gsmbcd2bin(IMEI)
    assert device_info.find(0x80).value == imei_bin[:4]
    assert device_info.find(0x82).value == imei_bin
    assert [c.tag for c in device_info.children()] == [0x80, 0xA1, 0x82]


def test_empty_matching_id_is_sent():
    _, request = build_authenticate_server_request(make_param(), "")
    ctx_params = find_tag(request, 0xBF38).find(0xA0)
    assert ctx_params.find(0x80).value == b""


def test_imei_too_long():
    with pytest.raises(ValueError):
        build_authenticate_server_request(make_param(), None, "1" * 17)


def test_missing_transaction_id():
    param = make_param(b64_server_signed1=b64(encode_tlv(0x30, encode_tlv(0x83, b"\x01"))))
    with pytest.raises(ValueError):
        build_authenticate_server_request(param)


def test_wrong_signature_tag():
    param = make_param(b64_server_signature1=b64(encode_tlv(0x04, b"\x01")))
    with pytest.raises(ValueError):
        build_authenticate_server_request(param)


def test_invalid_base64():
    with pytest.raises(ValueError):
        build_authenticate_server_request(make_param(b64_server_certificate="!!!"))


def test_authenticate_server_updates_session():
    response = encode_tlv(0xBF38, encode_tlv(0xA0, b"\x01\x02"))
    ctx = FakeCtx(response)
    ctx.session.authenticate_server_param = make_param()
    result = authenticate_server(ctx, "MATCH-ID")
    assert base64.b64decode(result) == response
    assert ctx.session.b64_authenticate_server_response == result
    assert ctx.session.transaction_id_bin == TRANSACTION_ID
    assert ctx.session.authenticate_server_param is None
    assert len(list(iter_tlv(ctx.requests[0]))) == 1


def test_authenticate_server_requires_param():
    with pytest.raises(EuiccError):
        authenticate_server(FakeCtx())


def test_authenticate_server_refuses_existing_response():
    ctx = FakeCtx()
    ctx.session.authenticate_server_param = make_param()
    ctx.session.b64_authenticate_server_response = "AAAA"
    with pytest.raises(EuiccError):
        authenticate_server(ctx)
    assert ctx.requests == []


def test_authenticate_server_command_failure_keeps_param():
    ctx = FakeCtx(fail=True)
    param = make_param()
    ctx.session.authenticate_server_param = param
    ctx.session.transaction_id_bin = b"\x01"
    with pytest.raises(EuiccError):
        authenticate_server(ctx)
    assert ctx.session.transaction_id_bin is None
    assert ctx.session.authenticate_server_param is param
    assert ctx.session.b64_authenticate_server_response is None