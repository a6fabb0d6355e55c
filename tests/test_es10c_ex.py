import pytest

from rsplpa.encoding import encode_tlv, int_to_bytes
from rsplpa.es10c_ex import EuiccInfo2, get_euiccinfo2, parse_euiccinfo2
from rsplpa.interface import EuiccError


class FakeCtx:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def command(self, request):
        self.requests.append(request)
        return self.response


def info(*children):
    return encode_tlv(0xBF22, b"".join(children))


def test_versions_parsed():
    result = parse_euiccinfo2(info(encode_tlv(0x81, bytes([2, 2, 2])), encode_tlv(0x04, bytes([0, 1, 0]))))
    assert result.profile_version == "2.2.2"
    assert result.pp_version == "0.1.0"


def test_version_with_wrong_length_is_left_unset():
    result = parse_euiccinfo2(info(encode_tlv(0x82, bytes([1, 2]))))
    assert result.svn is None


@pytest.mark.parametrize("value", [0, 5, 127, 70000, 1 << 20])
def test_ext_card_resource_round_trip(value):
    body = encode_tlv(0x81, int_to_bytes(value)) + encode_tlv(0x82, int_to_bytes(value)) + encode_tlv(0x83, int_to_bytes(value))
    result = parse_euiccinfo2(info(encode_tlv(0x84, body)))
    assert result.ext_card_resource.installed_application == value
    assert result.ext_card_resource.free_non_volatile_memory == value
    assert result.ext_card_resource.free_volatile_memory == value


def test_capabilities_decoded_from_bits():
    result = parse_euiccinfo2(info(encode_tlv(0x85, b"\x07\x80"), encode_tlv(0x88, b"\x04\x50")))
    assert result.uicc_capability == ["contactlessSupport"]
    assert result.rsp_capability == ["crlSupport", "testProfileSupport"]


def test_forbidden_ppr():
    result = parse_euiccinfo2(info(encode_tlv(0x99, b"\x06\x40")))
    assert result.forbidden_profile_policy_rules == ["ppr1"]


def test_empty_bit_string_is_an_error():
    with pytest.raises(ValueError):
        parse_euiccinfo2(info(encode_tlv(0x85, b"")))


def test_ci_pkid_lists():
    keys = [bytes(range(20)), bytes(range(100, 120))]
    body = b"".join(encode_tlv(0x04, k) for k in keys)
    result = parse_euiccinfo2(info(encode_tlv(0xA9, body), encode_tlv(0xAA, body[: len(body) // 2])))
    assert result.euicc_ci_pkid_list_for_verification == [k.hex() for k in keys]
    assert result.euicc_ci_pkid_list_for_signing == [keys[0].hex()]


@pytest.mark.parametrize(
    "code, name",
    [(1, "basicEuicc"), (2, "mediumEuicc"), (3, "contactlessEuicc"), (0, "other"), (9, "other")],
)
def test_category(code, name):
    assert parse_euiccinfo2(info(encode_tlv(0xAB, bytes([code])))).euicc_category == name


def test_text_fields_and_certification():
    cert = encode_tlv(0x80, b"platform-x") + encode_tlv(0x81, b"discovery.example.com")
    result = parse_euiccinfo2(info(encode_tlv(0x0C, b"SAS-EXAMPLE"), encode_tlv(0xAC, cert)))
    assert result.sas_accreditation_number == "SAS-EXAMPLE"
    assert result.certification_data_object.platform_label == "platform-x"
    assert result.certification_data_object.discovery_base_url == "discovery.example.com"


def test_missing_root_raises():
    with pytest.raises(ValueError):
        parse_euiccinfo2(encode_tlv(0xBF20, b""))


def test_get_euiccinfo2_sends_request_and_parses():
    ctx = FakeCtx(info(encode_tlv(0x83, bytes([4, 5, 6]))))
    result = get_euiccinfo2(ctx)
    assert ctx.requests == [b"\xbf\x22\x00"]
    assert result.euicc_firmware_ver == "4.5.6"


def test_get_euiccinfo2_malformed_response():
    with pytest.raises(EuiccError):
        get_euiccinfo2(FakeCtx(b""))