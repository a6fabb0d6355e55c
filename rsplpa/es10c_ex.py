"""GetEuiccInfo2: the eUICC's versions, capabilities and certification data."""

from __future__ import annotations

from dataclasses import dataclass, field

from .encoding import Tlv, bin2hex, bits_to_names, bytes_to_int, encode_tlv, find_tag
from .interface import EuiccError

_TAG_EUICC_INFO2 = 0xBF22

UICC_CAPABILITY_NAMES = (
    "contactlessSupport",
    "usimSupport",
    "isimSupport",
    "csimSupport",
    "akaMilenage",
    "akaCave",
    "akaTuak128",
    "akaTuak256",
    "rfu1",
    "rfu2",
    "gbaAuthenUsim",
    "gbaAuthenISim",
    "mbmsAuthenUsim",
    "eapClient",
    "javacard",
    "multos",
    "multipleUsimSupport",
    "multipleIsimSupport",
    "multipleCsimSupport",
)
RSP_CAPABILITY_NAMES = ("additionalProfile", "crlSupport", "rpmSupport", "testProfileSupport")
PPR_NAMES = ("pprUpdateControl", "ppr1", "ppr2", "ppr3")

_CATEGORIES = {1: "basicEuicc", 2: "mediumEuicc", 3: "contactlessEuicc"}


@dataclass
class ExtCardResource:
    """Free resources reported by the card."""

    installed_application: int = 0
    free_non_volatile_memory: int = 0
    free_volatile_memory: int = 0


@dataclass
class CertificationDataObject:
    """Platform certification details."""

    platform_label: str | None = None
    discovery_base_url: str | None = None


@dataclass
class EuiccInfo2:
    """The contents of an EUICCInfo2 structure."""

    profile_version: str | None = None
    svn: str | None = None
    euicc_firmware_ver: str | None = None
    ext_card_resource: ExtCardResource = field(default_factory=ExtCardResource)
    uicc_capability: list[str] | None = None
    ts102241_version: str | None = None
    globalplatform_version: str | None = None
    rsp_capability: list[str] | None = None
    euicc_ci_pkid_list_for_verification: list[str] | None = None
    euicc_ci_pkid_list_for_signing: list[str] | None = None
    euicc_category: str | None = None
    forbidden_profile_policy_rules: list[str] | None = None
    pp_version: str | None = None
    sas_accreditation_number: str | None = None
    certification_data_object: CertificationDataObject = field(default_factory=CertificationDataObject)


def _version(value: bytes) -> str | None:
    if len(value) != 3:
        return None
    return "{}.{}.{}".format(*value)


def _text(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def _uint32(value: bytes) -> int:
    return bytes_to_int(value) & 0xFFFFFFFF


def _ext_card_resource(element: Tlv) -> ExtCardResource:
    resource = ExtCardResource()
    for child in element.children():
        if child.tag == 0x81:
            resource.installed_application = _uint32(child.value)
        elif child.tag == 0x82:
            resource.free_non_volatile_memory = _uint32(child.value)
        elif child.tag == 0x83:
            resource.free_volatile_memory = _uint32(child.value)
    return resource


def _certification_data(element: Tlv) -> CertificationDataObject:
    cert = CertificationDataObject()
    for child in element.children():
        if child.tag == 0x80:
            cert.platform_label = _text(child.value)
        elif child.tag == 0x81:
            cert.discovery_base_url = _text(child.value)
    return cert


def parse_euiccinfo2(data: bytes) -> EuiccInfo2:
    """Parse a GetEuiccInfo2 response; raise ValueError if it is malformed."""
    try:
        root = find_tag(data, _TAG_EUICC_INFO2)
    except KeyError as exc:
        raise ValueError(f"malformed EUICCInfo2: {exc}") from exc

    info = EuiccInfo2()
    for child in root.children():
        tag, value = child.tag, child.value
        if tag == 0x81:
            info.profile_version = _version(value)
        elif tag == 0x82:
            info.svn = _version(value)
        elif tag == 0x83:
            info.euicc_firmware_ver = _version(value)
        elif tag == 0x84:
            info.ext_card_resource = _ext_card_resource(child)
        elif tag == 0x85:
            info.uicc_capability = bits_to_names(value, UICC_CAPABILITY_NAMES)
        elif tag == 0x86:
            info.ts102241_version = _version(value)
        elif tag == 0x87:
            info.globalplatform_version = _version(value)
        elif tag == 0x88:
            info.rsp_capability = bits_to_names(value, RSP_CAPABILITY_NAMES)
        elif tag == 0xA9:
            info.euicc_ci_pkid_list_for_verification = [bin2hex(k.value) for k in child.children()]
        elif tag == 0xAA:
            info.euicc_ci_pkid_list_for_signing = [bin2hex(k.value) for k in child.children()]
        elif tag == 0xAB:
            info.euicc_category = _CATEGORIES.get(bytes_to_int(value), "other")
        elif tag == 0x99:
            info.forbidden_profile_policy_rules = bits_to_names(value, PPR_NAMES)
        elif tag == 0x04:
            info.pp_version = _version(value)
        elif tag == 0x0C:
            info.sas_accreditation_number = _text(value)
        elif tag == 0xAC:
            info.certification_data_object = _certification_data(child)
    return info


def get_euiccinfo2(ctx) -> EuiccInfo2:
    """Read EUICCInfo2 from the card."""
    response = ctx.command(encode_tlv(_TAG_EUICC_INFO2))
    try:
        return parse_euiccinfo2(response)
    except ValueError as exc:
        raise EuiccError(str(exc)) from exc