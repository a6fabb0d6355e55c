"""GetRAT: the eUICC's Rules Authorisation Table."""

from __future__ import annotations

from dataclasses import dataclass, field

from .encoding import Tlv, bin2hex, bits_to_names, encode_tlv, find_tag
from .interface import EuiccError

_TAG_GET_RAT = 0xBF43

PPR_ID_NAMES = ("pprUpdateControl", "ppr1", "ppr2", "ppr3")
PPR_FLAG_NAMES = ("consentRequired",)


@dataclass
class OperatorId:
    """An operator allowed by a rule, as hex strings."""

    plmn: str | None = None
    gid1: str | None = None
    gid2: str | None = None


@dataclass
class ProfilePolicyRule:
    """One ProfilePolicyAuthorisationRule."""

    ppr_ids: list[str] | None = None
    allowed_operators: list[OperatorId] = field(default_factory=list)
    ppr_flags: list[str] | None = None


def _operator(element: Tlv) -> OperatorId:
    operator = OperatorId()
    for child in element.children():
        if not child.value:
            continue
        if child.tag == 0x80:
            operator.plmn = bin2hex(child.value)
        elif child.tag == 0x81:
            operator.gid1 = bin2hex(child.value)
        elif child.tag == 0x82:
            operator.gid2 = bin2hex(child.value)
    return operator


def _rule(element: Tlv) -> ProfilePolicyRule:
    rule = ProfilePolicyRule()
    for child in element.children():
        if child.tag == 0x80:
            rule.ppr_ids = bits_to_names(child.value, PPR_ID_NAMES)
        elif child.tag == 0xA1:
            rule.allowed_operators = [_operator(op) for op in child.children()]
        elif child.tag == 0x82:
            rule.ppr_flags = bits_to_names(child.value, PPR_FLAG_NAMES)
    return rule


def parse_rat(data: bytes) -> list[ProfilePolicyRule]:
    """Parse a GetRatResponse; raise ValueError if it is malformed."""
    try:
        table = find_tag(data, _TAG_GET_RAT).find(0xA0)
    except KeyError as exc:
        raise ValueError(f"malformed RAT: {exc}") from exc
    return [_rule(element) for element in table.children()]


def get_rat(ctx) -> list[ProfilePolicyRule]:
    """Read the Rules Authorisation Table from the card."""
    response = ctx.command(encode_tlv(_TAG_GET_RAT))
    if not response:
        raise EuiccError("empty GetRat response")
    try:
        return parse_rat(response)
    except ValueError as exc:
        raise EuiccError(str(exc)) from exc