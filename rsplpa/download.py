"""ES10b profile download: PrepareDownload and LoadBoundProfilePackage."""

from __future__ import annotations

import base64
import hashlib
from collections.abc import Iterator
from enum import IntEnum

from .context import PrepareDownloadParam
from .encoding import Tlv, bytes_to_int, encode_tlv, find_tag, first_tlv, iter_tlv
from .interface import EuiccError

_TAG_PREPARE_DOWNLOAD = 0xBF21
_TAG_BOUND_PROFILE_PACKAGE = 0xBF36
_TAG_INITIALISE_SECURE_CHANNEL = 0xBF23
_TAG_PROFILE_INSTALLATION_RESULT = 0xBF37
_TAG_PROFILE_INSTALLATION_RESULT_DATA = 0xBF27


class _CodedEnum(IntEnum):
    @classmethod
    def _missing_(cls, value):
        return cls["UNDEFINED"]


class BppCommandId(_CodedEnum):
    """The bound profile package step that failed."""

    INITIALISE_SECURE_CHANNEL = 0
    CONFIGURE_ISDP = 1
    STORE_METADATA = 2
    STORE_METADATA2 = 3
    REPLACE_SESSION_KEYS = 4
    LOAD_PROFILE_ELEMENTS = 5
    UNDEFINED = 0xFF


class ErrorReason(_CodedEnum):
    """Why the eUICC rejected a bound profile package."""

    INCORRECT_INPUT_VALUES = 1
    INVALID_SIGNATURE = 2
    INVALID_TRANSACTION_ID = 3
    UNSUPPORTED_CRT_VALUES = 4
    UNSUPPORTED_REMOTE_OPERATION_TYPE = 5
    UNSUPPORTED_PROFILE_CLASS = 6
    SCP03T_STRUCTURE_ERROR = 7
    SCP03T_SECURITY_ERROR = 8
    INSTALL_FAILED_DUE_TO_ICCID_ALREADY_EXISTS_ON_EUICC = 9
    INSTALL_FAILED_DUE_TO_INSUFFICIENT_MEMORY_FOR_PROFILE = 10
    INSTALL_FAILED_DUE_TO_INTERRUPTION = 11
    INSTALL_FAILED_DUE_TO_PE_PROCESSING_ERROR = 12
    INSTALL_FAILED_DUE_TO_ICCID_MISMATCH = 13
    TEST_PROFILE_INSTALL_FAILED_DUE_TO_INVALID_NAA_KEY = 14
    PPR_NOT_ALLOWED = 15
    INSTALL_FAILED_DUE_TO_UNKNOWN_ERROR = 127
    UNDEFINED = 0xFF


class BppLoadError(EuiccError):
    """The eUICC reported an error while installing a bound profile package."""

    def __init__(self, bpp_command_id: BppCommandId, error_reason: ErrorReason):
        super().__init__(f"profile installation failed at {bpp_command_id.name}: {error_reason.name}")
        self.bpp_command_id = bpp_command_id
        self.error_reason = error_reason


def _decode_element(b64_value: str, tag: int, name: str) -> Tlv:
    raw = base64.b64decode(b64_value, validate=True)
    try:
        return find_tag(raw, tag)
    except KeyError as exc:
        raise ValueError(f"malformed {name}: {exc}") from exc


def hash_confirmation_code(confirmation_code: str, transaction_id: bytes) -> bytes:
    """Return SHA-256(SHA-256(code) || transaction id)."""
    first = hashlib.sha256(confirmation_code.encode("utf-8")).digest()
    return hashlib.sha256(first + bytes(transaction_id)).digest()


def build_prepare_download_request(param: PrepareDownloadParam, confirmation_code: str | None = None) -> bytes:
    """Build a PrepareDownloadRequest; the code is required when the server asks for it."""
    signed2 = _decode_element(param.b64_smdp_signed2, 0x30, "smdpSigned2")
    signature2 = _decode_element(param.b64_smdp_signature2, 0x5F37, "smdpSignature2")
    certificate = _decode_element(param.b64_smdp_certificate, 0x30, "smdpCertificate")
    try:
        transaction_id = signed2.find(0x80).value
        cc_required = signed2.find(0x01).value
    except KeyError as exc:
        raise ValueError(f"malformed smdpSigned2: {exc}") from exc

    body = signed2.raw + signature2.raw
    if bytes_to_int(cc_required):
        if not confirmation_code:
            raise ValueError("a confirmation code is required")
        body += encode_tlv(0x04, hash_confirmation_code(confirmation_code, transaction_id))
    body += certificate.raw
    return encode_tlv(_TAG_PREPARE_DOWNLOAD, body)


def prepare_download(ctx, confirmation_code: str | None = None) -> str:
    """Run PrepareDownload with the session's server data; store and return the response."""
    session = ctx.session
    if session.b64_prepare_download_response is not None:
        raise EuiccError("PrepareDownload response already present")
    if session.prepare_download_param is None:
        raise EuiccError("no PrepareDownload parameters in the session")

    request = build_prepare_download_request(session.prepare_download_param, confirmation_code)
    response = ctx.command(request)
    session.b64_prepare_download_response = base64.b64encode(response).decode("ascii")
    session.prepare_download_param = None
    return session.b64_prepare_download_response


def _locate(data: bytes, tag: int) -> tuple[int, Tlv]:
    offset = 0
    for element in iter_tlv(data):
        if element.tag == tag:
            return offset, element
        offset += len(element.raw)
    raise ValueError(f"bound profile package lacks tag {tag:#x}")


def _header(element: Tlv) -> bytes:
    return element.raw[: len(element.raw) - len(element.value)]


def split_bound_profile_package(b64_bound_profile_package: str) -> Iterator[bytes]:
    """Yield the bound profile package segments in the order they are sent."""
    raw = base64.b64decode(b64_bound_profile_package, validate=True)
    try:
        package = find_tag(raw, _TAG_BOUND_PROFILE_PACKAGE)
    except KeyError as exc:
        raise ValueError(f"malformed bound profile package: {exc}") from exc
    content = package.value
    header_len = len(_header(package))

    offset, secure_channel = _locate(content, _TAG_INITIALISE_SECURE_CHANNEL)
    yield package.raw[: header_len + offset + len(secure_channel.raw)]

    yield _locate(content, 0xA0)[1].raw

    _, store_metadata = _locate(content, 0xA1)
    yield _header(store_metadata)
    yield from (child.raw for child in store_metadata.children())

    try:
        _, replace_keys = _locate(content, 0xA2)
    except ValueError:
        pass
    else:
        yield replace_keys.raw

    _, elements = _locate(content, 0xA3)
    yield _header(elements)
    yield from (child.raw for child in elements.children())


def parse_installation_result(data: bytes) -> None:
    """Check one LoadBoundProfilePackage response.

    An empty response or a SuccessResult passes; an ErrorResult raises
    BppLoadError and anything malformed raises ValueError.
    """
    if not data:
        return
    try:
        final = (
            find_tag(data, _TAG_PROFILE_INSTALLATION_RESULT)
            .find(_TAG_PROFILE_INSTALLATION_RESULT_DATA)
            .find(0xA2)
        )
    except KeyError as exc:
        raise ValueError(f"malformed installation result: {exc}") from exc
    result = first_tlv(final.value)
    if result.tag == 0xA0:
        return
    if result.tag != 0xA1:
        raise ValueError(f"unexpected final result tag {result.tag:#x}")

    command_id = BppCommandId.UNDEFINED
    reason = ErrorReason.UNDEFINED
    for child in result.children():
        if child.tag == 0x80:
            command_id = BppCommandId(bytes_to_int(child.value))
        elif child.tag == 0x81:
            reason = ErrorReason(bytes_to_int(child.value))
    raise BppLoadError(command_id, reason)


def load_bound_profile_package(ctx) -> None:
    """Send the session's bound profile package to the eUICC, segment by segment."""
    session = ctx.session
    if session.b64_bound_profile_package is None:
        raise EuiccError("no bound profile package in the session")
    try:
        for segment in split_bound_profile_package(session.b64_bound_profile_package):
            parse_installation_result(ctx.command(segment))
    except ValueError as exc:
        raise EuiccError(str(exc)) from exc
    session.b64_bound_profile_package = None