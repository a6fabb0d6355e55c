"""ES9+ and ES11 exchanges with an SM-DP+ server over JSON/HTTPS."""

from __future__ import annotations

import dataclasses
import json
import os
import sys
from collections.abc import Mapping, Sequence
from typing import Any

from .context import AuthenticateServerParam, HttpStatus, PrepareDownloadParam
from .es9p_errors import error_message
from .interface import EuiccError

LPA_HEADERS = (
    "User-Agent: gsma-rsp-lpad",
    "X-Admin-Protocol: gsma/rsp/v2.2.0",
    "Content-Type: application/json",
)

_URL_PREFIX = "https://"
_CODE_SIZE = 8
_TEXT_SIZE = 128

_API_INITIATE_AUTHENTICATION = "/gsma/rsp2/es9plus/initiateAuthentication"
_API_GET_BOUND_PROFILE_PACKAGE = "/gsma/rsp2/es9plus/getBoundProfilePackage"
_API_AUTHENTICATE_CLIENT = "/gsma/rsp2/es9plus/authenticateClient"
_API_CANCEL_SESSION = "/gsma/rsp2/es9plus/cancelSession"
_API_HANDLE_NOTIFICATION = "/gsma/rsp2/es9plus/handleNotification"


class Es9pError(EuiccError):
    """A server exchange failed; ``status`` holds what the server reported."""

    def __init__(self, message: str, status: HttpStatus):
        super().__init__(message)
        self.status = dataclasses.replace(status)


def trim_base64(text: str) -> str:
    """Remove line breaks, spaces and tabs from base64 text."""
    return "".join(ch for ch in text if ch not in "\n\r \t")


def _set_status(
    status: HttpStatus,
    reason_code: str,
    subject_code: str,
    subject_identifier: str,
    message: str,
) -> None:
    status.reason_code = reason_code[:_CODE_SIZE]
    status.subject_code = subject_code[:_CODE_SIZE]
    status.subject_identifier = subject_identifier[:_TEXT_SIZE]
    status.message = message[:_TEXT_SIZE]


def _fail(status: HttpStatus, subject_identifier: str, message: str) -> Es9pError:
    _set_status(status, "0.0.0", "0.0.0", subject_identifier, message)
    return Es9pError(status.message, status)


def _debug_enabled() -> bool:
    return bool(os.environ.get("LIBEUICC_DEBUG_HTTP"))


def _post(ctx, api: str, body: bytes) -> tuple[int, bytes]:
    if ctx.http is None:
        raise EuiccError("no HTTP interface")
    if ctx.server_address is None:
        raise EuiccError("no server address")
    url = _URL_PREFIX + ctx.server_address + api
    if _debug_enabled():
        print(f"[DEBUG] [HTTP] [TX] url: {url}, data: {body.decode('utf-8', 'replace')}", file=sys.stderr)
    code, data = ctx.http.transmit(url, body, LPA_HEADERS)
    data = bytes(data)
    if _debug_enabled():
        print(f"[DEBUG] [HTTP] [RX] rcode: {code}, data: {data.decode('utf-8', 'replace')}", file=sys.stderr)
    return code, data


def _record_status_code_data(status: HttpStatus, execution_status: Any) -> None:
    if not isinstance(execution_status, dict):
        return
    data = execution_status.get("statusCodeData")
    if not isinstance(data, dict):
        return
    if isinstance(data.get("reasonCode"), str):
        status.reason_code = data["reasonCode"][:_CODE_SIZE]
    if isinstance(data.get("subjectCode"), str):
        status.subject_code = data["subjectCode"][:_CODE_SIZE]
    if isinstance(data.get("subjectIdentifier"), str):
        status.subject_identifier = data["subjectIdentifier"][:_TEXT_SIZE]
    if isinstance(data.get("message"), str):
        status.message = data["message"][:_TEXT_SIZE]
    else:
        known = error_message(status.subject_code, status.reason_code)
        if known is None:
            known = f"subject-code: {status.subject_code}, reason-code: {status.reason_code}"
        status.message = known[:_TEXT_SIZE]


def transact(
    ctx,
    api: str,
    request: Mapping[str, str | None],
    output_keys: Sequence[str] | None = None,
) -> dict[str, Any] | None:
    """Post ``request`` as JSON to ``api`` on the session's server.

    With ``output_keys`` of None the response body is not inspected and
    None is returned; otherwise the named members of the response are
    returned. Every failure raises Es9pError and is recorded in
    ``ctx.http_status``.
    """
    status = ctx.http_status
    _set_status(status, "0.0.0", "0.0.0", "unknown", "unknown")

    body = json.dumps(dict(request), separators=(",", ":")).encode("utf-8")
    try:
        code, raw = _post(ctx, api, body)
    except Exception as exc:
        raise _fail(status, "unknown", "HTTP transport failed") from exc

    if code // 100 != 2:
        raise _fail(status, str(code), "HTTP status code error")

    if output_keys is None:
        return None

    try:
        root = json.loads(raw)
    except ValueError as exc:
        raise _fail(status, "root", "Not JSON") from exc
    if not isinstance(root, dict):
        raise _fail(status, "root", "Not Object")
    if "header" not in root:
        raise _fail(status, "header", "Critical object missing")
    header = root["header"]
    if not isinstance(header, dict) or "functionExecutionStatus" not in header:
        raise _fail(status, "functionExecutionStatus", "Critical object missing")

    _record_status_code_data(status, header["functionExecutionStatus"])

    result: dict[str, Any] = {}
    for key in output_keys:
        if key not in root:
            raise Es9pError(f"response lacks {key}: {status.message}", status)
        result[key] = root[key]
    return result


def _strings(ctx, values: Mapping[str, Any]) -> dict[str, str]:
    for key, value in values.items():
        if not isinstance(value, str):
            raise Es9pError(f"response member {key} is not a string", ctx.http_status)
    return dict(values)


def initiate_authentication(ctx) -> AuthenticateServerParam:
    """Run InitiateAuthentication with the session's challenge and EUICCInfo1."""
    session = ctx.session
    if session.authenticate_server_param is not None:
        raise EuiccError("AuthenticateServer parameters already present")
    if session.b64_euicc_challenge is None:
        raise EuiccError("no eUICC challenge in the session")
    if session.b64_euicc_info_1 is None:
        raise EuiccError("no EUICCInfo1 in the session")

    values = transact(
        ctx,
        _API_INITIATE_AUTHENTICATION,
        {
            "smdpAddress": ctx.server_address,
            "euiccChallenge": session.b64_euicc_challenge,
            "euiccInfo1": session.b64_euicc_info_1,
        },
        ("transactionId", "serverSigned1", "serverSignature1", "euiccCiPKIdToBeUsed", "serverCertificate"),
    )
    values = _strings(ctx, values)

    param = AuthenticateServerParam(
        b64_server_signed1=trim_base64(values["serverSigned1"]),
        b64_server_signature1=trim_base64(values["serverSignature1"]),
        b64_euicc_ci_pkid_to_be_used=trim_base64(values["euiccCiPKIdToBeUsed"]),
        b64_server_certificate=trim_base64(values["serverCertificate"]),
    )
    session.transaction_id_http = values["transactionId"]
    session.authenticate_server_param = param
    session.b64_euicc_challenge = None
    session.b64_euicc_info_1 = None
    return param


def get_bound_profile_package(ctx) -> str:
    """Fetch the bound profile package for the session's PrepareDownload response."""
    session = ctx.session
    if session.b64_bound_profile_package is not None:
        raise EuiccError("bound profile package already present")
    if session.b64_prepare_download_response is None:
        raise EuiccError("no PrepareDownload response in the session")

    values = transact(
        ctx,
        _API_GET_BOUND_PROFILE_PACKAGE,
        {
            "transactionId": session.transaction_id_http,
            "prepareDownloadResponse": session.b64_prepare_download_response,
        },
        ("boundProfilePackage",),
    )
    values = _strings(ctx, values)

    session.b64_bound_profile_package = trim_base64(values["boundProfilePackage"])
    session.b64_prepare_download_response = None
    return session.b64_bound_profile_package


def authenticate_client(ctx) -> PrepareDownloadParam:
    """Send the AuthenticateServer response and keep the server's download data."""
    session = ctx.session
    if session.prepare_download_param is not None:
        raise EuiccError("PrepareDownload parameters already present")
    if session.b64_authenticate_server_response is None:
        raise EuiccError("no AuthenticateServer response in the session")

    values = transact(
        ctx,
        _API_AUTHENTICATE_CLIENT,
        {
            "transactionId": session.transaction_id_http,
            "authenticateServerResponse": session.b64_authenticate_server_response,
        },
        ("profileMetadata", "smdpSigned2", "smdpSignature2", "smdpCertificate"),
    )
    values = _strings(ctx, values)

    param = PrepareDownloadParam(
        b64_profile_metadata=trim_base64(values["profileMetadata"]),
        b64_smdp_signed2=trim_base64(values["smdpSigned2"]),
        b64_smdp_signature2=trim_base64(values["smdpSignature2"]),
        b64_smdp_certificate=trim_base64(values["smdpCertificate"]),
    )
    session.prepare_download_param = param
    session.b64_authenticate_server_response = None
    return param


def cancel_session(ctx) -> None:
    """Send the session's CancelSession response to the server."""
    session = ctx.session
    if session.b64_cancel_session_response is None:
        raise EuiccError("no CancelSession response in the session")

    transact(
        ctx,
        _API_CANCEL_SESSION,
        {
            "transactionId": session.transaction_id_http,
            "cancelSessionResponse": session.b64_cancel_session_response,
        },
    )
    session.b64_cancel_session_response = None


def es11_authenticate_client(ctx) -> list[str]:
    """Authenticate to an SM-DS and return the server addresses of its events."""
    session = ctx.session
    if session.b64_authenticate_server_response is None:
        raise EuiccError("no AuthenticateServer response in the session")

    values = transact(
        ctx,
        _API_AUTHENTICATE_CLIENT,
        {
            "transactionId": session.transaction_id_http,
            "authenticateServerResponse": session.b64_authenticate_server_response,
        },
        ("eventEntries",),
    )
    entries = values["eventEntries"]
    if not isinstance(entries, list):
        raise Es9pError("eventEntries is not an array", ctx.http_status)

    addresses = []
    for entry in entries:
        address = entry.get("rspServerAddress") if isinstance(entry, dict) else None
        if not isinstance(address, str):
            raise Es9pError("event entry lacks rspServerAddress", ctx.http_status)
        addresses.append(address)

    session.b64_authenticate_server_response = None
    return addresses


def handle_notification(ctx, b64_pending_notification: str) -> None:
    """Deliver a pending notification to the server."""
    transact(ctx, _API_HANDLE_NOTIFICATION, {"pendingNotification": b64_pending_notification})