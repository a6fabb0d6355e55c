"""ES10b notification commands: listing, retrieving and removing notifications."""

from __future__ import annotations

import base64
from dataclasses import dataclass
from enum import IntEnum

from .encoding import (
    Tlv,
    bin2gsmbcd,
    bytes_to_int,
    encode_tlv,
    find_alias_tags,
    find_tag,
    int_to_bytes,
)
from .interface import EuiccError

MAX_REQUEST_SIZE = 255

_TAG_LIST_NOTIFICATION = 0xBF28
_TAG_RETRIEVE_NOTIFICATIONS = 0xBF2B
_TAG_NOTIFICATION_SENT = 0xBF30
_TAG_NOTIFICATION_METADATA = 0xBF2F
_TAG_PROFILE_INSTALLATION_RESULT = 0xBF37
_TAG_PROFILE_INSTALLATION_RESULT_DATA = 0xBF27
_TAG_OTHER_SIGNED_NOTIFICATION = 0x30


class ProfileManagementOperation(IntEnum):
    """The operation a notification reports."""

    INSTALL = 0x80
    ENABLE = 0x40
    DISABLE = 0x20
    DELETE = 0x10
    UNDEFINED = 0xFF

    @classmethod
    def _missing_(cls, value):
        return cls.UNDEFINED


@dataclass
class NotificationMetadata:
    """One entry of the eUICC's notification list."""

    seq_number: int = 0
    profile_management_operation: ProfileManagementOperation | None = None
    notification_address: str | None = None
    iccid: str | None = None


@dataclass
class PendingNotification:
    """A signed notification ready to be sent to its server."""

    notification_address: str
    b64_pending_notification: str


def _text(value: bytes) -> str:
    return value.decode("utf-8", errors="replace")


def _command(ctx, request: bytes) -> bytes:
    if len(request) > MAX_REQUEST_SIZE:
        raise EuiccError("request does not fit in the command buffer")
    return ctx.command(request)


def _parse_metadata(element: Tlv) -> NotificationMetadata:
    metadata = NotificationMetadata()
    for child in element.children():
        tag, value = child.tag, child.value
        if tag == 0x80:
            metadata.seq_number = bytes_to_int(value)
        elif tag == 0x81:
            if len(value) >= 2:
                metadata.profile_management_operation = ProfileManagementOperation(value[1])
        elif tag == 0x0C:
            metadata.notification_address = _text(value)
        elif tag == 0x5A:
            metadata.iccid = bin2gsmbcd(value)
    return metadata


def parse_notification_metadata_list(data: bytes) -> list[NotificationMetadata]:
    """Parse a ListNotificationResponse; raise ValueError if it is malformed."""
    try:
        listing = find_tag(data, _TAG_LIST_NOTIFICATION).find(0xA0)
    except KeyError as exc:
        raise ValueError(f"malformed notification list: {exc}") from exc
    return [
        _parse_metadata(element)
        for element in listing.children()
        if element.tag == _TAG_NOTIFICATION_METADATA
    ]


def list_notification(ctx) -> list[NotificationMetadata]:
    """Read the metadata of every notification held by the eUICC."""
    response = _command(ctx, encode_tlv(_TAG_LIST_NOTIFICATION))
    try:
        return parse_notification_metadata_list(response)
    except ValueError as exc:
        raise EuiccError(str(exc)) from exc


def parse_pending_notification(data: bytes) -> PendingNotification:
    """Parse a RetrieveNotificationsListResponse holding one notification."""
    try:
        container = find_tag(data, _TAG_RETRIEVE_NOTIFICATIONS).find(0xA0)
        pending = find_alias_tags(
            container.value,
            (_TAG_PROFILE_INSTALLATION_RESULT, _TAG_OTHER_SIGNED_NOTIFICATION),
        )
        if pending.tag == _TAG_PROFILE_INSTALLATION_RESULT:
            metadata = pending.find(_TAG_PROFILE_INSTALLATION_RESULT_DATA).find(_TAG_NOTIFICATION_METADATA)
        else:
            metadata = pending.find(_TAG_NOTIFICATION_METADATA)
        address = metadata.find(0x0C).value
    except KeyError as exc:
        raise ValueError(f"malformed pending notification: {exc}") from exc
    return PendingNotification(
        notification_address=_text(address),
        b64_pending_notification=base64.b64encode(pending.raw).decode("ascii"),
    )


def retrieve_notifications_list(ctx, seq_number: int) -> PendingNotification:
    """Fetch the signed notification with the given sequence number."""
    request = encode_tlv(
        _TAG_RETRIEVE_NOTIFICATIONS,
        encode_tlv(0xA0, encode_tlv(0x80, int_to_bytes(seq_number))),
    )
    response = _command(ctx, request)
    try:
        return parse_pending_notification(response)
    except ValueError as exc:
        raise EuiccError(str(exc)) from exc


def remove_notification_from_list(ctx, seq_number: int) -> int:
    """Mark a notification as sent; return the eUICC's result code."""
    request = encode_tlv(_TAG_NOTIFICATION_SENT, encode_tlv(0x80, int_to_bytes(seq_number)))
    response = _command(ctx, request)
    try:
        return bytes_to_int(find_tag(response, _TAG_NOTIFICATION_SENT).find(0x80).value)
    except (KeyError, ValueError) as exc:
        raise EuiccError(f"malformed response: {exc}") from exc