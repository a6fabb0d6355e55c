import pytest

from rsplpa.context import (
    AuthenticateServerParam,
    EuiccContext,
    HttpSessionState,
)
from rsplpa.interface import ApduError, EuiccError


class FakeCard:
    def __init__(self, replies=None, channel=1, open_error=None):
        self.replies = list(replies or [])
        self.channel = channel
        self.open_error = open_error
        self.sent = []
        self.events = []

    def connect(self):
        self.events.append("connect")

    def disconnect(self):
        self.events.append("disconnect")

    def logic_channel_open(self, aid):
        self.events.append(("open", aid))
        if self.open_error is not None:
            raise self.open_error
        return self.channel

    def logic_channel_close(self, channel):
        self.events.append(("close", channel))

    def transmit(self, data):
        self.sent.append(data)
        if self.replies:
            return self.replies.pop(0)
        return b"\x90\x00"


def opened(card):
    ctx = EuiccContext(card)
    ctx.init()
    return ctx


def test_init_opens_isd_r():
    card = FakeCard(channel=2)
    ctx = opened(card)
    assert card.events == ["connect", ("open", bytes.fromhex("A0000005591010FFFFFFFF8900000100"))]
    assert ctx.logic_channel == 2
    assert ctx.es10x_mss == 120


def test_init_custom_aid():
    card = FakeCard()
    EuiccContext(card, aid=b"\x01\x02").init()
    assert card.events[1] == ("open", b"\x01\x02")


def test_init_open_failure_disconnects():
    card = FakeCard(open_error=OSError("no channel"))
    with pytest.raises(OSError):
        EuiccContext(card).init()
    assert card.events[-1] == "disconnect"


def test_init_negative_channel():
    card = FakeCard(channel=-1)
    with pytest.raises(EuiccError):
        EuiccContext(card).init()
    assert card.events[-1] == "disconnect"


def test_fini_closes_channel():
    card = FakeCard(channel=3)
    ctx = opened(card)
    ctx.fini()
    assert card.events[-2:] == [("close", 3), "disconnect"]
    assert ctx.logic_channel == 0


def test_context_manager():
    card = FakeCard(channel=1)
    with EuiccContext(card) as ctx:
        assert ctx.logic_channel == 1
    assert card.events[-1] == "disconnect"


def test_single_segment_command():
    card = FakeCard(replies=[b"\xbf\x2e\x00\x90\x00"], channel=1)
    ctx = opened(card)
    request = b"\xbf\x2e\x00"
    assert ctx.command(request) == b"\xbf\x2e\x00"
    assert card.sent == [bytes([0x81, 0xE2, 0x91, 0x00, len(request)]) + request]


def test_segmented_command():
    card = FakeCard(channel=0)
    ctx = opened(card)
    request = bytes(i % 256 for i in range(250))
    assert ctx.command(request) == b""
    assert [apdu[2] for apdu in card.sent] == [0x11, 0x11, 0x91]
    assert [apdu[3] for apdu in card.sent] == [0, 1, 2]
    assert [apdu[4] for apdu in card.sent] == [120, 120, 10]
    assert b"".join(apdu[5:] for apdu in card.sent) == request


def test_exact_multiple_of_mss():
    card = FakeCard(channel=0)
    ctx = opened(card)
    ctx.command(bytes(240))
    assert [apdu[2] for apdu in card.sent] == [0x11, 0x91]


def test_get_response_chaining():
    card = FakeCard(replies=[b"ab\x61\x05", b"cd\x90\x00"], channel=2)
    ctx = opened(card)
    assert ctx.command(b"\x01") == b"abcd"
    assert card.sent[1] == bytes([0x82, 0xC0, 0x00, 0x00, 0x05])


def test_command_iter_yields_chunks():
    card = FakeCard(replies=[b"ab\x61\x02", b"cd\x91\x10"], channel=0)
    ctx = opened(card)
    assert list(ctx.command_iter(b"\x01")) == [b"ab", b"cd"]


def test_error_status_raises():
    card = FakeCard(replies=[b"\x6a\x88"], channel=0)
    ctx = opened(card)
    with pytest.raises(ApduError) as info:
        ctx.command(b"\x01")
    assert (info.value.sw1, info.value.sw2) == (0x6A, 0x88)


def test_empty_request_sends_nothing():
    card = FakeCard(channel=0)
    ctx = opened(card)
    assert ctx.command(b"") == b""
    assert card.sent == []


def test_http_cleanup_resets_session():
    ctx = EuiccContext(FakeCard(), server_address="smdp.example.com")
    ctx.session.transaction_id_http = "0011"
    ctx.session.b64_euicc_challenge = "AAAA"
    ctx.session.authenticate_server_param = AuthenticateServerParam("a", "b", "c", "d")
    ctx.http_cleanup()
    assert ctx.session == HttpSessionState()
    assert ctx.server_address == "smdp.example.com"