import pytest

from socks5_auth_proxy.core.config import Credentials
from socks5_auth_proxy.core.exceptions import DNSResolutionError, UpstreamConnectFailed
from socks5_auth_proxy.core.lib.session import Session, SessionState
from tests.helpers import GREETING, PASSWORD, USERNAME, auth_frame, connect_domain_frame, connect_ipv4_frame

CONNECT = connect_ipv4_frame("127.0.0.1", 80)
HANDSHAKE = GREETING + auth_frame() + CONNECT
SUCCESS_REPLY = b"\x05\x00\x00\x01\x0a\x01\x02\x03\x9c\x40"
FAILURE_REPLY = b"\x05\x01\x00\x01\x00\x00\x00\x00\x00\x00"


class FakeChannel:
    def __init__(self, sockname=("10.1.2.3", 40000)):
        self.sent = []
        self.closed = False
        self.sockname = sockname

    def sendall(self, data):
        if self.closed:
            raise OSError("closed")
        self.sent.append(bytes(data))

    def close(self):
        self.closed = True

    def getsockname(self):
        return self.sockname


class FakeConnector:
    def __init__(self, error=None):
        self.error = error
        self.calls = []
        self.target = FakeChannel()

    def __call__(self, host, port):
        self.calls.append((host, port))
        if self.error is not None:
            raise self.error
        return self.target


@pytest.fixture
def client():
    return FakeChannel()


@pytest.fixture
def connector():
    return FakeConnector()


@pytest.fixture
def session(client, connector):
    return Session(client, Credentials(USERNAME, PASSWORD), connector)


def test_full_handshake(session, client, connector):
    session.feed(GREETING)
    assert session.state is SessionState.AUTHENTICATING
    session.feed(auth_frame())
    assert session.state is SessionState.AWAITING_REQUEST
    session.feed(CONNECT)

    assert client.sent == [b"\x05\x02", b"\x01\x00", SUCCESS_REPLY]
    assert connector.calls == [("127.0.0.1", 80)]
    assert session.state is SessionState.RELAYING
    assert session.target is connector.target
    assert session.target_address == "127.0.0.1:80"
    assert not client.closed


def test_inbound_holds_only_unconsumed_bytes(session):
    session.feed(GREETING + auth_frame()[:3])
    assert session.state is SessionState.AUTHENTICATING
    assert session.inbound == auth_frame()[:3]


def test_byte_by_byte_delivery_gives_same_replies(session, client, connector):
    for byte in HANDSHAKE:
        session.feed(bytes([byte]))

    assert client.sent == [b"\x05\x02", b"\x01\x00", SUCCESS_REPLY]
    assert session.state is SessionState.RELAYING


@pytest.mark.parametrize("split", [1, 2, 3, 5, 10, 20])
def test_arbitrary_split_gives_same_replies(session, client, split):
    session.feed(HANDSHAKE[:split])
    session.feed(HANDSHAKE[split:])
    assert client.sent == [b"\x05\x02", b"\x01\x00", SUCCESS_REPLY]


def test_pipelined_payload_is_kept_for_the_target(session):
    session.feed(HANDSHAKE + b"GET / HTTP/1.0\r\n\r\n")
    assert session.state is SessionState.RELAYING
    assert session.pending_payload == b"GET / HTTP/1.0\r\n\r\n"
    assert session.inbound == b""


def test_incomplete_greeting_sends_nothing(session, client):
    session.feed(b"\x05\x02\x00")
    assert client.sent == []
    assert session.state is SessionState.NEGOTIATING_METHOD


def test_no_acceptable_method(session, client):
    session.feed(b"\x05\x01\x00")
    assert client.sent == [b"\x05\xff"]
    assert client.closed
    assert session.state is SessionState.CLOSED


def test_wrong_version_closes_without_reply(session, client):
    session.feed(b"\x04\x01\x00\x50")
    assert client.sent == []
    assert client.closed
    assert session.state is SessionState.CLOSED


def test_wrong_password(session, client, connector):
    session.feed(GREETING + auth_frame(USERNAME, "wrong") + CONNECT)
    assert client.sent == [b"\x05\x02", b"\x01\x01"]
    assert client.closed
    assert connector.calls == []


def test_username_is_case_sensitive(session, client):
    session.feed(GREETING + auth_frame(USERNAME.upper(), PASSWORD))
    assert client.sent[-1] == b"\x01\x01"
    assert session.state is SessionState.CLOSED


def test_wrong_auth_version_closes_without_reply(session, client):
    session.feed(GREETING + b"\x05" + auth_frame()[1:])
    assert client.sent == [b"\x05\x02"]
    assert client.closed


@pytest.mark.parametrize(
    "request_frame",
    [
        b"\x05\x02\x00\x01\x7f\x00\x00\x01\x00\x50",  # BIND
        b"\x05\x03\x00\x01\x7f\x00\x00\x01\x00\x50",  # UDP ASSOCIATE
        b"\x05\x01\x00\x02",  # unknown ATYP
        b"\x04\x01\x00\x01",  # wrong version
    ],
)
def test_rejected_request_gets_failure_reply(session, client, connector, request_frame):
    session.feed(GREETING + auth_frame() + request_frame)
    assert client.sent[-1] == FAILURE_REPLY
    assert client.closed
    assert connector.calls == []


def test_unresolvable_domain(client):
    connector = FakeConnector(DNSResolutionError("no such host"))
    session = Session(client, Credentials(USERNAME, PASSWORD), connector)

    session.feed(GREETING + auth_frame() + connect_domain_frame("nonexistent.invalid", 8080))

    assert connector.calls == [("nonexistent.invalid", 8080)]
    assert client.sent[-1] == FAILURE_REPLY
    assert client.closed
    assert session.target is None
    assert session.state is SessionState.CLOSED


def test_refused_connect(client):
    connector = FakeConnector(UpstreamConnectFailed("refused"))
    session = Session(client, Credentials(USERNAME, PASSWORD), connector)
    session.feed(HANDSHAKE)
    assert client.sent[-1] == FAILURE_REPLY
    assert session.state is SessionState.CLOSED


def test_unexpected_error_closes_session(client):
    connector = FakeConnector(RuntimeError("boom"))
    session = Session(client, Credentials(USERNAME, PASSWORD), connector)
    session.feed(HANDSHAKE)
    assert client.closed
    assert session.state is SessionState.CLOSED


def test_client_write_error_closes_session(session, client):
    client.closed = True
    session.feed(GREETING)
    assert session.state is SessionState.CLOSED


def test_input_after_close_is_ignored(session, client):
    session.feed(b"\x05\x01\x00")
    sent = list(client.sent)
    session.feed(GREETING)
    assert client.sent == sent


def test_close_is_idempotent_and_closes_target(session, client, connector):
    session.feed(HANDSHAKE)
    session.close()
    session.close()
    assert client.closed
    assert connector.target.closed
    assert session.state is SessionState.CLOSED


def test_connect_result_after_close_closes_target(session, client):
    session.close()
    target = FakeChannel()
    session.connect_succeeded(target)
    assert target.closed
    assert client.sent == []
    assert session.state is SessionState.CLOSED


def test_states_are_ordered():
    assert list(SessionState) == sorted(SessionState)
    assert SessionState.NEGOTIATING_METHOD < SessionState.RELAYING < SessionState.CLOSED
