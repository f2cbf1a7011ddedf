import asyncio
from types import SimpleNamespace

import anthropic
import pytest

import ai_classify
from ai_classify import classify_complaint, parse_reply
from errors import UpstreamError, ValidationError
from notify import build_messages, send_push
from realtime import DistrictChannels

DEPARTMENTS = ["Engineering / Roads Department", "Water Supply Department"]


# ── Push ──────────────────────────────────────────────────────────────────────

def test_build_messages():
    msgs = build_messages(["t1", "t2"], "Pothole", "12", 10)
    assert [m["to"] for m in msgs] == ["t1", "t2"]
    assert "Pothole" in msgs[0]["body"] and "10 points" in msgs[0]["body"]


def test_send_push_without_messages_is_a_noop():
    assert asyncio.run(send_push([])) is False


# ── Websocket channels ────────────────────────────────────────────────────────

class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []
        self.accepted = False

    async def accept(self):
        self.accepted = True

    async def send_json(self, payload):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


def test_broadcast_reaches_only_the_district_and_drops_dead_sockets():
    channels = DistrictChannels()
    ranchi, dead, dhanbad = FakeSocket(), FakeSocket(fail=True), FakeSocket()

    async def scenario():
        await channels.connect(1, ranchi)
        await channels.connect(1, dead)
        await channels.connect(2, dhanbad)
        await channels.broadcast(1, {"type": "report_updated"})

    asyncio.run(scenario())

    assert ranchi.accepted
    assert ranchi.sent == [{"type": "report_updated"}]
    assert dhanbad.sent == []
    assert channels.channels[1] == {ranchi}


class JoiningSocket(FakeSocket):
    """Lets another admin join the channel while its own send is in flight."""

    def __init__(self, channels, newcomer):
        super().__init__()
        self.channels = channels
        self.newcomer = newcomer

    async def send_json(self, payload):
        await asyncio.sleep(0)
        await self.channels.connect(1, self.newcomer)
        self.sent.append(payload)


def test_broadcast_survives_a_socket_joining_mid_send():
    channels = DistrictChannels()
    newcomer = FakeSocket()
    joining, other = JoiningSocket(channels, newcomer), FakeSocket()

    async def scenario():
        await channels.connect(1, joining)
        await channels.connect(1, other)
        await channels.broadcast(1, {"type": "report_updated"})

    asyncio.run(scenario())

    assert joining.sent == [{"type": "report_updated"}]
    assert other.sent == [{"type": "report_updated"}]
    assert channels.channels[1] == {joining, other, newcomer}


# ── AI categorisation ─────────────────────────────────────────────────────────

def test_parse_reply():
    assert parse_reply('```json\n{"keyword": "Pothole", "department": "Engineering / Roads Department"}\n```',
                       DEPARTMENTS) == ("Pothole", "Engineering / Roads Department")
    assert parse_reply('{"keyword": "Pothole", "department": "Police"}', DEPARTMENTS) is None
    assert parse_reply('{"keyword": "", "department": "Water Supply Department"}', DEPARTMENTS) is None
    assert parse_reply("no json here", DEPARTMENTS) is None
    assert parse_reply("{not json}", DEPARTMENTS) is None


def _fake_client(text=None, error=None):
    def create(**kwargs):
        if error:
            raise error
        return SimpleNamespace(content=[SimpleNamespace(text=text)])
    return SimpleNamespace(messages=SimpleNamespace(create=create))


def test_classify_complaint(monkeypatch):
    reply = '{"keyword": "WaterLeak", "department": "Water Supply Department"}'
    monkeypatch.setattr(ai_classify, "_get_client", lambda: _fake_client(reply))
    assert classify_complaint("Water pipe burst near the temple", DEPARTMENTS) == ("WaterLeak", "Water Supply Department")


def test_classify_complaint_failures(monkeypatch):
    with pytest.raises(ValidationError):
        classify_complaint("short", DEPARTMENTS)

    monkeypatch.setattr(ai_classify, "_get_client", lambda: _fake_client(error=anthropic.AnthropicError("down")))
    with pytest.raises(UpstreamError):
        classify_complaint("Water pipe burst near the temple", DEPARTMENTS)

    monkeypatch.setattr(ai_classify, "_get_client", lambda: _fake_client("I am not sure"))
    with pytest.raises(UpstreamError):
        classify_complaint("Water pipe burst near the temple", DEPARTMENTS)
