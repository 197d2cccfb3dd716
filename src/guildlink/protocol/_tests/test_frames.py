from __future__ import annotations

import json

import pytest

from guildlink.protocol import (
    OPCODE_NAMES,
    FrameDecodeError,
    GatewayFrame,
    IdentifyProperties,
    Intents,
    Opcode,
    Presence,
    build_heartbeat,
    build_identify,
    build_resume,
    build_status_update,
    build_voice_state_update,
    encode_frame,
    opcode_name,
    parse_frame,
)


def test_opcode_table_matches_wire_contract() -> None:
    expected = {
        0: "Dispatch",
        1: "Heartbeat",
        2: "Identify",
        3: "Status Update",
        4: "Voice State Update",
        5: "Voice Server Ping",
        6: "Resume",
        7: "Reconnect",
        8: "Request Guild Members",
        9: "Invalid Session",
        10: "Hello",
        11: "Heartbeat ACK",
    }
    assert {int(op): name for op, name in OPCODE_NAMES.items()} == expected
    assert [int(op) for op in Opcode] == list(range(12))
    assert opcode_name(42) == "Unknown"


def test_parse_dispatch_frame() -> None:
    raw = '{"op":0,"t":"MESSAGE_CREATE","s":7,"d":{"content":"!ping"}}'
    frame = parse_frame(raw)

    assert frame.op == Opcode.DISPATCH
    assert frame.s == 7
    assert frame.t == "MESSAGE_CREATE"
    assert frame.d == {"content": "!ping"}


def test_parse_accepts_bytes() -> None:
    frame = parse_frame(b'{"op":11}')
    assert frame.op == Opcode.HEARTBEAT_ACK
    assert frame.d is None and frame.s is None and frame.t is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        "[1, 2, 3]",
        '{"d": {}}',
        '{"op": "0"}',
        '{"op": true}',
        '{"op": 0, "s": "seven"}',
        '{"op": 0, "t": 5}',
        b"\xff\xfe",
        '{"op": 0, "s": ' + "9" * 5000 + "}",
        "[" * 200000 + "]" * 200000,
    ],
    ids=lambda raw: repr(raw)[:40],
)
def test_parse_rejects_malformed_frames(raw) -> None:
    with pytest.raises(FrameDecodeError):
        parse_frame(raw)


def test_outbound_frames_carry_null_sequence_and_name() -> None:
    encoded = json.loads(encode_frame(build_heartbeat(12)))
    assert encoded == {"op": 1, "d": 12, "s": None, "t": None}


def test_heartbeat_without_sequence_sends_null() -> None:
    assert build_heartbeat(None).to_dict()["d"] is None


def test_identify_payload_shape() -> None:
    frame = build_identify(
        token="secret",
        intents=Intents.GUILDS | Intents.GUILD_MESSAGES,
        properties=IdentifyProperties(os="linux", browser="guildlink", device="guildlink"),
    )
    payload = frame.to_dict()

    assert payload["op"] == 2
    d = payload["d"]
    assert d["token"] == "secret"
    assert d["intents"] == (1 << 0) | (1 << 9)
    assert d["properties"] == {"os": "linux", "browser": "guildlink", "device": "guildlink"}
    assert d["compress"] is False
    assert d["large_threshold"] == 100
    assert d["presence"] == {"since": None, "status": "online", "activity": None, "afk": False}


def test_resume_payload_shape() -> None:
    frame = build_resume(token="secret", session_id="abc", seq=41)
    assert frame.to_dict() == {
        "op": 6,
        "d": {"token": "secret", "session_id": "abc", "seq": 41},
        "s": None,
        "t": None,
    }


def test_status_update_payload_shape() -> None:
    frame = build_status_update("idle", {"name": "chess", "type": 0}, since=1000, afk=True)
    assert frame.op == Opcode.STATUS_UPDATE
    assert frame.d == {
        "since": 1000,
        "activity": {"name": "chess", "type": 0},
        "status": "idle",
        "afk": True,
    }


def test_voice_state_update_allows_null_channel() -> None:
    frame = build_voice_state_update(guild_id="g1", channel_id=None)
    assert frame.op == Opcode.VOICE_STATE_UPDATE
    assert frame.d == {"guild_id": "g1", "channel_id": None, "self_mute": False, "self_deaf": False}


def test_presence_defaults() -> None:
    assert Presence().to_dict() == {"since": None, "activity": None, "status": "online", "afk": False}


def test_frame_from_dict_round_trips_dispatch() -> None:
    frame = GatewayFrame(op=0, d={"id": "1"}, s=3, t="GUILD_CREATE")
    assert parse_frame(encode_frame(frame)) == frame
