from __future__ import annotations

import base64
import json

import pytest

from facetdb_py import CursorDecodingError, CursorEncodingError, decode_cursor, encode_cursor


def test_cursor_round_trip() -> None:
    last_key = {
        "pk": {"S": "$taskapp#taskid_t1"},
        "sk": {"S": "$task_1"},
        "n": {"N": "1"},
        "b": {"B": b"\x00\x01"},
        "m": {"M": {"z": {"BOOL": True}, "a": {"NULL": True}}},
        "l": {"L": [{"SS": ["x", "y"]}, {"BS": [b"\x02"]}]},
    }
    cursor = encode_cursor(last_key)
    assert decode_cursor(cursor) == last_key


def test_cursor_payload_is_sorted_compact_json() -> None:
    cursor = encode_cursor({"sk": {"S": "b"}, "pk": {"S": "a"}})
    assert base64.b64decode(cursor).decode("utf-8") == '{"pk":{"S":"a"},"sk":{"S":"b"}}'


def test_empty_cursor_values() -> None:
    assert encode_cursor(None) == ""
    assert encode_cursor({}) == ""
    assert decode_cursor(None) == {}
    assert decode_cursor("") == {}
    assert decode_cursor("   ") == {}


def test_encode_rejects_bad_attribute_values() -> None:
    with pytest.raises(CursorEncodingError, match="failed to encode cursor"):
        encode_cursor({"pk": {"S": 1}})
    with pytest.raises(CursorEncodingError):
        encode_cursor({"pk": {"S": "a", "N": "1"}})
    with pytest.raises(CursorEncodingError, match="unsupported attribute value type"):
        encode_cursor({"pk": {"X": "a"}})


def _b64(raw: str) -> str:
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


@pytest.mark.parametrize(
    ("cursor", "match"),
    [
        ("not base64!", "not valid base64"),
        (_b64("{nope"), "not valid JSON"),
        (_b64(json.dumps([1, 2])), "must decode to an object"),
        (_b64(json.dumps({"pk": {"Q": "a"}})), "invalid attribute value"),
        (_b64(json.dumps({"pk": {"N": 1}})), "invalid attribute value"),
    ],
)
def test_decode_rejects_malformed_cursors(cursor: str, match: str) -> None:
    with pytest.raises(CursorDecodingError, match=match) as excinfo:
        decode_cursor(cursor)
    if "object" not in match:
        assert excinfo.value.cause is not None
