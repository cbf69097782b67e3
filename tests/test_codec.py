"""Tests for the wire codec."""

import math

import pytest

from rootsync.codec import UNDEFINED, UNDEFINED_MARKER, Codec, decode, encode
from rootsync.store import RootTable


class TestEncode:
    """Tests for encoding values."""

    @pytest.mark.parametrize("value", [None, True, False, 0, -7, 3.5, "", "text"])
    def test_scalars_pass_through(self, value):
        assert encode(value) == value
        assert decode(encode(value)) == value

    def test_nested_round_trip(self):
        value = {"a": [1, {"b": None}], "c": {"d": "e"}}

        assert decode(encode(value)) == value

    def test_tuple_encodes_as_list(self):
        assert encode((1, 2)) == [1, 2]

    def test_callable_is_unrepresentable(self):
        assert encode(lambda: None) == UNDEFINED_MARKER
        assert decode(encode(lambda: None)) is UNDEFINED

    def test_nested_unrepresentable_members(self):
        wire = encode({"list": ["abc", print, "def"], "field": object()})

        assert decode(wire) == {"list": ["abc", UNDEFINED, "def"], "field": UNDEFINED}

    @pytest.mark.parametrize("value", [{1, 2}, b"bytes", {1: "int key"}])
    def test_other_values_are_unrepresentable(self, value):
        assert decode(encode(value)) is UNDEFINED

    def test_undefined_round_trips(self):
        assert decode(encode(UNDEFINED)) is UNDEFINED

    def test_cycle_is_unrepresentable(self):
        value = {"name": "loop"}
        value["self"] = value

        assert decode(encode(value)) == {"name": "loop", "self": UNDEFINED}

    def test_non_finite_floats(self):
        assert decode(encode(math.inf)) == math.inf
        assert decode(encode(-math.inf)) == -math.inf
        assert math.isnan(decode(encode(math.nan)))

    def test_dollar_keys_are_escaped(self):
        value = {"$type": "user data", "$$x": 1, "plain": 2}

        wire = encode(value)

        assert wire == {"$$type": "user data", "$$$x": 1, "plain": 2}
        assert decode(wire) == value

    def test_observable_containers(self):
        table = RootTable({"foo": {"bar": [1, 2]}})

        assert encode(table["foo"]) == {"bar": [1, 2]}


class TestDecode:
    """Tests for decoding wire values."""

    def test_unknown_tag_raises(self):
        with pytest.raises(ValueError):
            decode({"$type": "mystery"})

    def test_undefined_is_singleton_and_falsy(self):
        assert type(UNDEFINED)() is UNDEFINED
        assert not UNDEFINED
        assert repr(UNDEFINED) == "UNDEFINED"


class TestCodec:
    """Tests for the JSON-framing codec object."""

    def test_dumps_loads(self):
        codec = Codec()
        payload = {"op": "init", "key": "foo", "value": codec.encode([1, print])}

        text = codec.dumps(payload)

        assert text == '{"op":"init","key":"foo","value":[1,{"$type":"undefined"}]}'
        assert codec.decode(codec.loads(text)["value"]) == [1, UNDEFINED]
