import pytest

from relay.messaging.encoder import DecodeError, decode, encode


class TestEncode:
    def test_compact_output(self):
        assert encode({"a": 1, "b": [1, 2]}) == '{"a":1,"b":[1,2]}'

    def test_keeps_non_ascii(self):
        assert encode({"nickname": "김"}) == '{"nickname":"김"}'


class TestDecode:
    def test_decodes_text_frame(self):
        assert decode('{"type":"TAP_EVENT"}') == {"type": "TAP_EVENT"}

    def test_decodes_binary_frame(self):
        assert decode('{"nickname":"김"}'.encode()) == {"nickname": "김"}

    def test_rejects_invalid_json(self):
        with pytest.raises(DecodeError, match="failed to decode"):
            decode("{not json")

    def test_rejects_invalid_utf8(self):
        with pytest.raises(DecodeError, match="failed to decode"):
            decode(b"\xff\xff\xff")

    def test_rejects_non_object(self):
        with pytest.raises(DecodeError, match="expected object, got list"):
            decode("[1, 2, 3]")

    def test_rejects_oversized_frame(self):
        with pytest.raises(DecodeError, match="message too large"):
            decode('{"pad":"' + "x" * 100 + '"}', max_bytes=64)

    def test_size_counts_utf8_bytes(self):
        # 30 three-byte characters: 30 chars but 90+ bytes
        data = '{"n":"' + "김" * 30 + '"}'
        with pytest.raises(DecodeError, match="message too large"):
            decode(data, max_bytes=64)
