"""SSH 바이너리 패킷 리더 단위 테스트."""

import io
import struct

import pytest

from kexwatch.protocols.errors import (
    MalformedPacketError,
    OversizedPacketError,
    TruncatedError,
)
from kexwatch.protocols.packet import RawPacket, encode_packet, read_packet


def _raw(packet_length: int, body: bytes) -> bytes:
    """길이 필드를 임의로 지정한 패킷 바이트열."""
    return struct.pack("!I", packet_length) + body


class TestReadPacket:
    def test_round_trip(self):
        payload = b"\x14" + b"hello kexinit"
        padding = b"\xaa" * 7
        pkt = read_packet(io.BytesIO(encode_packet(payload, padding)))
        assert pkt.payload == payload
        assert pkt.padding == padding
        assert pkt.padding_length == 7
        assert pkt.packet_length == 1 + len(payload) + len(padding)
        assert pkt.mac == b""

    def test_message_type(self):
        pkt = read_packet(io.BytesIO(encode_packet(b"\x15rest")))
        assert pkt.message_type == 21

    def test_empty_payload_has_no_message_type(self):
        pkt = read_packet(io.BytesIO(encode_packet(b"", b"\x00" * 4)))
        assert pkt.payload == b""
        assert pkt.message_type is None

    def test_consumes_exactly_one_packet(self):
        first = encode_packet(b"\x01first", b"\x00" * 4)
        second = encode_packet(b"\x02second", b"\x00" * 5)
        stream = io.BytesIO(first + second + b"trailing")
        assert read_packet(stream).payload == b"\x01first"
        assert stream.tell() == len(first)
        assert read_packet(stream).payload == b"\x02second"
        assert stream.read() == b"trailing"

    def test_oversized_rejected_even_when_bytes_available(self):
        data = _raw(35001, b"\x04" + b"\x00" * 35000)
        with pytest.raises(OversizedPacketError):
            read_packet(io.BytesIO(data))

    def test_oversized_rejected_without_body(self):
        stream = io.BytesIO(struct.pack("!I", 0xFFFFFFFF))
        with pytest.raises(OversizedPacketError):
            read_packet(stream)
        # 본문을 읽으려 시도하지 않는다
        assert stream.tell() == 4

    def test_custom_ceiling(self):
        data = encode_packet(b"\x14" + b"x" * 100)
        with pytest.raises(OversizedPacketError):
            read_packet(io.BytesIO(data), max_packet_size=50)
        assert read_packet(io.BytesIO(data), max_packet_size=200).payload[0] == 0x14

    def test_ceiling_is_inclusive(self):
        payload = b"\x14" + b"x" * (35000 - 1 - 4 - 1)
        pkt = read_packet(io.BytesIO(encode_packet(payload)))
        assert pkt.packet_length == 35000

    def test_truncated_length(self):
        with pytest.raises(TruncatedError):
            read_packet(io.BytesIO(b"\x00\x00"))

    def test_truncated_body(self):
        with pytest.raises(TruncatedError):
            read_packet(io.BytesIO(_raw(20, b"\x04abc")))

    def test_empty_stream(self):
        with pytest.raises(TruncatedError):
            read_packet(io.BytesIO(b""))

    def test_zero_length_is_malformed(self):
        with pytest.raises(MalformedPacketError):
            read_packet(io.BytesIO(_raw(0, b"")))

    def test_padding_equal_to_length_is_malformed(self):
        with pytest.raises(MalformedPacketError):
            read_packet(io.BytesIO(_raw(5, b"\x05abcd")))

    def test_padding_exceeding_length_is_malformed(self):
        with pytest.raises(MalformedPacketError):
            read_packet(io.BytesIO(_raw(3, b"\xffab")))

    def test_reads_from_short_read_stream(self):
        class _Trickle(io.RawIOBase):
            """한 번에 1바이트씩만 돌려주는 스트림."""
            def __init__(self, data: bytes) -> None:
                self._data = data

            def readable(self) -> bool:
                return True

            def read(self, size: int = -1) -> bytes:
                chunk, self._data = self._data[:1], self._data[1:]
                return chunk

        pkt = read_packet(_Trickle(encode_packet(b"\x14abc", b"\x00" * 4)))
        assert pkt.payload == b"\x14abc"


class TestEncodePacket:
    def test_layout(self):
        data = encode_packet(b"\x14", b"\x00\x00")
        assert data == b"\x00\x00\x00\x04" + b"\x02" + b"\x14" + b"\x00\x00"

    def test_padding_too_long(self):
        with pytest.raises(ValueError):
            encode_packet(b"\x14", b"\x00" * 256)

    def test_raw_packet_is_frozen(self):
        pkt = RawPacket(packet_length=5, padding_length=1, payload=b"\x14ab", padding=b"\x00")
        with pytest.raises(AttributeError):
            pkt.payload = b""
