"""SSH 바이너리 패킷 리더 (RFC 4253 6절, 암호화 이전 평문 패킷).

KEXINIT 교환 전이므로 MAC은 존재하지 않으며 검증하지 않는다.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import BinaryIO

from kexwatch.protocols.errors import (
    MalformedPacketError,
    OversizedPacketError,
    TruncatedError,
)

# 프로토콜 상수가 아닌 조정 가능한 상한 (RFC 4253 권장치 35000)
DEFAULT_MAX_PACKET_SIZE = 35000

_LENGTH_FMT  = "!I"
_LENGTH_SIZE = struct.calcsize(_LENGTH_FMT)   # 4


@dataclass(frozen=True)
class RawPacket:
    """디코딩된 단일 SSH 바이너리 패킷."""
    packet_length:  int
    padding_length: int
    payload:        bytes
    padding:        bytes
    mac:            bytes = b""   # 키 교환 전이므로 항상 비어 있다

    @property
    def message_type(self) -> int | None:
        """페이로드의 첫 바이트 (SSH 메시지 번호). 빈 페이로드면 None."""
        return self.payload[0] if self.payload else None


def read_exact(stream: BinaryIO, size: int) -> bytes:
    """스트림에서 정확히 size 바이트를 읽는다.

    Raises:
        TruncatedError: size 바이트를 채우기 전에 EOF에 도달한 경우.
    """
    chunks: list[bytes] = []
    remaining = size
    while remaining > 0:
        chunk = stream.read(remaining)
        if not chunk:
            raise TruncatedError(
                f"Stream ended after {size - remaining} of {size} bytes"
            )
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)


def read_packet(
    stream: BinaryIO,
    max_packet_size: int = DEFAULT_MAX_PACKET_SIZE,
) -> RawPacket:
    """스트림에서 SSH 바이너리 패킷 하나를 읽는다.

    정확히 4 + packet_length 바이트를 소비한다.

    Args:
        stream: read()를 지원하는 바이너리 스트림 (소켓 makefile 등).
        max_packet_size: 허용하는 최대 packet_length.

    Returns:
        페이로드와 패딩이 분리된 RawPacket.

    Raises:
        OversizedPacketError: 선언된 길이가 상한을 초과한 경우 (본문은 읽지 않는다).
        TruncatedError: 스트림이 중간에 끝난 경우.
        MalformedPacketError: 패딩 길이가 패킷 길이와 맞지 않는 경우.
    """
    (packet_length,) = struct.unpack(_LENGTH_FMT, read_exact(stream, _LENGTH_SIZE))

    if packet_length > max_packet_size:
        raise OversizedPacketError(
            f"Packet length {packet_length} exceeds limit of {max_packet_size} bytes"
        )
    if packet_length == 0:
        raise MalformedPacketError("Packet length is zero")

    body = read_exact(stream, packet_length)

    padding_length = body[0]
    if padding_length >= packet_length:
        raise MalformedPacketError(
            f"Padding length {padding_length} does not fit in "
            f"packet of {packet_length} bytes"
        )

    payload_end = packet_length - padding_length
    return RawPacket(
        packet_length  = packet_length,
        padding_length = padding_length,
        payload        = body[1:payload_end],
        padding        = body[payload_end:],
    )


def encode_packet(payload: bytes, padding: bytes = b"\x00" * 4) -> bytes:
    """페이로드와 패딩으로 평문 SSH 바이너리 패킷을 만든다.

    블록 정렬은 강제하지 않는다. 리더는 정렬을 검사하지 않는다.
    """
    if len(padding) > 255:
        raise ValueError(f"Padding too long: {len(padding)} bytes (maximum 255)")
    body = bytes([len(padding)]) + payload + padding
    return struct.pack(_LENGTH_FMT, len(body)) + body
