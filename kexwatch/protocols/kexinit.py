"""SSH_MSG_KEXINIT 페이로드 디코더 (RFC 4253 7.1절).

페이로드 레이아웃:
    byte         SSH_MSG_KEXINIT (20)
    byte[16]     cookie
    name-list    x 10 (아래 KEXINIT_NAME_LIST_FIELDS 순서)
    boolean      first_kex_packet_follows
    uint32       reserved
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass

from kexwatch.protocols.errors import (
    MalformedPacketError,
    NameListEncodingError,
    TruncatedError,
    UnexpectedMessageTypeError,
)

SSH_MSG_KEXINIT = 20

_HEADER_FMT   = "!B16s"   # msg_type + cookie
_HEADER_SIZE  = struct.calcsize(_HEADER_FMT)   # 17
_TRAILER_FMT  = "!BI"     # first_kex_packet_follows + reserved
_TRAILER_SIZE = struct.calcsize(_TRAILER_FMT)  # 5
_LENGTH_FMT   = "!I"
_LENGTH_SIZE  = struct.calcsize(_LENGTH_FMT)   # 4

# 와이어 상의 name-list 순서 — 순서를 바꾸면 디코딩 결과가 달라진다
KEXINIT_NAME_LIST_FIELDS: tuple[str, ...] = (
    "kex_algorithms",
    "server_host_key_algorithms",
    "encryption_algorithms_client_to_server",
    "encryption_algorithms_server_to_client",
    "mac_algorithms_client_to_server",
    "mac_algorithms_server_to_client",
    "compression_algorithms_client_to_server",
    "compression_algorithms_server_to_client",
    "languages_client_to_server",
    "languages_server_to_client",
)


@dataclass(frozen=True)
class KexInit:
    """디코딩된 KEXINIT 협상 레코드.

    각 name-list는 선호도 순서를 유지하며 중복을 제거하지 않는다.
    빈 name-list는 ("",) 으로 표현된다.
    """
    msg_type:                                int
    cookie:                                  bytes
    kex_algorithms:                          tuple[str, ...]
    server_host_key_algorithms:              tuple[str, ...]
    encryption_algorithms_client_to_server:  tuple[str, ...]
    encryption_algorithms_server_to_client:  tuple[str, ...]
    mac_algorithms_client_to_server:         tuple[str, ...]
    mac_algorithms_server_to_client:         tuple[str, ...]
    compression_algorithms_client_to_server: tuple[str, ...]
    compression_algorithms_server_to_client: tuple[str, ...]
    languages_client_to_server:              tuple[str, ...]
    languages_server_to_client:              tuple[str, ...]
    first_kex_packet_follows:                bool
    reserved:                                int

    def name_lists(self) -> dict[str, tuple[str, ...]]:
        """필드 이름 -> name-list 매핑을 와이어 순서대로 반환한다."""
        return {name: getattr(self, name) for name in KEXINIT_NAME_LIST_FIELDS}


def parse_name_list(payload: bytes, offset: int) -> tuple[list[str], int]:
    """offset 위치의 길이 접두 name-list를 디코딩한다.

    빈 본문은 빈 문자열 토큰 하나([""])가 된다. 와이어 의미를 그대로 유지한다.

    Returns:
        (토큰 리스트, 소비한 바이트 수 = 4 + 본문 길이)

    Raises:
        TruncatedError: 길이 필드나 본문이 버퍼를 넘어가는 경우.
        NameListEncodingError: 본문이 UTF-8 텍스트가 아닌 경우.
    """
    if len(payload) < offset + _LENGTH_SIZE:
        raise TruncatedError(
            f"Not enough bytes to read name-list length at offset {offset}"
        )
    (length,) = struct.unpack_from(_LENGTH_FMT, payload, offset)

    start = offset + _LENGTH_SIZE
    if len(payload) < start + length:
        raise TruncatedError(
            f"Name-list at offset {offset} declares {length} bytes, "
            f"only {len(payload) - start} available"
        )

    try:
        text = payload[start:start + length].decode("utf-8")
    except UnicodeDecodeError as exc:
        raise NameListEncodingError(
            f"Name-list at offset {offset} is not valid text: {exc}"
        ) from exc

    return text.split(","), _LENGTH_SIZE + length


def encode_name_list(names: list[str] | tuple[str, ...]) -> bytes:
    """토큰 목록을 길이 접두 name-list 와이어 형식으로 인코딩한다."""
    body = ",".join(names).encode("utf-8")
    return struct.pack(_LENGTH_FMT, len(body)) + body


def parse_kex_init(payload: bytes) -> KexInit:
    """KEXINIT 페이로드 전체를 디코딩한다.

    모든 필드가 소비한 바이트 합은 len(payload)와 정확히 같아야 한다.

    Raises:
        UnexpectedMessageTypeError: 첫 바이트가 SSH_MSG_KEXINIT이 아닌 경우.
        TruncatedError: 어떤 필드든 페이로드 끝을 넘어가는 경우.
        MalformedPacketError: 마지막 필드 뒤에 남는 바이트가 있는 경우.
        NameListEncodingError: name-list 본문이 텍스트가 아닌 경우.
    """
    if len(payload) < _HEADER_SIZE:
        raise TruncatedError(
            f"KEXINIT payload too short: {len(payload)} bytes "
            f"(minimum {_HEADER_SIZE} for type and cookie)"
        )
    msg_type, cookie = struct.unpack_from(_HEADER_FMT, payload, 0)
    if msg_type != SSH_MSG_KEXINIT:
        raise UnexpectedMessageTypeError(
            f"Expected SSH_MSG_KEXINIT ({SSH_MSG_KEXINIT}), got {msg_type}"
        )
    offset = _HEADER_SIZE

    fields: dict[str, tuple[str, ...]] = {}
    for name in KEXINIT_NAME_LIST_FIELDS:
        names, consumed = parse_name_list(payload, offset)
        fields[name] = tuple(names)
        offset += consumed

    if len(payload) < offset + _TRAILER_SIZE:
        raise TruncatedError(
            f"KEXINIT payload ends before first_kex_packet_follows/reserved "
            f"at offset {offset}"
        )
    first_kex_packet_follows, reserved = struct.unpack_from(_TRAILER_FMT, payload, offset)
    offset += _TRAILER_SIZE

    if offset != len(payload):
        raise MalformedPacketError(
            f"KEXINIT payload has {len(payload) - offset} trailing bytes"
        )

    return KexInit(
        msg_type                 = msg_type,
        cookie                   = cookie,
        first_kex_packet_follows = first_kex_packet_follows != 0,
        reserved                 = reserved,
        **fields,
    )


def encode_kex_init(
    cookie: bytes | None = None,
    first_kex_packet_follows: bool = False,
    reserved: int = 0,
    **name_lists: list[str] | tuple[str, ...],
) -> bytes:
    """KEXINIT 페이로드를 만든다. 지정하지 않은 name-list는 빈 목록이 된다."""
    unknown = set(name_lists) - set(KEXINIT_NAME_LIST_FIELDS)
    if unknown:
        raise TypeError(f"Unknown name-list fields: {sorted(unknown)}")
    if cookie is None:
        cookie = os.urandom(16)
    if len(cookie) != 16:
        raise ValueError(f"Cookie must be 16 bytes, got {len(cookie)}")

    parts = [struct.pack(_HEADER_FMT, SSH_MSG_KEXINIT, cookie)]
    for name in KEXINIT_NAME_LIST_FIELDS:
        parts.append(encode_name_list(name_lists.get(name, [])))
    parts.append(struct.pack(_TRAILER_FMT, int(first_kex_packet_follows), reserved))
    return b"".join(parts)
