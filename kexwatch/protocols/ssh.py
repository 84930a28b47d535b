"""SSH 식별 배너 교환 및 파서 (RFC 4253 4.2절).

상대방은 식별 줄 앞에 임의의 안내 문구 줄을 보낼 수 있으므로
SSH 버전 접두사로 시작하는 첫 줄을 찾을 때까지 읽고 버린다.
"""

from __future__ import annotations

import logging
from typing import BinaryIO

from kexwatch.protocols.errors import BannerNotFoundError, TruncatedError

logger = logging.getLogger("kexwatch.protocols.ssh")

DEFAULT_CLIENT_BANNER = "SSH-2.0-TerrapinVulnerabilityScanner"
DEFAULT_MAX_BANNER_LINES = 64
DEFAULT_MAX_LINE_LENGTH = 8192

_VERSION_PREFIXES = (b"SSH-2.0", b"SSH-1.99")


def send_banner(writer: BinaryIO, banner: str = DEFAULT_CLIENT_BANNER) -> None:
    """자신의 식별 줄을 CR-LF로 끝맺어 전송한다."""
    if not banner.startswith("SSH-"):
        raise ValueError(f"Identification banner must start with 'SSH-': {banner!r}")
    writer.write(banner.encode("ascii") + b"\r\n")
    writer.flush()


def read_banner(
    reader: BinaryIO,
    max_lines: int = DEFAULT_MAX_BANNER_LINES,
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
) -> str:
    """SSH 버전 접두사로 시작하는 첫 줄을 찾을 때까지 읽는다.

    Args:
        reader: readline()을 지원하는 바이너리 스트림.
        max_lines: 버전 줄 이전에 허용하는 최대 줄 수 (버전 줄 포함).
        max_line_length: 한 번에 읽는 최대 바이트 수. 넘는 줄은 잘려 여러 줄로 취급된다.

    Returns:
        후행 공백이 제거된 상대방 배너.

    Raises:
        TruncatedError: 배너 이전에 연결이 닫힌 경우.
        BannerNotFoundError: max_lines 안에 버전 줄이 없는 경우.
    """
    for _ in range(max_lines):
        line = reader.readline(max_line_length)
        if not line:
            raise TruncatedError("Connection closed before SSH identification banner")
        if line.startswith(_VERSION_PREFIXES):
            return line.decode("utf-8", errors="replace").rstrip()
        logger.debug("Skipping pre-banner line: %r", line[:80])

    raise BannerNotFoundError(
        f"No SSH identification banner within {max_lines} lines"
    )


def exchange_banners(
    reader: BinaryIO,
    writer: BinaryIO,
    banner: str = DEFAULT_CLIENT_BANNER,
    max_lines: int = DEFAULT_MAX_BANNER_LINES,
    max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
) -> str:
    """자신의 배너를 보낸 뒤 상대방의 SSH 식별 줄을 읽어 반환한다."""
    send_banner(writer, banner)
    return read_banner(reader, max_lines=max_lines, max_line_length=max_line_length)


def parse_ssh_banner(line: str) -> dict | None:
    """SSH 배너 문자열을 파싱한다.

    SSH 배너 형식: SSH-protoversion-softwareversion SP comments CR LF

    protocol, software, comments 키를 포함하는 dict를 반환한다.
    유효한 SSH 배너가 아니면 None을 반환한다.
    """
    line = line.strip()
    if not line.startswith("SSH-"):
        return None

    rest = line[4:]

    # 첫 번째 대시가 프로토콜 버전과 소프트웨어 버전을 구분
    protocol, sep, remainder = rest.partition("-")
    if not sep or not protocol:
        return None

    software, _, comments = remainder.partition(" ")
    if not software:
        return None

    return {
        "protocol": protocol,
        "software": software,
        "comments": comments.strip() or None,
    }
