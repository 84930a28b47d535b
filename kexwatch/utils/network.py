"""스캔 대상 주소 파싱 헬퍼."""

from __future__ import annotations

DEFAULT_SSH_PORT = 22


def parse_address(address: str, default_port: int = DEFAULT_SSH_PORT) -> tuple[str, int]:
    """'host[:port]' 문자열을 (host, port)로 분리한다.

    IPv6 주소는 '[::1]:22' 형식을 사용한다. 대괄호 없는 IPv6 주소는
    포트가 없는 것으로 간주한다.

    Raises:
        ValueError: 호스트가 비어 있거나 포트가 0-65535 범위 밖인 경우.
    """
    address = address.strip()
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"Unterminated IPv6 literal in address: {address!r}")
        host = address[1:end]
        rest = address[end + 1:]
        if rest and not rest.startswith(":"):
            raise ValueError(f"Unexpected characters after IPv6 literal: {address!r}")
        port_str = rest[1:] if rest else ""
    elif address.count(":") == 1:
        host, _, port_str = address.partition(":")
    else:
        host, port_str = address, ""

    if not host:
        raise ValueError(f"Missing host in address: {address!r}")

    if not port_str:
        return host, default_port

    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in address: {address!r}") from None
    # 수신 대기 모드에서는 0(임의 포트)도 허용
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range in address: {address!r}")
    return host, port


def format_address(host: str, port: int) -> str:
    """(host, port)를 'host:port' 문자열로 만든다. IPv6는 대괄호로 감싼다."""
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"
