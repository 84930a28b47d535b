"""Shared fixtures for kexwatch tests."""

from __future__ import annotations

import socket
import threading
import time
from collections.abc import Callable, Iterator

import pytest

from kexwatch.protocols.kexinit import encode_kex_init
from kexwatch.protocols.packet import encode_packet


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """테스트가 로컬 .env / 환경변수 설정에 영향받지 않도록 한다."""
    for var in (
        "KEXWATCH_CONFIG",
        "KEXWATCH_TIMEOUT",
        "KEXWATCH_MAX_PACKET_SIZE",
        "KEXWATCH_MAX_PACKETS",
        "KEXWATCH_HANDSHAKE_TIMEOUT",
        "KEXWATCH_LOG_LEVEL",
        "KEXWATCH_LOG_FORMAT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr("kexwatch.utils.config.load_dotenv", lambda *a, **kw: False)


def make_kex_init_packet(**name_lists) -> bytes:
    """지정한 name-list로 KEXINIT 바이너리 패킷을 만든다."""
    name_lists.setdefault("kex_algorithms", ["curve25519-sha256"])
    name_lists.setdefault("server_host_key_algorithms", ["ssh-ed25519"])
    return encode_packet(encode_kex_init(cookie=b"\x11" * 16, **name_lists))


class FakePeer:
    """정해진 바이트열을 보내는 단발성 TCP 피어 (127.0.0.1 전용)."""

    def __init__(
        self,
        script: bytes,
        close_after_send: bool = True,
        byte_delay: float = 0.0,
    ) -> None:
        self.script = script
        self.close_after_send = close_after_send
        self.byte_delay = byte_delay
        self.received = b""
        self._listener = socket.create_server(("127.0.0.1", 0))
        self._listener.settimeout(5)
        # 리스너는 accept 직후 닫히므로 주소는 미리 계산해 둔다
        host, port = self._listener.getsockname()[:2]
        self.address = f"{host}:{port}"
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def start(self) -> FakePeer:
        self._thread.start()
        return self

    def _serve(self) -> None:
        with self._listener:
            try:
                conn, _ = self._listener.accept()
            except OSError:
                return
        with conn:
            conn.settimeout(5)
            try:
                if self.byte_delay:
                    for i in range(len(self.script)):
                        conn.sendall(self.script[i:i + 1])
                        time.sleep(self.byte_delay)
                else:
                    conn.sendall(self.script)
                if self.close_after_send:
                    conn.shutdown(socket.SHUT_WR)
                # 상대가 닫을 때까지 수신한 내용을 모두 받아둔다
                while True:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    self.received += chunk
            except OSError:
                pass

    def join(self) -> None:
        self._thread.join(timeout=10)


@pytest.fixture
def fake_peer() -> Iterator[Callable[..., FakePeer]]:
    """FakePeer 팩토리. 테스트 종료 시 스레드를 정리한다."""
    peers: list[FakePeer] = []

    def _start(
        script: bytes,
        close_after_send: bool = True,
        byte_delay: float = 0.0,
    ) -> FakePeer:
        peer = FakePeer(script, close_after_send=close_after_send, byte_delay=byte_delay).start()
        peers.append(peer)
        return peer

    yield _start
    for peer in peers:
        peer.join()


@pytest.fixture
def kex_init_packet() -> Callable[..., bytes]:
    return make_kex_init_packet


@pytest.fixture
def server_banner() -> bytes:
    """합성 SSH 서버가 보내는 식별 줄."""
    return b"SSH-2.0-OpenSSH_9.0\r\n"
