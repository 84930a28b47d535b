"""핸드셰이크 드라이버: 연결 → 배너 교환 → KEXINIT 수신 → 판정.

단일 연결, 동기 블로킹 I/O. 모든 블로킹 호출에는 timeout이 적용되며
배너 줄 수와 건너뛸 패킷 수에 상한을 둔다. 어떤 단계든 실패하면
스캔 전체가 중단되고 예외가 그대로 호출자에게 전달된다.
"""

from __future__ import annotations

import io
import logging
import socket
import time
from typing import BinaryIO

from kexwatch.detection.models import ScanMode, ScanReport
from kexwatch.detection.terrapin import evaluate
from kexwatch.protocols.errors import (
    AcceptFailedError,
    BindFailedError,
    ConnectionFailedError,
    KexInitNotFoundError,
    MalformedPacketError,
    ReadFailedError,
    WriteFailedError,
)
from kexwatch.protocols.kexinit import SSH_MSG_KEXINIT, KexInit, parse_kex_init
from kexwatch.protocols.packet import DEFAULT_MAX_PACKET_SIZE, read_packet
from kexwatch.protocols.ssh import (
    DEFAULT_CLIENT_BANNER,
    DEFAULT_MAX_BANNER_LINES,
    DEFAULT_MAX_LINE_LENGTH,
    parse_ssh_banner,
    read_banner,
    send_banner,
)
from kexwatch.utils.config import Config
from kexwatch.utils.network import format_address, parse_address

logger = logging.getLogger("kexwatch.scanner")

DEFAULT_MAX_PACKETS = 16
# 연결 수립 후 배너 교환부터 KEXINIT 수신까지 허용하는 전체 시간 (초)
DEFAULT_HANDSHAKE_TIMEOUT = 30.0


class _DeadlineSocketReader(io.RawIOBase):
    """recv마다 남은 시간으로 소켓 timeout을 다시 설정하는 읽기 전용 래퍼.

    바이트를 조금씩 흘려보내는 피어도 전체 deadline 안에서 끊긴다.
    close()는 래퍼만 닫고 소켓은 닫지 않는다.
    """

    def __init__(
        self,
        conn: socket.socket,
        deadline: float | None,
        read_timeout: float | None,
    ) -> None:
        super().__init__()
        self._conn         = conn
        self._deadline     = deadline
        self._read_timeout = read_timeout

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self._deadline is not None:
            remaining = self._deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("SSH handshake deadline exceeded")
            if self._read_timeout is not None:
                remaining = min(remaining, self._read_timeout)
            self._conn.settimeout(remaining)
        return self._conn.recv_into(buffer)


class TerrapinScanner:
    """단일 SSH 피어의 KEXINIT을 읽어 Terrapin 노출 여부를 판정한다.

    ScanMode.SERVER면 address로 접속하고, ScanMode.CLIENT면 address에서
    수신 대기하다가 들어오는 연결 하나만 받는다.
    """

    def __init__(
        self,
        address: str,
        mode: ScanMode = ScanMode.SERVER,
        *,
        timeout: float | None = None,
        max_packet_size: int = DEFAULT_MAX_PACKET_SIZE,
        max_banner_lines: int = DEFAULT_MAX_BANNER_LINES,
        max_line_length: int = DEFAULT_MAX_LINE_LENGTH,
        max_packets: int = DEFAULT_MAX_PACKETS,
        handshake_timeout: float | None = DEFAULT_HANDSHAKE_TIMEOUT,
        client_banner: str = DEFAULT_CLIENT_BANNER,
        verbose: bool = False,
    ) -> None:
        self.address           = address
        self.mode              = mode
        self.timeout           = timeout
        self.max_packet_size   = max_packet_size
        self.max_banner_lines  = max_banner_lines
        self.max_line_length   = max_line_length
        self.max_packets       = max_packets
        self.handshake_timeout = handshake_timeout
        self.client_banner     = client_banner
        self.verbose           = verbose

        # CLIENT 모드에서 bind 이후 실제 수신 주소 (포트 0 지정 시 확인용)
        self.listen_address: tuple[str, int] | None = None

    @classmethod
    def from_config(
        cls,
        address: str,
        mode: ScanMode,
        config: Config,
        timeout: float | None = None,
        verbose: bool = False,
    ) -> TerrapinScanner:
        """설정의 scan 섹션으로 스캐너를 만든다. timeout 인자가 설정보다 우선한다."""
        scan_cfg = config.section("scan")
        return cls(
            address,
            mode,
            timeout           = timeout if timeout is not None else scan_cfg.get("timeout"),
            max_packet_size   = scan_cfg.get("max_packet_size", DEFAULT_MAX_PACKET_SIZE),
            max_banner_lines  = scan_cfg.get("max_banner_lines", DEFAULT_MAX_BANNER_LINES),
            max_line_length   = scan_cfg.get("max_line_length", DEFAULT_MAX_LINE_LENGTH),
            max_packets       = scan_cfg.get("max_packets", DEFAULT_MAX_PACKETS),
            handshake_timeout = scan_cfg.get("handshake_timeout", DEFAULT_HANDSHAKE_TIMEOUT),
            client_banner     = scan_cfg.get("client_banner", DEFAULT_CLIENT_BANNER),
            verbose           = verbose,
        )

    @property
    def _progress_level(self) -> int:
        return logging.INFO if self.verbose else logging.DEBUG

    # ------------------------------------------------------------------
    # 연결 수립
    # ------------------------------------------------------------------

    def _connect(self) -> tuple[socket.socket, str]:
        host, port = parse_address(self.address)
        try:
            conn = socket.create_connection((host, port), timeout=self.timeout)
        except OSError as exc:
            raise ConnectionFailedError(
                f"Failed to connect to {self.address}: {exc}"
            ) from exc
        logger.log(self._progress_level, "Connected to %s", self.address)
        return conn, self.address

    def _accept(self) -> tuple[socket.socket, str]:
        host, port = parse_address(self.address)
        family = socket.AF_INET6 if ":" in host else socket.AF_INET
        try:
            listener = socket.create_server((host, port), family=family)
        except OSError as exc:
            raise BindFailedError(f"Failed to bind {self.address}: {exc}") from exc

        with listener:
            listener.settimeout(self.timeout)
            self.listen_address = listener.getsockname()[:2]
            logger.log(
                self._progress_level,
                "Listening for incoming client connection on %s",
                format_address(*self.listen_address),
            )
            try:
                conn, peer = listener.accept()
            except OSError as exc:
                raise AcceptFailedError(
                    f"Failed to accept client connection on {self.address}: {exc}"
                ) from exc

        conn.settimeout(self.timeout)
        remote_addr = format_address(peer[0], peer[1])
        logger.log(self._progress_level, "Accepted client connection from %s", remote_addr)
        return conn, remote_addr

    def _open_connection(self) -> tuple[socket.socket, str]:
        if self.mode is ScanMode.SERVER:
            return self._connect()
        return self._accept()

    # ------------------------------------------------------------------
    # 프로토콜 단계
    # ------------------------------------------------------------------

    def _exchange_banners(self, reader: BinaryIO, writer: BinaryIO) -> str:
        try:
            send_banner(writer, self.client_banner)
        except OSError as exc:
            raise WriteFailedError(f"Failed to send identification banner: {exc}") from exc
        try:
            banner = read_banner(
                reader,
                max_lines=self.max_banner_lines,
                max_line_length=self.max_line_length,
            )
        except OSError as exc:
            raise ReadFailedError(f"Failed to read identification banner: {exc}") from exc

        parsed = parse_ssh_banner(banner)
        if parsed:
            logger.log(
                self._progress_level,
                "Remote banner: protocol=%s software=%s",
                parsed["protocol"], parsed["software"],
            )
        return banner

    def _receive_kex_init(self, reader: BinaryIO) -> KexInit:
        """KEXINIT이 나올 때까지 패킷을 읽고 나머지는 버린다."""
        for index in range(self.max_packets):
            try:
                packet = read_packet(reader, self.max_packet_size)
            except OSError as exc:
                raise ReadFailedError(f"Failed to read binary packet: {exc}") from exc

            msg_type = packet.message_type
            if msg_type is None:
                raise MalformedPacketError("Binary packet has an empty payload")
            if msg_type == SSH_MSG_KEXINIT:
                kex_init = parse_kex_init(packet.payload)
                for name, values in kex_init.name_lists().items():
                    logger.debug("  %-40s %s", name, ",".join(values))
                return kex_init

            logger.debug(
                "Skipping packet #%d (message type %d, %d bytes)",
                index + 1, msg_type, packet.packet_length,
            )

        raise KexInitNotFoundError(
            f"No SSH_MSG_KEXINIT within the first {self.max_packets} packets"
        )

    def scan_connection(self, conn: socket.socket, remote_addr: str) -> ScanReport:
        """이미 수립된 연결에서 배너 교환부터 판정까지 수행한다."""
        deadline = None
        if self.handshake_timeout is not None:
            deadline = time.monotonic() + self.handshake_timeout
        raw_reader = _DeadlineSocketReader(conn, deadline, self.timeout)
        with io.BufferedReader(raw_reader) as reader, conn.makefile("wb") as writer:
            banner = self._exchange_banners(reader, writer)
            kex_init = self._receive_kex_init(reader)

        findings = evaluate(kex_init, self.mode)
        return ScanReport(
            remote_addr = remote_addr,
            is_server   = self.mode is ScanMode.CLIENT,
            banner      = banner,
            findings    = findings,
            kex_init    = kex_init,
        )

    def scan(self) -> ScanReport:
        """연결을 수립하고 스캔을 수행한다. 소켓은 항상 닫힌다."""
        conn, remote_addr = self._open_connection()
        with conn:
            report = self.scan_connection(conn, remote_addr)

        logger.log(
            self._progress_level,
            "Scan of %s finished: vulnerable=%s", report.remote_addr, report.vulnerable,
        )
        return report


def scan(
    address: str,
    mode: ScanMode = ScanMode.SERVER,
    *,
    timeout: float | None = None,
    verbose: bool = False,
) -> ScanReport:
    """기본 한도로 단일 스캔을 수행한다."""
    return TerrapinScanner(address, mode, timeout=timeout, verbose=verbose).scan()
