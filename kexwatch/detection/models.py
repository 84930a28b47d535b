"""스캔 모드, 보안 판정 및 스캔 결과 모델."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from typing import Any

from kexwatch.protocols.kexinit import KexInit


class ScanMode(str, enum.Enum):
    """스캔 대상의 역할.

    SERVER: 원격 서버를 스캔한다 (이 도구가 클라이언트로 접속).
    CLIENT: 원격 클라이언트를 스캔한다 (이 도구가 수신 대기 후 accept).
    """
    SERVER = "server"
    CLIENT = "client"


@dataclass(frozen=True)
class SecurityFindings:
    """KEXINIT에서 도출한 Terrapin 관련 속성."""
    supports_chacha20:   bool
    supports_cbc_etm:    bool
    supports_strict_kex: bool

    @property
    def vulnerable(self) -> bool:
        """취약 알고리즘을 제공하면서 strict kex 완화책이 없는 경우."""
        return (self.supports_chacha20 or self.supports_cbc_etm) and not self.supports_strict_kex


@dataclass(frozen=True)
class ScanReport:
    """단일 스캔의 최종 결과.

    vulnerable은 저장하지 않고 직렬화 시점에 findings에서 계산한다.
    """
    remote_addr: str
    is_server:   bool   # 이 도구가 수신 대기 측이었으면 True
    banner:      str
    findings:    SecurityFindings
    kex_init:    KexInit | None = None

    @property
    def supports_chacha20(self) -> bool:
        return self.findings.supports_chacha20

    @property
    def supports_cbc_etm(self) -> bool:
        return self.findings.supports_cbc_etm

    @property
    def supports_strict_kex(self) -> bool:
        return self.findings.supports_strict_kex

    @property
    def vulnerable(self) -> bool:
        return self.findings.vulnerable

    def to_dict(self) -> dict[str, Any]:
        """결과를 딕셔너리로 직렬화한다."""
        return {
            "remote_addr": self.remote_addr,
            "is_server": self.is_server,
            "banner": self.banner,
            "supports_chacha20": self.supports_chacha20,
            "supports_cbc_etm": self.supports_cbc_etm,
            "supports_strict_kex": self.supports_strict_kex,
            "vulnerable": self.vulnerable,
        }

    def to_json(self, indent: int | None = None) -> str:
        """결과를 JSON 문자열로 직렬화한다."""
        return json.dumps(self.to_dict(), indent=indent)
