"""Terrapin (CVE-2023-48795) 노출 판정.

취약 조건: ChaCha20-Poly1305 또는 CBC + EtM MAC 조합을 제공하면서
strict kex 확장을 광고하지 않는 경우.
"""

from __future__ import annotations

import logging

from kexwatch.detection.models import ScanMode, SecurityFindings
from kexwatch.protocols.kexinit import KexInit

logger = logging.getLogger("kexwatch.detection.terrapin")

CHACHA20_POLY1305 = "chacha20-poly1305@openssh.com"
CBC_SUFFIX = "-cbc"
ETM_SUFFIX = "-etm@openssh.com"
KEX_STRICT_INDICATOR_CLIENT = "kex-strict-c-v00@openssh.com"
KEX_STRICT_INDICATOR_SERVER = "kex-strict-s-v00@openssh.com"


def _has_cbc_etm(ciphers: tuple[str, ...], macs: tuple[str, ...]) -> bool:
    """한 방향의 암호/MAC 목록에 CBC 암호와 EtM MAC이 함께 있는지 확인한다."""
    return (
        any(alg.endswith(CBC_SUFFIX) for alg in ciphers)
        and any(alg.endswith(ETM_SUFFIX) for alg in macs)
    )


def _strict_kex_indicators(mode: ScanMode) -> tuple[str, ...]:
    """스캔 모드에 따라 인정하는 strict kex 표시자를 반환한다."""
    if mode is ScanMode.CLIENT:
        return (KEX_STRICT_INDICATOR_SERVER, KEX_STRICT_INDICATOR_CLIENT)
    return (KEX_STRICT_INDICATOR_SERVER,)


def evaluate(kex_init: KexInit, mode: ScanMode) -> SecurityFindings:
    """상대방 KEXINIT에서 Terrapin 관련 속성을 계산한다."""
    supports_chacha20 = (
        CHACHA20_POLY1305 in kex_init.encryption_algorithms_client_to_server
        or CHACHA20_POLY1305 in kex_init.encryption_algorithms_server_to_client
    )
    # 방향별로 독립 검사
    supports_cbc_etm = (
        _has_cbc_etm(
            kex_init.encryption_algorithms_client_to_server,
            kex_init.mac_algorithms_client_to_server,
        )
        or _has_cbc_etm(
            kex_init.encryption_algorithms_server_to_client,
            kex_init.mac_algorithms_server_to_client,
        )
    )
    supports_strict_kex = any(
        indicator in kex_init.kex_algorithms
        for indicator in _strict_kex_indicators(mode)
    )

    findings = SecurityFindings(
        supports_chacha20   = supports_chacha20,
        supports_cbc_etm    = supports_cbc_etm,
        supports_strict_kex = supports_strict_kex,
    )
    logger.debug(
        "Evaluated KEXINIT (mode=%s): chacha20=%s cbc_etm=%s strict_kex=%s",
        mode.value, supports_chacha20, supports_cbc_etm, supports_strict_kex,
    )
    return findings
