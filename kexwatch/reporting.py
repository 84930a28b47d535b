"""스캔 결과 렌더링: JSON 및 사람용 텍스트 요약."""

from __future__ import annotations

from kexwatch.detection.models import ScanReport
from kexwatch.protocols.ssh import parse_ssh_banner


def render_json(report: ScanReport) -> str:
    """들여쓰기된 JSON 문자열."""
    return report.to_json(indent=2)


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


def render_text(report: ScanReport) -> str:
    """터미널용 텍스트 요약을 만든다."""
    role = "client (we listened)" if report.is_server else "server (we connected)"
    lines = [
        f"Remote address     : {report.remote_addr}",
        f"Remote role        : {role}",
        f"Banner             : {report.banner}",
    ]
    parsed = parse_ssh_banner(report.banner)
    if parsed:
        lines.append(f"Software           : {parsed['software']}")

    lines += [
        "",
        f"ChaCha20-Poly1305  : {_yes_no(report.supports_chacha20)}",
        f"CBC-EtM            : {_yes_no(report.supports_cbc_etm)}",
        f"Strict key exchange: {_yes_no(report.supports_strict_kex)}",
        "",
    ]
    if report.vulnerable:
        lines.append(
            "==> VULNERABLE: the peer supports ChaCha20-Poly1305 or CBC-EtM "
            "without strict key exchange (Terrapin, CVE-2023-48795)."
        )
    else:
        lines.append("==> Not vulnerable to Terrapin.")
    return "\n".join(lines)
