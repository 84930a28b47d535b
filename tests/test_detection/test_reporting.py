"""결과 렌더링 테스트."""

import json

from kexwatch.detection.models import ScanReport, SecurityFindings
from kexwatch.reporting import render_json, render_text


def _report(vulnerable: bool) -> ScanReport:
    return ScanReport(
        remote_addr="192.0.2.10:22",
        is_server=False,
        banner="SSH-2.0-OpenSSH_9.3p1 Debian-1",
        findings=SecurityFindings(
            supports_chacha20=vulnerable,
            supports_cbc_etm=False,
            supports_strict_kex=not vulnerable,
        ),
    )


class TestRenderJSON:
    def test_pretty_json(self):
        text = render_json(_report(True))
        assert "\n  " in text
        assert json.loads(text)["vulnerable"] is True


class TestRenderText:
    def test_vulnerable(self):
        text = render_text(_report(True))
        assert "Remote role        : server (we connected)" in text
        assert "Software           : OpenSSH_9.3p1" in text
        assert "ChaCha20-Poly1305  : yes" in text
        assert "VULNERABLE" in text

    def test_not_vulnerable(self):
        text = render_text(_report(False))
        assert "Strict key exchange: yes" in text
        assert "Not vulnerable" in text
