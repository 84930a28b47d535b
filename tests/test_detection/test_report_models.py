"""SecurityFindings / ScanReport 모델 테스트."""

import json
from itertools import product

import pytest

from kexwatch.detection.models import ScanMode, ScanReport, SecurityFindings


def _report(**flags) -> ScanReport:
    return ScanReport(
        remote_addr="192.0.2.10:22",
        is_server=False,
        banner="SSH-2.0-OpenSSH_9.0",
        findings=SecurityFindings(**flags),
    )


class TestSecurityFindings:
    def test_vulnerable_truth_table(self):
        for chacha, cbc_etm, strict in product([False, True], repeat=3):
            findings = SecurityFindings(
                supports_chacha20=chacha,
                supports_cbc_etm=cbc_etm,
                supports_strict_kex=strict,
            )
            assert findings.vulnerable is ((chacha or cbc_etm) and not strict)

    def test_frozen(self):
        findings = SecurityFindings(False, False, False)
        with pytest.raises(AttributeError):
            findings.supports_chacha20 = True


class TestScanReport:
    def test_to_dict_fields(self):
        report = _report(supports_chacha20=True, supports_cbc_etm=False, supports_strict_kex=False)
        assert report.to_dict() == {
            "remote_addr": "192.0.2.10:22",
            "is_server": False,
            "banner": "SSH-2.0-OpenSSH_9.0",
            "supports_chacha20": True,
            "supports_cbc_etm": False,
            "supports_strict_kex": False,
            "vulnerable": True,
        }

    def test_vulnerable_computed_from_findings(self):
        report = _report(supports_chacha20=True, supports_cbc_etm=True, supports_strict_kex=True)
        assert report.vulnerable is False
        assert report.to_dict()["vulnerable"] is False

    def test_to_json(self):
        report = _report(supports_chacha20=False, supports_cbc_etm=True, supports_strict_kex=False)
        data = json.loads(report.to_json())
        assert data["supports_cbc_etm"] is True
        assert data["vulnerable"] is True


class TestScanMode:
    def test_values(self):
        assert ScanMode("server") is ScanMode.SERVER
        assert ScanMode("client") is ScanMode.CLIENT
