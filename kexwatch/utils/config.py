"""기본값 병합 기능을 갖춘 YAML 설정 로더."""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

# 설정 파일이 없어도 스캔이 가능하도록 내장된 기본값
DEFAULTS: dict[str, Any] = {
    "scan": {
        "timeout": 10.0,
        "max_packet_size": 35000,
        "max_banner_lines": 64,
        "max_line_length": 8192,
        "max_packets": 16,
        "handshake_timeout": 30.0,
        "client_banner": "SSH-2.0-TerrapinVulnerabilityScanner",
    },
    "logging": {
        "level": "INFO",
        "format": "text",
        "directory": None,
        "max_bytes": 10_485_760,
        "backup_count": 5,
    },
}

# 환경변수 → Config 경로 매핑
_ENV_OVERRIDES: list[tuple[str, str, type]] = [
    ("KEXWATCH_TIMEOUT", "scan.timeout", float),
    ("KEXWATCH_MAX_PACKET_SIZE", "scan.max_packet_size", int),
    ("KEXWATCH_MAX_PACKETS", "scan.max_packets", int),
    ("KEXWATCH_HANDSHAKE_TIMEOUT", "scan.handshake_timeout", float),
    ("KEXWATCH_LOG_LEVEL", "logging.level", str),
    ("KEXWATCH_LOG_FORMAT", "logging.format", str),
]


def _deep_merge(base: dict, override: dict) -> dict:
    """override를 base에 재귀적으로 병합하여 새 dict를 반환한다."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _normalize_sections(data: Any, config_path: Path) -> dict:
    """파일 내용을 검증한다. 비어 있는 섹션(None)은 빈 dict로 취급한다.

    Raises:
        ValueError: 최상위 또는 알려진 섹션이 매핑이 아닌 경우.
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(
            f"Config file {config_path} must contain a mapping, got {type(data).__name__}"
        )
    result = dict(data)
    for section in DEFAULTS:
        value = result.get(section)
        if value is None:
            result.pop(section, None)
        elif not isinstance(value, dict):
            raise ValueError(
                f"Config section '{section}' in {config_path} must be a mapping, "
                f"got {type(value).__name__}"
            )
    return result


def _set_nested(data: dict, dotted_key: str, value: Any) -> None:
    """점 표기법을 사용하여 중첩 dict에 값을 설정한다."""
    keys = dotted_key.split(".")
    current = data
    for key in keys[:-1]:
        if key not in current or not isinstance(current[key], dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value


def _apply_env_overrides(data: dict) -> None:
    """환경변수가 설정되어 있으면 YAML 값을 오버라이드한다."""
    for env_var, config_path, cast in _ENV_OVERRIDES:
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested(data, config_path, cast(value))


class Config:
    """YAML 파일에서 로드된 불변 설정 컨테이너."""

    def __init__(self, data: dict[str, Any], config_path: str | Path | None = None) -> None:
        self._data = data
        self.config_path: str | None = str(config_path) if config_path else None

    @classmethod
    def defaults(cls) -> Config:
        """내장 기본값(환경변수 오버라이드 포함)만으로 설정을 만든다."""
        data = copy.deepcopy(DEFAULTS)
        _apply_env_overrides(data)
        return cls(data)

    @classmethod
    def load(cls, config_path: str | Path | None = None) -> Config:
        """YAML 파일에서 설정을 로드하여 내장 기본값 위에 병합한다.

        프로젝트 루트 기준 config/default.yaml을 기본 경로로 사용한다.
        환경변수 KEXWATCH_CONFIG로 경로를 오버라이드할 수 있다.
        .env 파일이 존재하면 자동으로 로드하여 환경변수를 설정한다.
        명시적으로 지정한 파일이 없으면 FileNotFoundError, 기본 경로에
        파일이 없으면 내장 기본값을 사용한다.
        """
        load_dotenv()

        if config_path is None:
            config_path = os.environ.get("KEXWATCH_CONFIG")
        if config_path is None:
            project_root = Path(__file__).resolve().parent.parent.parent
            default_path = project_root / "config" / "default.yaml"
            if not default_path.exists():
                return cls.defaults()
            config_path = default_path

        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if isinstance(data, dict) and "kexwatch" in data:
            data = data["kexwatch"]
        inner = _deep_merge(copy.deepcopy(DEFAULTS), _normalize_sections(data, config_path))
        _apply_env_overrides(inner)

        return cls(inner, config_path=config_path)

    def get(self, dotted_key: str, default: Any = None) -> Any:
        """점 표기법으로 값을 조회한다: 'scan.timeout' -> config['scan']['timeout']."""
        keys = dotted_key.split(".")
        current = self._data
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    def section(self, key: str) -> dict[str, Any]:
        """주어진 최상위 키에 대한 하위 dict를 반환한다."""
        return self._data.get(key) or {}

    @property
    def raw(self) -> dict[str, Any]:
        """설정 데이터의 원본 dict를 반환한다."""
        return self._data
