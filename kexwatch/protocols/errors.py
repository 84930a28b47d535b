"""SSH 핸드셰이크 스캔 중 발생하는 예외 계층."""

from __future__ import annotations


class ProtocolError(ValueError):
    """상대방이 보낸 데이터가 SSH 와이어 포맷을 따르지 않음."""


class OversizedPacketError(ProtocolError):
    """선언된 패킷 길이가 허용 상한을 초과함."""


class TruncatedError(ProtocolError):
    """필드를 끝까지 읽기 전에 스트림 또는 버퍼가 끝남."""


class MalformedPacketError(ProtocolError):
    """길이 필드 간의 산술이 일관되지 않음 (예: 패딩 길이 >= 패킷 길이)."""


class NameListEncodingError(ProtocolError):
    """name-list 본문이 유효한 텍스트가 아님."""


class UnexpectedMessageTypeError(ProtocolError):
    """KEXINIT이 아닌 메시지를 KEXINIT으로 디코딩하려 함."""


class BannerNotFoundError(ProtocolError):
    """허용된 줄 수 안에 SSH 식별 배너가 나타나지 않음."""


class KexInitNotFoundError(ProtocolError):
    """허용된 패킷 수 안에 KEXINIT이 나타나지 않음."""


class ScanIOError(OSError):
    """소켓 수준의 I/O 실패. 원인 예외는 __cause__에 연결된다."""


class ConnectionFailedError(ScanIOError):
    pass


class BindFailedError(ScanIOError):
    pass


class AcceptFailedError(ScanIOError):
    pass


class ReadFailedError(ScanIOError):
    pass


class WriteFailedError(ScanIOError):
    pass

