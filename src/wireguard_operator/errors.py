"""
오퍼레이터 예외 정의
"""


class OperatorError(Exception):
    """오퍼레이터 기본 예외"""


class StoreError(OperatorError):
    """오브젝트 스토어 읽기/쓰기 실패 (일시적, 재시도 대상)"""


class NotFoundError(StoreError):
    """오브젝트가 존재하지 않음"""

    def __init__(self, kind: str, namespace: str, name: str):
        super().__init__(f"{kind} {namespace}/{name} not found")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class ConflictError(StoreError):
    """resourceVersion 충돌 또는 이미 존재하는 오브젝트"""


class NotReadyError(OperatorError):
    """의존 리소스가 아직 준비되지 않음 (오류 아님, 곧 재시도)"""


class KeyGenerationError(OperatorError):
    """키 쌍 생성 실패"""


class TerminalError(OperatorError):
    """운영자 개입 없이는 수렴할 수 없는 설정"""


class UnsupportedConfigurationError(TerminalError):
    """지원하지 않는 설정 (예: 서비스 타입)"""
