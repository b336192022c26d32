"""
설정 관리 모듈
YAML/JSON 기반 설정 파일 관리 및 기본값 제공
"""

import os
import yaml
import json
from typing import Dict, Any, Optional
from dataclasses import dataclass, asdict


@dataclass
class OperatorSettings:
    """kopf 핸들러 재시도 설정"""
    namespace: Optional[str] = None  # None 이면 전체 네임스페이스
    requeue_delay: float = 1.0
    backoff_base: float = 1.0
    backoff_max: float = 300.0


@dataclass
class WireguardSettings:
    """Wireguard 워크로드 설정"""
    image: str = "linuxserver/wireguard:1.0.20210914"
    dns_image: str = "docker.io/klutchell/unbound:v1.17.1"
    port: int = 51820
    default_dns: str = "1.1.1.1"


@dataclass
class KubeSettings:
    """Kubernetes API 접속 설정"""
    kubeconfig: Optional[str] = None
    in_cluster: bool = False


@dataclass
class LoggingSettings:
    """로깅 설정"""
    log_dir: Optional[str] = None
    log_level: str = "INFO"


class Config:
    """전체 설정 관리 클래스"""

    DEFAULT_CONFIG_PATHS = [
        "/etc/wireguard-operator/config.yaml",
        "~/.wireguard-operator/config.yaml",
        "./config.yaml",
    ]

    SECTIONS = ("operator", "wireguard", "kube", "logging")

    def __init__(self, config_path: Optional[str] = None, use_defaults: bool = True):
        self.config_path = config_path
        self.operator = OperatorSettings()
        self.wireguard = WireguardSettings()
        self.kube = KubeSettings()
        self.logging = LoggingSettings()

        if config_path:
            self.load(config_path)
        elif use_defaults:
            self._load_from_default_paths()

    def _load_from_default_paths(self):
        """기본 경로에서 설정 파일 로드"""
        for path in self.DEFAULT_CONFIG_PATHS:
            expanded_path = os.path.expanduser(path)
            if os.path.exists(expanded_path):
                self.load(expanded_path)
                return

    def load(self, path: str):
        """설정 파일 로드"""
        path = os.path.expanduser(path)
        if not os.path.exists(path):
            return

        with open(path, 'r', encoding='utf-8') as f:
            if path.endswith('.json'):
                data = json.load(f)
            else:
                data = yaml.safe_load(f) or {}

        self._update_from_dict(data)
        self.config_path = path

    def _update_from_dict(self, data: Dict[str, Any]):
        """딕셔너리에서 설정 업데이트 (알 수 없는 키는 무시)"""
        for section in self.SECTIONS:
            values = data.get(section) or {}
            target = getattr(self, section)
            for key, value in values.items():
                if hasattr(target, key):
                    setattr(target, key, value)

    def save(self, path: Optional[str] = None):
        """설정 파일 저장"""
        save_path = path or self.config_path or self.DEFAULT_CONFIG_PATHS[0]
        save_path = os.path.expanduser(save_path)

        directory = os.path.dirname(save_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(save_path, 'w', encoding='utf-8') as f:
            if save_path.endswith('.json'):
                json.dump(self.to_dict(), f, indent=2)
            else:
                yaml.dump(self.to_dict(), f, default_flow_style=False, allow_unicode=True)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리로 변환"""
        return {section: asdict(getattr(self, section)) for section in self.SECTIONS}

    def create_sample(self, output_path: str):
        """샘플 설정 파일 생성"""
        template = """# Wireguard Operator Configuration File

# 재시도 설정
operator:
  namespace: null        # null 이면 전체 네임스페이스 감시
  requeue_delay: 1       # 변경 후 재실행 지연 (초)
  backoff_base: 1        # 오류 시 백오프 시작값 (초)
  backoff_max: 300       # 백오프 최대값 (초)

# Wireguard 워크로드 설정
wireguard:
  image: "linuxserver/wireguard:1.0.20210914"
  dns_image: "docker.io/klutchell/unbound:v1.17.1"
  port: 51820
  default_dns: "1.1.1.1"

# Kubernetes API 접속
kube:
  kubeconfig: null       # null 이면 기본 kubeconfig
  in_cluster: false      # 파드 내부 실행 시 true

# 로깅 설정
logging:
  log_dir: null          # 예: /var/log/wireguard-operator
  log_level: "INFO"      # DEBUG, INFO, WARNING, ERROR
"""

        directory = os.path.dirname(output_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template)
