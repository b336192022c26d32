"""
설정 관리 모듈 테스트
"""

import json
import os
import tempfile
import pytest
from wireguard_operator.config import Config


def test_default_config():
    """기본 설정 테스트"""
    config = Config(use_defaults=False)
    assert config.operator.namespace is None
    assert config.operator.requeue_delay == 1.0
    assert config.wireguard.port == 51820
    assert config.wireguard.default_dns == "1.1.1.1"
    assert config.kube.in_cluster == False
    assert config.logging.log_dir is None


def test_config_load_yaml():
    """YAML 설정 파일 로드 테스트"""
    yaml_content = """
operator:
  namespace: "vpn"
  backoff_max: 60

wireguard:
  port: 51821
  image: "example/wireguard:test"

kube:
  in_cluster: true
"""

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        f.write(yaml_content)
        temp_path = f.name

    try:
        config = Config(temp_path)
        assert config.operator.namespace == "vpn"
        assert config.operator.backoff_max == 60
        assert config.wireguard.port == 51821
        assert config.wireguard.image == "example/wireguard:test"
        assert config.kube.in_cluster == True
        # 지정하지 않은 값은 기본값 유지
        assert config.wireguard.default_dns == "1.1.1.1"
    finally:
        os.unlink(temp_path)


def test_config_load_json(tmp_path):
    """JSON 설정 파일 로드 테스트"""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"logging": {"log_level": "DEBUG"}}))

    config = Config(str(path))
    assert config.logging.log_level == "DEBUG"


def test_config_ignores_unknown_keys(tmp_path):
    """알 수 없는 섹션/키 무시 테스트"""
    path = tmp_path / "config.yaml"
    path.write_text("wireguard:\n  unknown_key: 1\n  port: 4000\nextra:\n  foo: bar\n")

    config = Config(str(path))
    assert config.wireguard.port == 4000
    assert not hasattr(config.wireguard, "unknown_key")


def test_config_save():
    """설정 저장 테스트"""
    config = Config(use_defaults=False)
    config.operator.namespace = "tunnel"

    with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
        temp_path = f.name

    try:
        config.save(temp_path)

        # 저장된 파일 다시 로드
        config2 = Config(temp_path)
        assert config2.operator.namespace == "tunnel"
    finally:
        os.unlink(temp_path)


def test_config_to_dict():
    """딕셔너리 변환 테스트"""
    config = Config(use_defaults=False)
    data = config.to_dict()

    assert set(data) == {"operator", "wireguard", "kube", "logging"}
    assert data["wireguard"]["port"] == 51820


def test_create_sample_is_loadable(tmp_path):
    """샘플 설정 파일이 그대로 로드되는지 테스트"""
    path = tmp_path / "sample" / "config.yaml"
    Config(use_defaults=False).create_sample(str(path))

    config = Config(str(path))
    assert config.operator.backoff_max == 300
    assert config.wireguard.dns_image.startswith("docker.io/klutchell/unbound")
