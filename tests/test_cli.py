"""
CLI 테스트
"""

import pytest
from click.testing import CliRunner

from wireguard_operator import cli as cli_module
from wireguard_operator.cli import cli
from wireguard_operator.config import Config
from wireguard_operator.store import ArtifactKind


@pytest.fixture
def runner(store, monkeypatch):
    monkeypatch.setattr(cli_module, "_make_store", lambda cfg: store)
    return CliRunner()


def test_init_config(runner, tmp_path):
    """샘플 설정 파일 생성 명령 테스트"""
    path = tmp_path / "config.yaml"
    result = runner.invoke(cli, ["init-config", str(path)])

    assert result.exit_code == 0
    assert path.exists()
    assert Config(str(path)).wireguard.port == 51820


def test_validate(runner, tmp_path):
    """설정 검증 명령 테스트"""
    path = tmp_path / "config.yaml"
    path.write_text("operator:\n  namespace: vpn\n")

    result = runner.invoke(cli, ["validate", "--config", str(path)])
    assert result.exit_code == 0
    assert "vpn" in result.output
    assert "재실행 지연" in result.output


def test_reconcile_and_peer_config(runner, store, add_gateway, add_peer):
    """reconcile 후 피어 설정 출력 테스트"""
    add_gateway()
    add_peer("alice")

    result = runner.invoke(cli, ["reconcile", "wireguard", "vpn"])
    assert result.exit_code == 0, result.output
    result = runner.invoke(cli, ["reconcile", "peer", "alice", "-n", "default"])
    assert result.exit_code == 0, result.output

    result = runner.invoke(cli, ["peer-config", "alice"])
    assert result.exit_code == 0
    assert "[Interface]" in result.output
    assert "Endpoint = 10.96.0.2:51820" in result.output


def test_reconcile_all(runner, store, add_gateway, add_peer):
    """전체 리컨실 명령 테스트"""
    add_gateway()
    add_peer("alice")

    result = runner.invoke(cli, ["reconcile", "all"])
    assert result.exit_code == 0, result.output
    assert store.get(ArtifactKind.PEER, "default", "alice")["status"]["publicKey"]


def test_reconcile_requires_name(runner):
    """리소스 이름 누락 테스트"""
    result = runner.invoke(cli, ["reconcile", "wireguard"])
    assert result.exit_code == 2


def test_reconcile_terminal_error(runner, add_gateway):
    """지원하지 않는 설정은 실패 코드 반환 테스트"""
    add_gateway(serviceType="NodePort")
    result = runner.invoke(cli, ["reconcile", "wireguard", "vpn"])
    assert result.exit_code == 1


def test_status(runner, add_gateway, add_peer):
    """상태 표시 명령 테스트"""
    add_gateway()
    add_peer("alice")

    result = runner.invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "default/vpn" in result.output
    assert "default/alice" in result.output


def test_peer_config_missing_secret(runner):
    """Secret 이 없는 피어 테스트"""
    result = runner.invoke(cli, ["peer-config", "nobody"])
    assert result.exit_code == 1


def test_reconcile_all_reports_failure(runner, store, add_gateway, add_peer):
    """수렴하지 못한 리소스가 있으면 실패 코드 반환 테스트"""
    add_gateway(address="bogus")
    add_peer("alice")

    result = runner.invoke(cli, ["reconcile", "all"])
    assert result.exit_code == 1
    assert "publicKey" not in (store.get(ArtifactKind.PEER, "default", "alice").get("status") or {})


def test_run_starts_kopf(runner, store, tmp_path, monkeypatch):
    """run 명령이 설정된 네임스페이스로 kopf 를 실행 테스트"""
    calls = []
    monkeypatch.setattr(cli_module.kopf, "run", lambda **kwargs: calls.append(kwargs))
    path = tmp_path / "config.yaml"
    path.write_text("operator:\n  namespace: vpn\n")

    result = runner.invoke(cli, ["run", "--config", str(path)])
    assert result.exit_code == 0, result.output
    assert len(calls) == 1
    assert calls[0]["namespaces"] == ["vpn"]
    assert calls[0]["clusterwide"] is False
    assert calls[0]["memo"].store is store
