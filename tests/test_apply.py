"""
apply 엔진 테스트
"""

import pytest
from wireguard_operator.apply import ApplyEngine, LAST_APPLIED_ANNOTATION, diff, set_last_applied
from wireguard_operator.errors import UnsupportedConfigurationError
from wireguard_operator.store import ArtifactKind


def _config_map(data):
    obj = ArtifactKind.CONFIG_MAP.shell("cm", "default")
    obj["data"] = data
    return set_last_applied(obj)


def test_apply_create_then_noop(store):
    """생성 후 재적용 시 쓰기 없음 테스트"""
    engine = ApplyEngine(store)
    assert engine.apply(_config_map({"a": "1"})) is True
    assert engine.apply(_config_map({"a": "1"})) is False
    assert [op for op, *_ in store.writes] == ["create"]


def test_apply_update(store):
    """내용 변경 시 갱신 테스트"""
    engine = ApplyEngine(store)
    engine.apply(_config_map({"a": "1"}))
    assert engine.apply(_config_map({"a": "2"})) is True
    assert store.get(ArtifactKind.CONFIG_MAP, "default", "cm")["data"] == {"a": "2"}


def test_apply_detects_removed_field(store):
    """필드 삭제 감지 테스트"""
    engine = ApplyEngine(store)
    engine.apply(_config_map({"a": "1", "b": "2"}))
    assert engine.apply(_config_map({"a": "1"})) is True
    assert store.get(ArtifactKind.CONFIG_MAP, "default", "cm")["data"] == {"a": "1"}


def test_diff_ignores_server_defaults():
    """서버가 채운 필드 무시 테스트"""
    desired = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": "vpn"},
        "spec": {"type": "ClusterIP", "ports": [{"port": 51820, "protocol": "UDP"}]},
    }
    current = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": "vpn", "resourceVersion": "10", "uid": "x"},
        "spec": {
            "type": "ClusterIP",
            "clusterIP": "10.96.0.2",
            "sessionAffinity": "None",
            "ports": [{"port": 51820, "protocol": "UDP", "targetPort": 51820}],
        },
        "status": {"loadBalancer": {}},
    }
    assert diff(current, desired) == []


def test_diff_reports_paths():
    """변경 경로 보고 테스트"""
    current = {"spec": {"replicas": 1, "ports": [1, 2]}}
    desired = {"spec": {"replicas": 2, "ports": [1], "extra": True}}
    assert diff(current, desired) == ["/spec/replicas", "/spec/ports", "/spec/extra"]

    current = set_last_applied({"metadata": {}, "data": {"a": "1", "b": "2"}})
    desired = set_last_applied({"metadata": {}, "data": {"a": "1"}})
    assert diff(current, desired) == [f"/metadata/annotations/{LAST_APPLIED_ANNOTATION}"]


def test_apply_refuses_foreign_owner(store):
    """다른 오너가 관리하는 오브젝트는 덮어쓰지 않음 테스트"""
    def owned(uid, data):
        obj = _config_map(data)
        obj["metadata"]["ownerReferences"] = [{"kind": "Wireguard", "name": "cm", "uid": uid, "controller": True}]
        return obj

    engine = ApplyEngine(store)
    engine.apply(owned("first", {"a": "1"}))
    before = list(store.writes)

    with pytest.raises(UnsupportedConfigurationError):
        engine.apply(owned("second", {"a": "2"}))
    assert store.writes == before
    assert store.get(ArtifactKind.CONFIG_MAP, "default", "cm")["data"] == {"a": "1"}
