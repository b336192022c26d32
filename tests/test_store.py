"""
인메모리 오브젝트 스토어 테스트
"""

import pytest
from wireguard_operator.errors import ConflictError, NotFoundError, UnsupportedConfigurationError
from wireguard_operator.factory import owner_reference
from wireguard_operator.store import ArtifactKind


def test_artifact_kind_of():
    """apiVersion/kind 판별 테스트"""
    assert ArtifactKind.of({"apiVersion": "apps/v1", "kind": "Deployment"}) is ArtifactKind.DEPLOYMENT
    assert ArtifactKind.of(ArtifactKind.PEER.shell("a", "b")) is ArtifactKind.PEER
    with pytest.raises(UnsupportedConfigurationError):
        ArtifactKind.of({"apiVersion": "v1", "kind": "Pod"})


def test_create_and_get(store):
    """생성 및 조회 테스트"""
    created = store.create(ArtifactKind.CONFIG_MAP.shell("cm", "default"))
    assert created["metadata"]["uid"]
    assert created["metadata"]["resourceVersion"]

    assert store.get(ArtifactKind.CONFIG_MAP, "default", "cm") == created
    with pytest.raises(NotFoundError):
        store.get(ArtifactKind.CONFIG_MAP, "other", "cm")
    with pytest.raises(ConflictError):
        store.create(ArtifactKind.CONFIG_MAP.shell("cm", "default"))


def test_list_by_namespace(store):
    """네임스페이스별 목록 테스트"""
    store.create(ArtifactKind.SECRET.shell("b", "ns1"))
    store.create(ArtifactKind.SECRET.shell("a", "ns1"))
    store.create(ArtifactKind.SECRET.shell("c", "ns2"))

    assert [obj["metadata"]["name"] for obj in store.list(ArtifactKind.SECRET, "ns1")] == ["a", "b"]
    assert len(store.list(ArtifactKind.SECRET)) == 3
    assert store.list(ArtifactKind.CONFIG_MAP) == []


def test_stale_update_conflict(store):
    """오래된 resourceVersion 충돌 테스트"""
    created = store.create(ArtifactKind.CONFIG_MAP.shell("cm", "default"))
    created["data"] = {"a": "1"}
    store.update(created)

    created["data"] = {"a": "2"}
    with pytest.raises(ConflictError):
        store.update(created)


def test_update_keeps_status(store):
    """update 는 status 를 바꾸지 않음 테스트"""
    created = store.create(ArtifactKind.GATEWAY.shell("vpn", "default"))
    created["status"] = {"publicKey": "PUB"}
    created = store.update_status(created)

    created["spec"] = {"replicas": 2}
    created["status"] = {"publicKey": "OTHER"}
    updated = store.update(created)
    assert updated["status"] == {"publicKey": "PUB"}
    assert updated["spec"] == {"replicas": 2}


def test_service_cluster_ip(store):
    """Service ClusterIP 할당 및 유지 테스트"""
    service = store.create(ArtifactKind.SERVICE.shell("vpn", "default"))
    assert service["spec"]["clusterIP"] == "10.96.0.2"

    service["spec"] = {"type": "ClusterIP"}
    assert store.update(service)["spec"]["clusterIP"] == "10.96.0.2"
    assert store.create(ArtifactKind.SERVICE.shell("other", "default"))["spec"]["clusterIP"] == "10.96.0.3"


def test_cascading_delete(store):
    """ownerReferences 연쇄 삭제 테스트"""
    owner = store.create(ArtifactKind.GATEWAY.shell("vpn", "default"))
    dependent = ArtifactKind.SECRET.shell("vpn", "default")
    dependent["metadata"]["ownerReferences"] = [
        owner_reference(ArtifactKind.GATEWAY, "vpn", owner["metadata"]["uid"])
    ]
    store.create(dependent)
    store.create(ArtifactKind.SECRET.shell("unrelated", "default"))

    store.delete(ArtifactKind.GATEWAY, "default", "vpn")
    with pytest.raises(NotFoundError):
        store.get(ArtifactKind.SECRET, "default", "vpn")
    assert store.get(ArtifactKind.SECRET, "default", "unrelated")
    assert ("delete", "Secret", "default", "vpn") in store.writes
