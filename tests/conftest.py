"""
공용 테스트 픽스처
클러스터 대신 InMemoryStore 를 사용
"""

import base64
import pytest

from wireguard_operator.keys import KeyManager, KeyPair
from wireguard_operator.store import ArtifactKind, InMemoryStore


class SequentialKeys:
    """결정적인 키 쌍 생성기 (호출마다 다른 키)"""

    def __init__(self):
        self.count = 0

    def __call__(self) -> KeyPair:
        self.count += 1
        return KeyPair(
            private_key=base64.b64encode(bytes([self.count]) * 32).decode("ascii"),
            public_key=base64.b64encode(bytes([self.count + 100]) * 32).decode("ascii"),
        )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def keygen():
    return SequentialKeys()


@pytest.fixture
def keys(store, keygen):
    return KeyManager(store, keygen)


@pytest.fixture
def add_gateway(store):
    """Wireguard 리소스 생성 함수"""
    def _add(name="vpn", namespace="default", **spec):
        obj = ArtifactKind.GATEWAY.shell(name, namespace)
        obj["spec"] = spec
        return store.create(obj)
    return _add


@pytest.fixture
def add_peer(store):
    """WireguardPeer 리소스 생성 함수"""
    def _add(name, wireguard_ref="vpn", namespace="default", **spec):
        obj = ArtifactKind.PEER.shell(name, namespace)
        obj["spec"] = dict(spec, wireguardRef=wireguard_ref)
        return store.create(obj)
    return _add
