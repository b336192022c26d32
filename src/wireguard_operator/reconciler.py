"""
Wireguard / WireguardPeer 리컨실러

한 번의 실행(pass)은 하위 오브젝트를 정해진 순서로 apply 하고, 처음으로
변경이 일어난 지점에서 재실행을 요청하며 끝난다. 상태는 저장하지 않고
매번 스펙과 클러스터 오브젝트로부터 다시 계산한다.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .apply import ApplyEngine
from .config import WireguardSettings
from .endpoint import resolve_endpoint
from .errors import NotFoundError, NotReadyError, OperatorError, UnsupportedConfigurationError
from .factory import CONFIG_FIELD, GatewayFactory, PeerFactory
from .keys import KeyManager, KeyPair, secret_value
from .logger import get_logger
from .models import Gateway, Peer
from .render import config_hash
from .store import ArtifactKind, ObjectStore, object_key


# 외부 의존 리소스(부모 게이트웨이, 로드밸런서 주소)를 기다리는 주기 (초)
DEPENDENCY_POLL_INTERVAL = 10.0


@dataclass
class Result:
    """
    리컨실 결과

    requeue: 이번 pass 에서 오브젝트를 바꿨으니 곧 다시 실행
    requeue_after: 외부 의존 리소스를 기다리는 중. 지정한 시간 뒤 다시 실행
    """
    requeue: bool = False
    requeue_after: Optional[float] = None

    @property
    def finished(self) -> bool:
        return not self.requeue and self.requeue_after is None


DONE = Result()
REQUEUE = Result(requeue=True)
WAIT = Result(requeue_after=DEPENDENCY_POLL_INTERVAL)


class _Reconciler:
    kind: ArtifactKind

    def __init__(self, store: ObjectStore, keys: Optional[KeyManager] = None,
                 settings: Optional[WireguardSettings] = None):
        self.store = store
        self.keys = keys or KeyManager(store)
        self.settings = settings or WireguardSettings()
        self.engine = ApplyEngine(store)
        self.logger = get_logger()

    def _fetch(self, namespace: str, name: str) -> Optional[Dict[str, Any]]:
        try:
            return self.store.get(self.kind, namespace, name)
        except NotFoundError:
            return None

    def _apply_in_order(self, prefix: str, artifacts: List[Tuple[str, Dict[str, Any]]]) -> bool:
        """첫 번째로 변경된 오브젝트에서 멈춘다. 변경이 있었으면 True"""
        for label, desired in artifacts:
            if self.engine.apply(desired):
                self.logger.info(f"{prefix} {label} applied, requeueing")
                return True
            self.logger.debug(f"{prefix} {label} is up to date")
        return False

    def _write_status(self, prefix: str, namespace: str, name: str, status: Dict[str, Any]) -> Result:
        """최신 오브젝트를 다시 읽고 status 가 다를 때만 갱신"""
        current = self._fetch(namespace, name)
        if current is None:
            self.logger.info(f"{prefix} deleted before status update")
            return DONE

        merged = dict(current.get("status") or {})
        merged.update(status)
        if merged == (current.get("status") or {}):
            self.logger.debug(f"{prefix} status is up to date")
            return DONE

        current["status"] = merged
        self.store.update_status(current)
        self.logger.info(f"{prefix} status updated")
        return DONE


class GatewayReconciler(_Reconciler):
    """Wireguard 게이트웨이 리컨실러"""

    kind = ArtifactKind.GATEWAY

    def list_peers(self, gateway: Gateway) -> List[Peer]:
        """같은 네임스페이스에서 이 게이트웨이를 참조하는 피어 목록"""
        peers = []
        for obj in self.store.list(ArtifactKind.PEER, gateway.namespace):
            try:
                peer = Peer.from_dict(obj)
            except ValueError as e:
                self.logger.warning(f"Skipping invalid peer {obj['metadata'].get('name')}: {e}")
                continue
            if peer.spec.wireguard_ref == gateway.name:
                peers.append(peer)
        return peers

    def reconcile(self, namespace: str, name: str) -> Result:
        prefix = f"[wireguard {namespace}/{name}]"

        obj = self._fetch(namespace, name)
        if obj is None:
            self.logger.info(f"{prefix} must have been deleted, reconciliation is finished")
            return DONE
        try:
            gateway = Gateway.from_dict(obj)
        except ValueError as e:
            raise UnsupportedConfigurationError(f"{prefix} invalid spec: {e}") from e

        peers = self.list_peers(gateway)
        self.logger.debug(f"{prefix} {len(peers)} peer(s) reference this gateway")

        keypair = self.keys.resolve(namespace, name, gateway.uid)
        factory = GatewayFactory(gateway, peers, self.settings)

        secret = factory.secret(keypair)
        fingerprint = config_hash(secret_value(secret, CONFIG_FIELD))
        artifacts = [
            ("Service", factory.service()),
            ("ConfigMap", factory.config_map()),
            ("Secret", secret),
            ("Deployment", factory.deployment(fingerprint)),
        ]
        if self._apply_in_order(prefix, artifacts):
            return REQUEUE

        service = self.store.get(ArtifactKind.SERVICE, namespace, name)
        try:
            endpoint = resolve_endpoint(gateway.spec, service, self.settings.port)
        except NotReadyError as e:
            self.logger.info(f"{prefix} endpoint not ready yet: {e}")
            return WAIT

        return self._write_status(prefix, namespace, name, {
            "publicKey": keypair.public_key,
            "endpoint": endpoint,
        })


class PeerReconciler(_Reconciler):
    """WireguardPeer 리컨실러"""

    kind = ArtifactKind.PEER

    def reconcile(self, namespace: str, name: str) -> Result:
        prefix = f"[peer {namespace}/{name}]"

        obj = self._fetch(namespace, name)
        if obj is None:
            self.logger.info(f"{prefix} must have been deleted, reconciliation is finished")
            return DONE
        try:
            peer = Peer.from_dict(obj)
        except ValueError as e:
            raise UnsupportedConfigurationError(f"{prefix} invalid spec: {e}") from e

        try:
            gateway_obj = self.store.get(ArtifactKind.GATEWAY, namespace, peer.spec.wireguard_ref)
        except NotFoundError:
            self.logger.info(f"{prefix} parent wireguard {peer.spec.wireguard_ref} not found yet")
            return WAIT
        try:
            gateway = Gateway.from_dict(gateway_obj)
        except ValueError as e:
            # 부모 스펙 오류는 부모 쪽에서 보고된다. 고쳐질 때까지 대기
            self.logger.warning(f"{prefix} parent wireguard {peer.spec.wireguard_ref} has an invalid spec: {e}")
            return WAIT
        if not gateway.status.populated:
            self.logger.info(f"{prefix} wireguard {gateway.name} is not yet reconciled")
            return WAIT

        if peer.spec.public_key is not None:
            keypair = KeyPair(private_key="", public_key=peer.spec.public_key)
        else:
            keypair = self.keys.resolve(namespace, name, peer.uid)

        factory = PeerFactory(peer, gateway, self.settings)
        if self._apply_in_order(prefix, [("Secret", factory.secret(keypair))]):
            return REQUEUE

        return self._write_status(prefix, namespace, name, {"publicKey": keypair.public_key})


def converge(reconciler: _Reconciler, namespace: str, name: str, max_passes: int = 20) -> Optional[int]:
    """
    변경이 멈출 때까지 반복 실행 (CLI / 이벤트 핸들러용)

    외부 의존 리소스를 기다리는 결과(requeue_after)가 나오면 더 돌지 않는다.

    Returns:
        수렴까지 걸린 pass 수. 의존 리소스 대기 중이거나 max_passes 안에 끝나지 않으면 None
    """
    for passes in range(1, max_passes + 1):
        result = reconciler.reconcile(namespace, name)
        if result.finished:
            return passes
        if result.requeue_after is not None:
            return None
    return None


def converge_all(store: ObjectStore, gateways: GatewayReconciler, peers: PeerReconciler,
                 namespace: Optional[str] = None, max_passes: int = 20) -> bool:
    """
    네임스페이스(None 이면 전체)의 모든 게이트웨이와 피어를 수렴

    게이트웨이 -> 피어 -> 게이트웨이 순서로 돌아 피어 공개키가 게이트웨이 설정에 반영되게 한다.

    Returns:
        bool: 모두 수렴했으면 True
    """
    outcome: Dict[Tuple[ArtifactKind, str, str], bool] = {}
    for reconciler, kind in ((gateways, ArtifactKind.GATEWAY), (peers, ArtifactKind.PEER),
                             (gateways, ArtifactKind.GATEWAY)):
        for obj in store.list(kind, namespace):
            ns, name = object_key(obj)
            try:
                done = converge(reconciler, ns, name, max_passes) is not None
            except OperatorError as e:
                reconciler.logger.warning(f"{kind.kind} {ns}/{name} did not converge: {e}")
                done = False
            # 마지막으로 돈 결과만 남긴다
            outcome[(kind, ns, name)] = done
    return all(outcome.values())
