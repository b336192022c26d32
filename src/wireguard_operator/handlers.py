"""
kopf 핸들러
Wireguard / WireguardPeer 이벤트를 리컨실러에 연결한다.

- create/update/resume: 한 pass 실행. 결과는 kopf 재시도 규칙으로 변환
  (변경 -> TemporaryError(requeue_delay), 의존 리소스 대기 -> TemporaryError(requeue_after),
  일시적 오류 -> TemporaryError(지수 백오프), 설정 오류 -> PermanentError)
- 피어 이벤트: 참조하는 게이트웨이를 다시 수렴 (피어 삭제 포함)
- 오퍼레이터가 만든 오브젝트 이벤트: 오너를 다시 수렴 (삭제/수동 변경 복구)
- timer: 주기적 재동기화
"""

import logging
from typing import Any, Dict, Optional

import kopf

from .config import Config, OperatorSettings
from .errors import OperatorError, TerminalError
from .keys import KeyManager
from .logger import get_logger
from .models import API_GROUP, GATEWAY_KIND, GROUP_VERSION, PEER_KIND
from .reconciler import GatewayReconciler, PeerReconciler, converge
from .store import ObjectStore

RESYNC_INTERVAL = 60.0
MANAGED_BY = {"app.kubernetes.io/managed-by": "wireguard-operator"}


def build_memo(store: ObjectStore, config: Optional[Config] = None,
               keys: Optional[KeyManager] = None) -> kopf.Memo:
    """핸들러가 공유하는 스토어와 리컨실러"""
    config = config or Config(use_defaults=False)
    keys = keys or KeyManager(store)
    return kopf.Memo(
        store=store,
        settings=config.operator,
        gateways=GatewayReconciler(store, keys, config.wireguard),
        peers=PeerReconciler(store, keys, config.wireguard),
    )


def backoff_delay(settings: OperatorSettings, retry: int) -> float:
    return min(settings.backoff_base * (2 ** retry), settings.backoff_max)


def drive(reconciler, namespace: str, name: str, memo: kopf.Memo, retry: int = 0):
    """한 pass 실행 후 결과를 kopf 재시도 규칙으로 변환"""
    settings = memo.settings
    try:
        result = reconciler.reconcile(namespace, name)
    except TerminalError as e:
        raise kopf.PermanentError(str(e)) from e
    except OperatorError as e:
        delay = backoff_delay(settings, retry)
        get_logger().warning(f"{namespace}/{name} reconciliation failed, retrying in {delay:.1f}s: {e}")
        raise kopf.TemporaryError(str(e), delay=delay) from e

    if result.requeue_after is not None:
        raise kopf.TemporaryError("waiting for dependencies", delay=result.requeue_after)
    if result.requeue:
        raise kopf.TemporaryError("objects changed, requeueing", delay=settings.requeue_delay)


def resync(reconciler, namespace: str, name: str):
    """이벤트/타이머용: 재시도 없이 수렴시키고 오류는 로그만 남긴다"""
    logger = get_logger()
    try:
        if converge(reconciler, namespace, name) is None:
            logger.debug(f"{namespace}/{name} is waiting for dependencies")
    except TerminalError as e:
        logger.debug(f"{namespace}/{name} cannot converge until its spec changes: {e}")
    except OperatorError as e:
        logger.warning(f"{namespace}/{name} resync failed: {e}")


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """kopf 설정"""
    # 리컨실 pass 는 한 번에 하나만 실행
    settings.execution.max_workers = 1
    settings.posting.level = logging.WARNING
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(prefix=API_GROUP)
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=API_GROUP, key="last-handled-configuration",
    )


@kopf.on.create(GROUP_VERSION, GATEWAY_KIND)
@kopf.on.update(GROUP_VERSION, GATEWAY_KIND)
@kopf.on.resume(GROUP_VERSION, GATEWAY_KIND)
def reconcile_gateway(meta: Dict[str, Any], memo: kopf.Memo, retry: int = 0, **_: Any) -> None:
    drive(memo.gateways, meta.get("namespace", "default"), meta["name"], memo, retry)


@kopf.on.create(GROUP_VERSION, PEER_KIND)
@kopf.on.update(GROUP_VERSION, PEER_KIND)
@kopf.on.resume(GROUP_VERSION, PEER_KIND)
def reconcile_peer(meta: Dict[str, Any], memo: kopf.Memo, retry: int = 0, **_: Any) -> None:
    drive(memo.peers, meta.get("namespace", "default"), meta["name"], memo, retry)


@kopf.on.event(GROUP_VERSION, PEER_KIND)
def peer_changed(spec: Dict[str, Any], meta: Dict[str, Any], memo: kopf.Memo, **_: Any) -> None:
    """피어 변경/삭제 시 참조하는 게이트웨이 설정 갱신"""
    ref = (spec or {}).get("wireguardRef")
    if ref:
        resync(memo.gateways, meta.get("namespace", "default"), ref)


@kopf.on.event("services", labels=MANAGED_BY)
@kopf.on.event("configmaps", labels=MANAGED_BY)
@kopf.on.event("secrets", labels=MANAGED_BY)
@kopf.on.event("deployments", labels=MANAGED_BY)
def owned_object_changed(meta: Dict[str, Any], memo: kopf.Memo, **_: Any) -> None:
    """오퍼레이터가 만든 오브젝트가 바뀌거나 삭제되면 오너를 다시 수렴"""
    namespace = meta.get("namespace", "default")
    for ref in meta.get("ownerReferences") or []:
        if ref.get("kind") == GATEWAY_KIND:
            resync(memo.gateways, namespace, ref["name"])
        elif ref.get("kind") == PEER_KIND:
            resync(memo.peers, namespace, ref["name"])


@kopf.timer(GROUP_VERSION, GATEWAY_KIND, interval=RESYNC_INTERVAL, initial_delay=RESYNC_INTERVAL)
def resync_gateway(meta: Dict[str, Any], memo: kopf.Memo, **_: Any) -> None:
    resync(memo.gateways, meta.get("namespace", "default"), meta["name"])


@kopf.timer(GROUP_VERSION, PEER_KIND, interval=RESYNC_INTERVAL, initial_delay=RESYNC_INTERVAL)
def resync_peer(meta: Dict[str, Any], memo: kopf.Memo, **_: Any) -> None:
    resync(memo.peers, meta.get("namespace", "default"), meta["name"])
