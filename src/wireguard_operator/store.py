"""
오브젝트 스토어 인터페이스 및 인메모리 구현

모든 오브젝트는 Kubernetes JSON 형태의 dict 로 다룬다.
인메모리 스토어는 테스트와 드라이런 용도이며 다음 플랫폼 동작을 흉내낸다:
- resourceVersion 기반 낙관적 동시성
- status 서브리소스 (update 는 status 를 보존, update_status 는 status 만 변경)
- Service ClusterIP 할당
- ownerReferences 를 따라가는 연쇄 삭제
"""

import copy
import ipaddress
import itertools
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Any, Tuple

from .errors import ConflictError, NotFoundError, UnsupportedConfigurationError
from .models import GROUP_VERSION, GATEWAY_KIND, PEER_KIND


class ArtifactKind(Enum):
    """스토어가 다루는 오브젝트 종류"""

    SERVICE = ("v1", "Service")
    CONFIG_MAP = ("v1", "ConfigMap")
    SECRET = ("v1", "Secret")
    DEPLOYMENT = ("apps/v1", "Deployment")
    GATEWAY = (GROUP_VERSION, GATEWAY_KIND)
    PEER = (GROUP_VERSION, PEER_KIND)

    def __init__(self, api_version: str, kind: str):
        self.api_version = api_version
        self.kind = kind

    def shell(self, name: str, namespace: str) -> Dict[str, Any]:
        """빈 오브젝트 골격 생성"""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": name, "namespace": namespace},
        }

    @classmethod
    def of(cls, obj: Dict[str, Any]) -> "ArtifactKind":
        """오브젝트의 apiVersion/kind 로 종류 판별"""
        key = (obj.get("apiVersion"), obj.get("kind"))
        for member in cls:
            if (member.api_version, member.kind) == key:
                return member
        raise UnsupportedConfigurationError(f"unsupported object kind {key[1]!r} ({key[0]})")


def object_key(obj: Dict[str, Any]) -> Tuple[str, str]:
    meta = obj.get("metadata") or {}
    return meta.get("namespace", "default"), meta["name"]


def controller_uid(obj: Dict[str, Any]) -> Optional[str]:
    """컨트롤러 오너 참조의 uid. 없으면 None"""
    for ref in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if ref.get("controller"):
            return ref.get("uid")
    return None


class ObjectStore(ABC):
    """네임스페이스 단위 오브젝트 스토어 인터페이스"""

    @abstractmethod
    def get(self, kind: ArtifactKind, namespace: str, name: str) -> Dict[str, Any]:
        """오브젝트 조회. 없으면 NotFoundError"""

    @abstractmethod
    def list(self, kind: ArtifactKind, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        """오브젝트 목록 조회. namespace 가 None 이면 전체"""

    @abstractmethod
    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """오브젝트 생성. 이미 있으면 ConflictError"""

    @abstractmethod
    def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """오브젝트 교체. resourceVersion 이 오래되었으면 ConflictError"""

    @abstractmethod
    def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        """status 서브리소스만 갱신"""

    @abstractmethod
    def delete(self, kind: ArtifactKind, namespace: str, name: str):
        """오브젝트 삭제. 없으면 NotFoundError"""


class InMemoryStore(ObjectStore):
    """프로세스 내부 오브젝트 스토어"""

    SERVICE_CIDR = "10.96.0.0/16"

    def __init__(self):
        self._objects: Dict[Tuple[ArtifactKind, str, str], Dict[str, Any]] = {}
        self._versions = itertools.count(1)
        self._cluster_ips = ipaddress.ip_network(self.SERVICE_CIDR).hosts()
        next(self._cluster_ips)  # .1 은 kubernetes 서비스 몫
        self.writes: List[Tuple[str, str, str, str]] = []

    def _lookup(self, kind: ArtifactKind, namespace: str, name: str) -> Dict[str, Any]:
        try:
            return self._objects[(kind, namespace, name)]
        except KeyError:
            raise NotFoundError(kind.kind, namespace, name) from None

    def _stamp(self, obj: Dict[str, Any]):
        obj["metadata"]["resourceVersion"] = str(next(self._versions))

    def _record(self, op: str, kind: ArtifactKind, namespace: str, name: str):
        self.writes.append((op, kind.kind, namespace, name))

    def _check_version(self, current: Dict[str, Any], obj: Dict[str, Any]):
        expected = (obj.get("metadata") or {}).get("resourceVersion")
        actual = current["metadata"]["resourceVersion"]
        if expected is not None and expected != actual:
            namespace, name = object_key(obj)
            raise ConflictError(
                f"{obj.get('kind')} {namespace}/{name}: resourceVersion {expected} is stale (current {actual})"
            )

    def get(self, kind: ArtifactKind, namespace: str, name: str) -> Dict[str, Any]:
        return copy.deepcopy(self._lookup(kind, namespace, name))

    def list(self, kind: ArtifactKind, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        items = [
            obj for (obj_kind, obj_ns, _), obj in sorted(
                self._objects.items(), key=lambda item: (item[0][1], item[0][2])
            )
            if obj_kind is kind and (namespace is None or obj_ns == namespace)
        ]
        return copy.deepcopy(items)

    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        kind = ArtifactKind.of(obj)
        namespace, name = object_key(obj)
        if (kind, namespace, name) in self._objects:
            raise ConflictError(f"{kind.kind} {namespace}/{name} already exists")

        stored = copy.deepcopy(obj)
        meta = stored.setdefault("metadata", {})
        meta["namespace"] = namespace
        meta["uid"] = str(uuid.uuid4())
        meta["creationTimestamp"] = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        if kind is ArtifactKind.SERVICE:
            spec = stored.setdefault("spec", {})
            if not spec.get("clusterIP"):
                spec["clusterIP"] = str(next(self._cluster_ips))
        self._stamp(stored)

        self._objects[(kind, namespace, name)] = stored
        self._record("create", kind, namespace, name)
        return copy.deepcopy(stored)

    def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        kind = ArtifactKind.of(obj)
        namespace, name = object_key(obj)
        current = self._lookup(kind, namespace, name)
        self._check_version(current, obj)

        stored = copy.deepcopy(obj)
        meta = stored.setdefault("metadata", {})
        meta["namespace"] = namespace
        meta["uid"] = current["metadata"]["uid"]
        meta["creationTimestamp"] = current["metadata"].get("creationTimestamp")
        if "status" in current:
            stored["status"] = copy.deepcopy(current["status"])
        else:
            stored.pop("status", None)
        if kind is ArtifactKind.SERVICE:
            # clusterIP 는 생성 후 변경 불가
            stored.setdefault("spec", {})["clusterIP"] = current.get("spec", {}).get("clusterIP")
        self._stamp(stored)

        self._objects[(kind, namespace, name)] = stored
        self._record("update", kind, namespace, name)
        return copy.deepcopy(stored)

    def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        kind = ArtifactKind.of(obj)
        namespace, name = object_key(obj)
        current = self._lookup(kind, namespace, name)
        self._check_version(current, obj)

        current["status"] = copy.deepcopy(obj.get("status") or {})
        self._stamp(current)
        self._record("update_status", kind, namespace, name)
        return copy.deepcopy(current)

    def delete(self, kind: ArtifactKind, namespace: str, name: str):
        current = self._lookup(kind, namespace, name)
        del self._objects[(kind, namespace, name)]
        self._record("delete", kind, namespace, name)
        self._collect_garbage(current["metadata"]["uid"])

    def _collect_garbage(self, owner_uid: str):
        """삭제된 오너가 소유한 오브젝트 연쇄 삭제"""
        dependents = [
            key for key, obj in self._objects.items()
            if any(ref.get("uid") == owner_uid for ref in obj["metadata"].get("ownerReferences", []))
        ]
        for kind, namespace, name in dependents:
            if (kind, namespace, name) in self._objects:
                self.delete(kind, namespace, name)
