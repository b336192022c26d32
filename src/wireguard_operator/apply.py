"""
원하는 오브젝트를 클러스터에 반영 (없으면 생성, 다르면 갱신, 같으면 그대로)

비교 대상은 최상위 metadata 를 제외한 실질 필드뿐이다. 서버가 채워 넣는
기본값 때문에 매번 갱신이 일어나지 않도록 dict 는 부분집합으로 비교하고,
필드 삭제는 last-applied 지문 비교로 감지한다.
"""

import copy
import hashlib
import json
from typing import Any, Dict, List

from .errors import NotFoundError, UnsupportedConfigurationError
from .logger import get_logger
from .store import ArtifactKind, ObjectStore, controller_uid, object_key

LAST_APPLIED_ANNOTATION = "vpn.ahova.com/last-applied"


def fingerprint(obj: Dict[str, Any]) -> str:
    """metadata 를 제외한 내용의 SHA-256 지문"""
    content = {key: value for key, value in obj.items() if key != "metadata"}
    canonical = json.dumps(content, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def set_last_applied(obj: Dict[str, Any]) -> Dict[str, Any]:
    annotations = obj.setdefault("metadata", {}).setdefault("annotations", {})
    annotations[LAST_APPLIED_ANNOTATION] = fingerprint(obj)
    return obj


def last_applied(obj: Dict[str, Any]) -> str:
    return ((obj.get("metadata") or {}).get("annotations") or {}).get(LAST_APPLIED_ANNOTATION, "")


def _compare(current: Any, desired: Any, path: str, changes: List[str]):
    if isinstance(desired, dict):
        if not isinstance(current, dict):
            changes.append(path or "/")
            return
        for key, value in desired.items():
            if key not in current:
                changes.append(f"{path}/{key}")
            else:
                _compare(current[key], value, f"{path}/{key}", changes)
    elif isinstance(desired, list):
        if not isinstance(current, list) or len(current) != len(desired):
            changes.append(path)
            return
        for index, (cur_item, des_item) in enumerate(zip(current, desired)):
            _compare(cur_item, des_item, f"{path}/{index}", changes)
    elif current != desired:
        changes.append(path)


def diff(current: Dict[str, Any], desired: Dict[str, Any]) -> List[str]:
    """
    current 와 desired 의 실질적인 차이 목록 (JSON 포인터 형식 경로)

    빈 리스트면 갱신이 필요 없다.
    """
    changes: List[str] = []
    for key, value in desired.items():
        if key in ("metadata", "status"):
            continue
        if key not in current:
            changes.append(f"/{key}")
        else:
            _compare(current[key], value, f"/{key}", changes)

    if last_applied(current) != last_applied(desired):
        changes.append(f"/metadata/annotations/{LAST_APPLIED_ANNOTATION}")
    return changes


class ApplyEngine:
    """원하는 상태를 스토어에 반영"""

    def __init__(self, store: ObjectStore):
        self.store = store
        self.logger = get_logger()

    def apply(self, desired: Dict[str, Any]) -> bool:
        """
        Returns:
            bool: 생성 또는 갱신이 일어났으면 True

        스토어 오류(충돌 포함)는 그대로 전파한다. 재시도는 호출자 몫.
        다른 리소스가 소유한 오브젝트는 덮어쓰지 않고 UnsupportedConfigurationError.
        """
        kind = ArtifactKind.of(desired)
        namespace, name = object_key(desired)

        try:
            current = self.store.get(kind, namespace, name)
        except NotFoundError:
            self.store.create(desired)
            self.logger.info(f"{kind.kind} {namespace}/{name} created")
            return True

        owner, holder = controller_uid(desired), controller_uid(current)
        if owner and holder and owner != holder:
            raise UnsupportedConfigurationError(
                f"{kind.kind} {namespace}/{name} is managed by another resource (owner uid {holder})"
            )

        changes = diff(current, desired)
        if not changes:
            self.logger.debug(f"{kind.kind} {namespace}/{name} is up to date")
            return False

        self.logger.debug(f"{kind.kind} {namespace}/{name} differs at {', '.join(changes)}")
        update = copy.deepcopy(desired)
        update["metadata"]["resourceVersion"] = current["metadata"].get("resourceVersion")
        self.store.update(update)
        self.logger.info(f"{kind.kind} {namespace}/{name} updated")
        return True
