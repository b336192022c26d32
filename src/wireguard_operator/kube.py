"""
Kubernetes API 기반 오브젝트 스토어
CoreV1Api / AppsV1Api / CustomObjectsApi 를 종류별 작업 테이블로 묶어 사용
"""

from typing import Callable, Dict, List, Optional, Any, NamedTuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .errors import ConflictError, NotFoundError, StoreError
from .logger import get_logger
from .models import API_GROUP, API_VERSION
from .store import ArtifactKind, ObjectStore, object_key


class KindOps(NamedTuple):
    """종류별 API 호출 묶음"""
    read: Callable[[str, str], Any]
    list_namespaced: Callable[[str], Any]
    list_all: Callable[[], Any]
    create: Callable[[str, Dict[str, Any]], Any]
    replace: Callable[[str, str, Dict[str, Any]], Any]
    replace_status: Optional[Callable[[str, str, Dict[str, Any]], Any]]
    delete: Callable[[str, str], Any]


class KubernetesStore(ObjectStore):
    """Kubernetes 클러스터를 오브젝트 스토어로 사용"""

    def __init__(self, kubeconfig: Optional[str] = None, in_cluster: bool = False):
        self.logger = get_logger()
        if in_cluster:
            config.load_incluster_config()
        elif kubeconfig:
            config.load_kube_config(config_file=kubeconfig)
        else:
            try:
                config.load_incluster_config()
            except config.ConfigException:
                config.load_kube_config()

        self.api_client = client.ApiClient()
        self.core_v1 = client.CoreV1Api(self.api_client)
        self.apps_v1 = client.AppsV1Api(self.api_client)
        self.custom_objects_api = client.CustomObjectsApi(self.api_client)
        self._ops = self._build_ops()

    def _build_ops(self) -> Dict[ArtifactKind, KindOps]:
        core, apps = self.core_v1, self.apps_v1
        ops = {
            ArtifactKind.SERVICE: KindOps(
                read=core.read_namespaced_service,
                list_namespaced=core.list_namespaced_service,
                list_all=core.list_service_for_all_namespaces,
                create=lambda ns, body: core.create_namespaced_service(ns, body),
                replace=core.replace_namespaced_service,
                replace_status=core.replace_namespaced_service_status,
                delete=core.delete_namespaced_service,
            ),
            ArtifactKind.CONFIG_MAP: KindOps(
                read=core.read_namespaced_config_map,
                list_namespaced=core.list_namespaced_config_map,
                list_all=core.list_config_map_for_all_namespaces,
                create=lambda ns, body: core.create_namespaced_config_map(ns, body),
                replace=core.replace_namespaced_config_map,
                replace_status=None,
                delete=core.delete_namespaced_config_map,
            ),
            ArtifactKind.SECRET: KindOps(
                read=core.read_namespaced_secret,
                list_namespaced=core.list_namespaced_secret,
                list_all=core.list_secret_for_all_namespaces,
                create=lambda ns, body: core.create_namespaced_secret(ns, body),
                replace=core.replace_namespaced_secret,
                replace_status=None,
                delete=core.delete_namespaced_secret,
            ),
            ArtifactKind.DEPLOYMENT: KindOps(
                read=apps.read_namespaced_deployment,
                list_namespaced=apps.list_namespaced_deployment,
                list_all=apps.list_deployment_for_all_namespaces,
                create=lambda ns, body: apps.create_namespaced_deployment(ns, body),
                replace=apps.replace_namespaced_deployment,
                replace_status=apps.replace_namespaced_deployment_status,
                delete=apps.delete_namespaced_deployment,
            ),
        }
        ops[ArtifactKind.GATEWAY] = self._custom_ops("wireguards")
        ops[ArtifactKind.PEER] = self._custom_ops("wireguardpeers")
        return ops

    def _custom_ops(self, plural: str) -> KindOps:
        api = self.custom_objects_api
        common = {"group": API_GROUP, "version": API_VERSION, "plural": plural}
        return KindOps(
            read=lambda name, ns: api.get_namespaced_custom_object(name=name, namespace=ns, **common),
            list_namespaced=lambda ns: api.list_namespaced_custom_object(namespace=ns, **common),
            list_all=lambda: api.list_cluster_custom_object(**common),
            create=lambda ns, body: api.create_namespaced_custom_object(namespace=ns, body=body, **common),
            replace=lambda name, ns, body: api.replace_namespaced_custom_object(
                name=name, namespace=ns, body=body, **common),
            replace_status=lambda name, ns, body: api.replace_namespaced_custom_object_status(
                name=name, namespace=ns, body=body, **common),
            delete=lambda name, ns: api.delete_namespaced_custom_object(name=name, namespace=ns, **common),
        )

    def _to_dict(self, kind: ArtifactKind, response: Any) -> Dict[str, Any]:
        data = self.api_client.sanitize_for_serialization(response)
        # 타입 모델 응답에는 apiVersion/kind 가 비어 있을 수 있음
        data.setdefault("apiVersion", kind.api_version)
        data.setdefault("kind", kind.kind)
        return data

    def _call(self, kind: ArtifactKind, namespace: str, name: str, fn: Callable, *args):
        try:
            return fn(*args)
        except ApiException as e:
            if e.status == 404:
                raise NotFoundError(kind.kind, namespace, name) from e
            if e.status == 409:
                raise ConflictError(f"{kind.kind} {namespace}/{name}: {e.reason}") from e
            raise StoreError(f"{kind.kind} {namespace}/{name}: {e.status} {e.reason}") from e

    def get(self, kind: ArtifactKind, namespace: str, name: str) -> Dict[str, Any]:
        response = self._call(kind, namespace, name, self._ops[kind].read, name, namespace)
        return self._to_dict(kind, response)

    def list(self, kind: ArtifactKind, namespace: Optional[str] = None) -> List[Dict[str, Any]]:
        ops = self._ops[kind]
        if namespace is None:
            response = self._call(kind, "*", "*", ops.list_all)
        else:
            response = self._call(kind, namespace, "*", ops.list_namespaced, namespace)
        data = self.api_client.sanitize_for_serialization(response)
        items = data.get("items") or []
        for item in items:
            item.setdefault("apiVersion", kind.api_version)
            item.setdefault("kind", kind.kind)
        return items

    def create(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        kind = ArtifactKind.of(obj)
        namespace, name = object_key(obj)
        self.logger.debug(f"Creating {kind.kind} {namespace}/{name}")
        response = self._call(kind, namespace, name, self._ops[kind].create, namespace, obj)
        return self._to_dict(kind, response)

    def update(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        kind = ArtifactKind.of(obj)
        namespace, name = object_key(obj)
        self.logger.debug(f"Replacing {kind.kind} {namespace}/{name}")
        response = self._call(kind, namespace, name, self._ops[kind].replace, name, namespace, obj)
        return self._to_dict(kind, response)

    def update_status(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        kind = ArtifactKind.of(obj)
        namespace, name = object_key(obj)
        replace_status = self._ops[kind].replace_status
        if replace_status is None:
            raise StoreError(f"{kind.kind} has no status subresource")
        response = self._call(kind, namespace, name, replace_status, name, namespace, obj)
        return self._to_dict(kind, response)

    def delete(self, kind: ArtifactKind, namespace: str, name: str):
        self._call(kind, namespace, name, self._ops[kind].delete, name, namespace)
