"""
원하는 하위 오브젝트 생성기

게이트웨이: Service, ConfigMap, Secret, Deployment
피어: Secret

I/O 없이 오브젝트 dict 만 만든다. 모든 오브젝트에는 오너 참조와
last-applied 지문 어노테이션이 붙는다.
"""

import base64
import ipaddress
from typing import Any, Dict, List, Optional, Sequence

from .apply import set_last_applied
from .config import WireguardSettings
from .keys import KeyPair, PRIVATE_KEY_FIELD, PUBLIC_KEY_FIELD
from .models import Gateway, Peer, SERVICE_TYPE_LOAD_BALANCER
from .render import ReadyPeer, render_gateway_config, render_peer_config, render_resolver_config
from .store import ArtifactKind

CONFIG_HASH_ANNOTATION = "vpn.ahova.com/config-hash"
CONFIG_FIELD = "config"

ENTRYPOINT_SH = """#!/bin/sh
set -e

finish () {
	echo "$(date): Shutting down Wireguard"
	wg-quick down wg0
	exit 0
}

trap finish TERM INT QUIT
echo "$(date): Starting up Wireguard"
wg-quick up wg0

echo "Wireguard started, sleeping..."
sleep infinity
"""

SYSCTLS = [
    ("net.ipv4.ip_forward", "1"),
    ("net.ipv4.conf.all.src_valid_mark", "1"),
    ("net.ipv4.conf.all.rp_filter", "0"),
    ("net.ipv4.conf.all.route_localnet", "1"),
]


def owner_reference(kind: ArtifactKind, name: str, uid: str) -> Dict[str, Any]:
    return {
        "apiVersion": kind.api_version,
        "kind": kind.kind,
        "name": name,
        "uid": uid,
        "controller": True,
        "blockOwnerDeletion": True,
    }


def encode_data(values: Dict[str, str]) -> Dict[str, str]:
    """Secret data 필드 형식(base64)으로 변환"""
    return {key: base64.b64encode(value.encode("utf-8")).decode("ascii") for key, value in values.items()}


class GatewayFactory:
    """Wireguard 게이트웨이의 원하는 상태"""

    def __init__(self, gateway: Gateway, peers: Sequence[Peer] = (),
                 settings: Optional[WireguardSettings] = None):
        self.gateway = gateway
        self.peers = list(peers)
        self.settings = settings or WireguardSettings()

    @property
    def name(self) -> str:
        return self.gateway.name

    @property
    def namespace(self) -> str:
        return self.gateway.namespace

    def selector_labels(self) -> Dict[str, str]:
        return {
            "app.kubernetes.io/name": "wireguard",
            "app.kubernetes.io/instance": self.name,
        }

    def labels(self) -> Dict[str, str]:
        labels = self.selector_labels()
        labels["app.kubernetes.io/version"] = self.settings.image.rsplit(":", 1)[-1]
        labels["app.kubernetes.io/managed-by"] = "wireguard-operator"
        labels.update(self.gateway.spec.labels)
        return labels

    def ready_peers(self) -> List[ReadyPeer]:
        """이 게이트웨이를 참조하고 공개키가 확정된 피어"""
        return [
            ReadyPeer(name=peer.name, address=peer.spec.address, public_key=peer.status.public_key)
            for peer in self.peers
            if peer.spec.wireguard_ref == self.name and peer.ready
        ]

    def _decorate(self, obj: Dict[str, Any]) -> Dict[str, Any]:
        obj["metadata"]["ownerReferences"] = [
            owner_reference(ArtifactKind.GATEWAY, self.name, self.gateway.uid)
        ]
        return set_last_applied(obj)

    def service(self) -> Dict[str, Any]:
        spec = self.gateway.spec
        service = ArtifactKind.SERVICE.shell(self.name, self.namespace)
        service["metadata"]["labels"] = self.labels()
        if spec.service_annotations:
            service["metadata"]["annotations"] = dict(spec.service_annotations)

        service["spec"] = {
            "type": spec.service_type,
            "selector": self.selector_labels(),
            "ports": [{
                "name": "wireguard",
                "protocol": "UDP",
                "port": self.settings.port,
                "targetPort": self.settings.port,
            }],
        }
        if spec.service_type == SERVICE_TYPE_LOAD_BALANCER:
            service["spec"]["externalTrafficPolicy"] = "Local"
        return self._decorate(service)

    def config_map(self) -> Dict[str, Any]:
        config_map = ArtifactKind.CONFIG_MAP.shell(self.name, self.namespace)
        config_map["metadata"]["labels"] = self.labels()
        config_map["data"] = {"entrypoint.sh": ENTRYPOINT_SH}
        if self.gateway.spec.deploys_resolver:
            network = str(ipaddress.ip_interface(self.gateway.spec.address).network)
            config_map["data"]["unbound.conf"] = render_resolver_config(network)
        return self._decorate(config_map)

    def render_config(self, keypair: KeyPair) -> str:
        spec = self.gateway.spec
        return render_gateway_config(
            address=spec.address,
            private_key=keypair.private_key,
            port=self.settings.port,
            deny_list=spec.drop_connections_to,
            ready_peers=self.ready_peers(),
        )

    def secret(self, keypair: KeyPair) -> Dict[str, Any]:
        secret = ArtifactKind.SECRET.shell(self.name, self.namespace)
        secret["metadata"]["labels"] = self.labels()
        secret["type"] = "Opaque"
        secret["data"] = encode_data({
            CONFIG_FIELD: self.render_config(keypair),
            PUBLIC_KEY_FIELD: keypair.public_key,
            PRIVATE_KEY_FIELD: keypair.private_key,
        })
        return self._decorate(secret)

    def _volumes(self) -> List[Dict[str, Any]]:
        volumes = [{
            "name": "config",
            "secret": {
                "secretName": self.name,
                "items": [{"key": CONFIG_FIELD, "path": "wg0.conf"}],
            },
        }, {
            "name": "entrypoint",
            "configMap": {
                "name": self.name,
                "items": [{"key": "entrypoint.sh", "path": "entrypoint.sh", "mode": 0o755}],
            },
        }]
        if self.gateway.spec.deploys_resolver:
            volumes.append({
                "name": "unbound-config",
                "configMap": {
                    "name": self.name,
                    "items": [{"key": "unbound.conf", "path": "unbound.conf"}],
                },
            })
        return volumes

    def _wireguard_container(self) -> Dict[str, Any]:
        port = self.settings.port
        return {
            "name": "wireguard",
            "image": self.settings.image,
            "imagePullPolicy": "IfNotPresent",
            "command": ["/opt/bin/entrypoint.sh"],
            "volumeMounts": [
                {"name": "config", "mountPath": "/etc/wireguard", "readOnly": True},
                {"name": "entrypoint", "mountPath": "/opt/bin"},
            ],
            "securityContext": {
                "privileged": True,
                "capabilities": {"add": ["NET_ADMIN", "SYS_MODULE"]},
            },
            "ports": [{"containerPort": port, "name": "wireguard", "protocol": "UDP"}],
            "livenessProbe": {
                "exec": {"command": ["/bin/sh", "-c", "ip link show wg0 up"]},
                "failureThreshold": 2,
                "successThreshold": 1,
                "initialDelaySeconds": 5,
                "timeoutSeconds": 1,
                "periodSeconds": 10,
            },
        }

    def _resolver_container(self) -> Dict[str, Any]:
        return {
            "name": "unbound",
            "image": self.settings.dns_image,
            "imagePullPolicy": "IfNotPresent",
            "command": ["unbound"],
            "args": ["-d", "-c", "/etc/unbound/unbound.conf"],
            "volumeMounts": [
                {"name": "unbound-config", "mountPath": "/etc/unbound", "readOnly": True},
            ],
        }

    def deployment(self, config_hash: str) -> Dict[str, Any]:
        spec = self.gateway.spec
        containers = [self._wireguard_container()]
        if spec.deploys_resolver:
            containers.append(self._resolver_container())
        containers.extend(spec.sidecars)

        pod_spec: Dict[str, Any] = {
            "containers": containers,
            "securityContext": {
                "sysctls": [{"name": name, "value": value} for name, value in SYSCTLS],
            },
            "volumes": self._volumes(),
        }
        if spec.affinity:
            pod_spec["affinity"] = spec.affinity
        if spec.deploys_resolver:
            pod_spec["dnsPolicy"] = "None"
            pod_spec["dnsConfig"] = {"nameservers": ["127.0.0.1"]}
        else:
            pod_spec["dnsPolicy"] = "ClusterFirst"

        deployment = ArtifactKind.DEPLOYMENT.shell(self.name, self.namespace)
        deployment["metadata"]["labels"] = self.labels()
        deployment["spec"] = {
            "replicas": spec.replicas,
            "selector": {"matchLabels": self.selector_labels()},
            "template": {
                "metadata": {
                    "labels": self.labels(),
                    "annotations": {CONFIG_HASH_ANNOTATION: config_hash},
                },
                "spec": pod_spec,
            },
        }
        return self._decorate(deployment)


class PeerFactory:
    """WireguardPeer 의 원하는 상태"""

    def __init__(self, peer: Peer, gateway: Gateway, settings: Optional[WireguardSettings] = None):
        self.peer = peer
        self.gateway = gateway
        self.settings = settings or WireguardSettings()

    def resolver_address(self) -> str:
        """피어가 사용할 DNS 서버 주소"""
        dns = self.gateway.spec.dns
        if dns is None:
            return self.gateway.spec.tunnel_ip
        if dns.deploy_server:
            return dns.address or self.gateway.spec.tunnel_ip
        return dns.address or self.settings.default_dns

    def render_config(self, keypair: KeyPair) -> str:
        status = self.gateway.status
        return render_peer_config(
            address=self.peer.spec.address,
            private_key=keypair.private_key,
            resolver_address=self.resolver_address(),
            gateway_public_key=status.public_key,
            gateway_endpoint=status.endpoint,
            allowed_routes=self.gateway.spec.allowed_ips,
        )

    def secret(self, keypair: KeyPair) -> Dict[str, Any]:
        """
        공개키가 스펙에 지정된 피어는 공개키만 담는다.
        오퍼레이터가 만들지 않은 키의 개인키와 설정은 다루지 않는다.
        """
        peer = self.peer
        secret = ArtifactKind.SECRET.shell(peer.name, peer.namespace)
        secret["metadata"]["labels"] = {
            "app.kubernetes.io/name": "wireguard-peer",
            "app.kubernetes.io/instance": peer.name,
            "app.kubernetes.io/managed-by": "wireguard-operator",
        }
        secret["type"] = "Opaque"
        if peer.spec.public_key is not None:
            secret["data"] = encode_data({PUBLIC_KEY_FIELD: peer.spec.public_key})
        else:
            secret["data"] = encode_data({
                CONFIG_FIELD: self.render_config(keypair),
                PRIVATE_KEY_FIELD: keypair.private_key,
                PUBLIC_KEY_FIELD: keypair.public_key,
            })

        secret["metadata"]["ownerReferences"] = [
            owner_reference(ArtifactKind.PEER, peer.name, peer.uid)
        ]
        return set_last_applied(secret)
