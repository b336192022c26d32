"""
커스텀 리소스 데이터 모델
Wireguard(게이트웨이) 및 WireguardPeer(피어) 스펙/상태
"""

import ipaddress
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any

API_GROUP = "vpn.ahova.com"
API_VERSION = "v1alpha1"
GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

GATEWAY_KIND = "Wireguard"
PEER_KIND = "WireguardPeer"

SERVICE_TYPE_CLUSTER_IP = "ClusterIP"
SERVICE_TYPE_LOAD_BALANCER = "LoadBalancer"

PUBLIC_KEY_LENGTH = 44


@dataclass
class DnsSpec:
    """피어에게 전달할 DNS 설정"""
    deploy_server: bool = False
    address: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["DnsSpec"]:
        if data is None:
            return None
        return cls(
            deploy_server=bool(data.get("deployServer", False)),
            address=data.get("address", "") or "",
        )


@dataclass
class GatewaySpec:
    """Wireguard 게이트웨이 스펙"""
    replicas: int = 1
    address: str = "192.168.254.1/24"
    allowed_ips: str = "0.0.0.0/0"
    dns: Optional[DnsSpec] = None
    endpoint_address: Optional[str] = None
    drop_connections_to: List[str] = field(default_factory=list)
    sidecars: List[Dict[str, Any]] = field(default_factory=list)
    affinity: Optional[Dict[str, Any]] = None
    service_type: str = SERVICE_TYPE_CLUSTER_IP
    service_annotations: Dict[str, str] = field(default_factory=dict)
    labels: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # 잘못된 CIDR 은 ValueError
        ipaddress.ip_interface(self.address)
        if self.replicas < 1:
            raise ValueError(f"replicas must be at least 1, got {self.replicas}")

    @property
    def deploys_resolver(self) -> bool:
        """게이트웨이 파드에 로컬 DNS 리졸버를 띄우는지 여부"""
        return self.dns is None or self.dns.deploy_server

    @property
    def tunnel_ip(self) -> str:
        """터널 네트워크에서 게이트웨이 자신의 IP (프리픽스 제외)"""
        return str(ipaddress.ip_interface(self.address).ip)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GatewaySpec":
        data = data or {}
        return cls(
            replicas=int(data.get("replicas", 1)),
            address=data.get("address") or "192.168.254.1/24",
            allowed_ips=data.get("allowedIPs") or "0.0.0.0/0",
            dns=DnsSpec.from_dict(data.get("dns")),
            endpoint_address=data.get("endpointAddress") or None,
            drop_connections_to=list(data.get("dropConnectionsTo") or []),
            sidecars=list(data.get("sidecars") or []),
            affinity=data.get("affinity"),
            service_type=data.get("serviceType") or SERVICE_TYPE_CLUSTER_IP,
            service_annotations=dict(data.get("serviceAnnotations") or {}),
            labels=dict(data.get("labels") or {}),
        )


@dataclass
class GatewayStatus:
    public_key: Optional[str] = None
    endpoint: Optional[str] = None

    @property
    def populated(self) -> bool:
        return bool(self.public_key) and bool(self.endpoint)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GatewayStatus":
        data = data or {}
        return cls(public_key=data.get("publicKey"), endpoint=data.get("endpoint"))


@dataclass
class PeerSpec:
    """WireguardPeer 스펙"""
    wireguard_ref: str = ""
    address: str = "192.168.254.2/24"
    public_key: Optional[str] = None

    def __post_init__(self):
        if self.public_key is not None and len(self.public_key) != PUBLIC_KEY_LENGTH:
            raise ValueError(
                f"publicKey must be exactly {PUBLIC_KEY_LENGTH} characters, "
                f"got {len(self.public_key)}"
            )

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PeerSpec":
        data = data or {}
        ref = data.get("wireguardRef")
        if not ref:
            raise ValueError("wireguardRef is required")
        return cls(
            wireguard_ref=ref,
            address=data.get("address") or "192.168.254.2/24",
            public_key=data.get("publicKey") or None,
        )


@dataclass
class PeerStatus:
    public_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PeerStatus":
        data = data or {}
        return cls(public_key=data.get("publicKey"))


@dataclass
class Gateway:
    """Wireguard 게이트웨이 리소스"""
    name: str
    namespace: str
    spec: GatewaySpec = field(default_factory=GatewaySpec)
    status: GatewayStatus = field(default_factory=GatewayStatus)
    uid: str = ""

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "Gateway":
        meta = obj.get("metadata") or {}
        return cls(
            name=meta["name"],
            namespace=meta.get("namespace", "default"),
            spec=GatewaySpec.from_dict(obj.get("spec")),
            status=GatewayStatus.from_dict(obj.get("status")),
            uid=meta.get("uid", ""),
        )


@dataclass
class Peer:
    """WireguardPeer 리소스"""
    name: str
    namespace: str
    spec: PeerSpec
    status: PeerStatus = field(default_factory=PeerStatus)
    uid: str = ""

    @property
    def ready(self) -> bool:
        """게이트웨이 설정에 포함될 수 있는지 여부"""
        return bool(self.status.public_key)

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "Peer":
        meta = obj.get("metadata") or {}
        return cls(
            name=meta["name"],
            namespace=meta.get("namespace", "default"),
            spec=PeerSpec.from_dict(obj.get("spec")),
            status=PeerStatus.from_dict(obj.get("status")),
            uid=meta.get("uid", ""),
        )

