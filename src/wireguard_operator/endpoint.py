"""
게이트웨이 외부 접속 주소 결정
"""

from typing import Any, Dict, Optional

from .errors import NotReadyError, UnsupportedConfigurationError
from .models import GatewaySpec, SERVICE_TYPE_CLUSTER_IP, SERVICE_TYPE_LOAD_BALANCER

DEFAULT_PORT = 51820


def _join(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def _port_part(address: str) -> Optional[str]:
    """host[:port] 의 포트 부분. 포트 구분자가 없으면 None"""
    if address.startswith("["):
        _, _, rest = address.partition("]")
        return rest[1:] if rest.startswith(":") else None
    # 콜론이 둘 이상이면 포트 없는 IPv6 리터럴
    if address.count(":") != 1:
        return None
    return address.rsplit(":", 1)[1]


def _valid_port(value: str) -> bool:
    return value.isdigit() and 0 < int(value) < 65536


def has_port(address: str) -> bool:
    """host[:port] 문자열에 유효한 포트가 포함되어 있는지 여부"""
    port = _port_part(address)
    return port is not None and _valid_port(port)


def with_default_port(address: str, port: int = DEFAULT_PORT) -> str:
    """
    포트가 없으면 기본 포트를 붙인다

    Raises:
        UnsupportedConfigurationError: 포트 자리에 숫자가 아닌 값이 있음
    """
    suffix = _port_part(address)
    if suffix is None:
        return _join(address.strip("[]"), port)
    if not _valid_port(suffix):
        raise UnsupportedConfigurationError(f"invalid port {suffix!r} in endpoint address {address!r}")
    return address


def _load_balancer_host(service: Dict[str, Any]) -> str:
    ingress = ((service.get("status") or {}).get("loadBalancer") or {}).get("ingress") or []
    if not ingress:
        raise NotReadyError("load balancer ingress is not assigned yet")

    first = ingress[0]
    host = first.get("ip") or first.get("hostname")
    if not host:
        raise NotReadyError("load balancer ingress has neither ip nor hostname")
    return host


def resolve_endpoint(spec: GatewaySpec, service: Dict[str, Any], port: int = DEFAULT_PORT) -> str:
    """
    피어 설정에 들어갈 게이트웨이 엔드포인트(host:port) 계산

    우선순위:
    1. spec.endpointAddress (포트가 없으면 기본 포트 추가)
    2. ClusterIP 서비스의 clusterIP
    3. LoadBalancer 서비스의 첫 번째 ingress (ip 우선, 없으면 hostname)

    Raises:
        NotReadyError: 주소가 아직 할당되지 않음
        UnsupportedConfigurationError: 처리할 수 없는 서비스 타입
    """
    if spec.endpoint_address:
        return with_default_port(spec.endpoint_address, port)

    if spec.service_type == SERVICE_TYPE_CLUSTER_IP:
        cluster_ip = (service.get("spec") or {}).get("clusterIP")
        if not cluster_ip or cluster_ip == "None":
            raise NotReadyError("cluster ip is not assigned yet")
        return _join(cluster_ip, port)

    if spec.service_type == SERVICE_TYPE_LOAD_BALANCER:
        return _join(_load_balancer_host(service), port)

    raise UnsupportedConfigurationError(f"unsupported service type {spec.service_type!r}")
