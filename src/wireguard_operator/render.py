"""
Wireguard 설정 파일 렌더링
게이트웨이(wg0.conf), 피어 클라이언트 설정, unbound 설정을 Jinja2 템플릿으로 생성
"""

import hashlib
from typing import NamedTuple, Sequence

from jinja2 import Environment, StrictUndefined

_env = Environment(
    undefined=StrictUndefined,
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    autoescape=False,
)

GATEWAY_TEMPLATE = _env.from_string("""[Interface]
Address = {{ address }}
PrivateKey = {{ private_key }}
ListenPort = {{ port }}
{% for cidr in deny_list %}
PostUp = iptables --insert FORWARD --source {{ address }} --destination {{ cidr }} --jump DROP
{% endfor %}
PostUp = iptables --append FORWARD --in-interface %i --jump ACCEPT
PostUp = iptables --append FORWARD --out-interface %i --jump ACCEPT
PostUp = iptables -t nat -A POSTROUTING -o eth0 -j MASQUERADE
SaveConfig = false
{% for peer in peers %}

[Peer]
# friendly_name = {{ peer.name }}
PublicKey = {{ peer.public_key }}
AllowedIPs = {{ peer.allowed_ips }}
{% endfor %}
""")

PEER_TEMPLATE = _env.from_string("""[Interface]
Address = {{ address }}
PrivateKey = {{ private_key }}
DNS = {{ dns }}

[Peer]
PublicKey = {{ gateway_public_key }}
Endpoint = {{ endpoint }}
AllowedIPs = {{ allowed_ips }}
PersistentKeepalive = 25
""")

RESOLVER_TEMPLATE = _env.from_string("""remote-control:
	control-enable: yes
	control-interface: 127.0.0.1
	control-use-cert: no
server:
	num-threads: 1
	verbosity: 1
	interface: 0.0.0.0
	max-udp-size: 3072
	access-control: 0.0.0.0/0 refuse
	access-control: 127.0.0.1 allow
	access-control: {{ network }} allow
	private-address: {{ network }}
	hide-identity: yes
	hide-version: yes
	harden-glue: yes
	harden-dnssec-stripped: yes
	harden-referral-path: yes
	unwanted-reply-threshold: 10000000
	val-log-level: 1
	cache-min-ttl: 1800
	cache-max-ttl: 14400
	prefetch: yes
	prefetch-key: yes
""")


class ReadyPeer(NamedTuple):
    """게이트웨이 설정에 들어갈 피어"""
    name: str
    address: str
    public_key: str

    @property
    def allowed_ips(self) -> str:
        # 프리픽스가 없는 주소는 단일 호스트로 취급
        if "/" in self.address:
            return self.address
        return f"{self.address}/32"


def render_gateway_config(address: str, private_key: str, port: int,
                          deny_list: Sequence[str], ready_peers: Sequence[ReadyPeer]) -> str:
    """게이트웨이 wg0.conf 렌더링. 피어 블록은 입력 순서를 따른다"""
    return GATEWAY_TEMPLATE.render(
        address=address,
        private_key=private_key,
        port=port,
        deny_list=list(deny_list),
        peers=list(ready_peers),
    )


def render_peer_config(address: str, private_key: str, resolver_address: str,
                       gateway_public_key: str, gateway_endpoint: str, allowed_routes: str) -> str:
    """피어 클라이언트 설정 렌더링"""
    return PEER_TEMPLATE.render(
        address=address,
        private_key=private_key,
        dns=resolver_address,
        gateway_public_key=gateway_public_key,
        endpoint=gateway_endpoint,
        allowed_ips=allowed_routes,
    )


def render_resolver_config(network: str) -> str:
    return RESOLVER_TEMPLATE.render(network=network)


def config_hash(config: str) -> str:
    """설정 내용 지문 (워크로드 재배포 트리거용)"""
    return hashlib.sha1(config.encode("utf-8")).hexdigest()
