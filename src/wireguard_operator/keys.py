"""
Wireguard 키 쌍 생성 및 재사용
"""

import base64
import binascii
from typing import Callable, NamedTuple, Optional

from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, NoEncryption, PrivateFormat, PublicFormat

from .errors import KeyGenerationError, NotFoundError, UnsupportedConfigurationError
from .logger import get_logger
from .store import ArtifactKind, ObjectStore, controller_uid

PRIVATE_KEY_FIELD = "private-key"
PUBLIC_KEY_FIELD = "public-key"


class KeyPair(NamedTuple):
    private_key: str
    public_key: str


def generate_keypair() -> KeyPair:
    """X25519 키 쌍 생성 (wg genkey / wg pubkey 와 동일한 base64 형식)"""
    try:
        key = X25519PrivateKey.generate()
        private_raw = key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
        public_raw = key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    except Exception as e:
        raise KeyGenerationError(f"cannot generate keypair: {e}") from e

    return KeyPair(
        private_key=base64.b64encode(private_raw).decode("ascii"),
        public_key=base64.b64encode(public_raw).decode("ascii"),
    )


def secret_value(secret: dict, field: str) -> str:
    """Secret data 필드 디코딩. 없거나 깨진 값은 빈 문자열"""
    value = (secret.get("data") or {}).get(field)
    if not value:
        return ""
    try:
        return base64.b64decode(value).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return ""


class KeyManager:
    """오너 리소스의 Secret 에 저장된 키 쌍을 읽거나 새로 생성"""

    def __init__(self, store: ObjectStore, generator: Callable[[], KeyPair] = generate_keypair):
        self.store = store
        self.generator = generator
        self.logger = get_logger()

    def read(self, namespace: str, name: str, owner_uid: Optional[str] = None) -> Optional[KeyPair]:
        """
        저장된 키 쌍 조회. Secret 이 없으면 None

        Raises:
            UnsupportedConfigurationError: Secret 이 owner_uid 가 아닌 다른 리소스 소유
        """
        try:
            secret = self.store.get(ArtifactKind.SECRET, namespace, name)
        except NotFoundError:
            return None

        holder = controller_uid(secret)
        if owner_uid and holder and holder != owner_uid:
            raise UnsupportedConfigurationError(
                f"secret {namespace}/{name} belongs to another resource (owner uid {holder})"
            )

        return KeyPair(
            private_key=secret_value(secret, PRIVATE_KEY_FIELD),
            public_key=secret_value(secret, PUBLIC_KEY_FIELD),
        )

    def resolve(self, namespace: str, name: str, owner_uid: Optional[str] = None,
                needs_private_key: bool = True) -> KeyPair:
        """
        키 쌍 결정. 저장된 값이 있으면 그대로 반환하고 없으면 생성만 한다.
        저장은 호출자가 Secret 을 apply 할 때 이루어진다.

        Args:
            owner_uid: 키를 소유할 리소스의 uid. 다른 리소스가 만든 Secret 의 키는 쓰지 않는다
            needs_private_key: False 이면 공개키만 있는 Secret 도 완전한 것으로 본다
        """
        stored = self.read(namespace, name, owner_uid)
        if stored is not None and stored.public_key and (stored.private_key or not needs_private_key):
            self.logger.debug(f"Reusing keypair stored in secret {namespace}/{name}")
            return stored

        if stored is not None:
            self.logger.warning(f"Secret {namespace}/{name} holds an incomplete keypair, generating a new one")
        keypair = self.generator()
        self.logger.info(f"Generated new keypair for {namespace}/{name}")
        return keypair
