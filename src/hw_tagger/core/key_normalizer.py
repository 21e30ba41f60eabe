"""라벨 키 정규화 모듈.

디바이스 프로퍼티에서 만든 키를 Kubernetes 라벨 키 규칙에 맞게 변환.
- 이름 부분 최대 63자
- 허용 문자: [A-Za-z0-9_.-]
"""

from __future__ import annotations

import base64
import hashlib
import logging

from src.hw_tagger.models.scope import INVALID_KEY_CHARS

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 63
HASH_SUFFIX_LENGTH = 5


def hash_suffix(name: str) -> str:
    """이름의 SHA-1 해시 → base32 앞 5자 (소문자)."""
    digest = hashlib.sha1(name.encode("utf-8")).digest()
    return base64.b32encode(digest).decode("ascii")[:HASH_SUFFIX_LENGTH].lower()


def normalize_key(raw_key: str) -> str:
    """라벨 키 정규화.

    "<namespace>/<name>" 형식의 키에서 이름 부분을 정규화합니다.
    63자를 넘는 이름은 앞 57자 + "-" + 해시 5자로 잘라서
    서로 다른 긴 이름이 같은 키로 충돌하지 않도록 합니다.

    Args:
        raw_key: 원본 키 (예: "node-devices.alpha.kubernetes.io/block-disk-sn-XYZ")

    Returns:
        정규화된 키

    Examples:
        ```python
        normalize_key("example.io/block-disk-sn-ab:cd")
        # "example.io/block-disk-sn-ab-cd"
        ```
    """
    namespace, sep, name = raw_key.partition("/")
    if not sep:
        namespace, name = "", raw_key

    if len(name) > MAX_NAME_LENGTH:
        keep = MAX_NAME_LENGTH - HASH_SUFFIX_LENGTH - 1
        truncated = f"{name[:keep]}-{hash_suffix(name)}"
        logger.info(f"키 이름 축약: {name} -> {truncated}")
        name = truncated

    name = INVALID_KEY_CHARS.sub("-", name)

    if not sep:
        return name
    return f"{namespace}/{name}"
