"""
캐시 키 생성 모듈

네임스페이스와 순서가 있는 키 조각들로부터 결정적인 캐시 키를 생성합니다.

키 구조:
    {prefix}:{namespace}:{part1}:{part2}...
    예: "takaro:gameservers:service:all"

제한사항:
    조각 자체에 구분자(":")가 포함되면 서로 다른 조각 시퀀스가 같은 키를
    만들 수 있습니다. ("a:b", "c") 와 ("a", "b:c") 는 같은 키가 됩니다.
"""

from typing import Any

KEY_PREFIX = "takaro"
KEY_SEPARATOR = ":"


def build_key(namespace: str, *parts: Any, prefix: str = KEY_PREFIX) -> str:
    """
    캐시 키 생성

    동일한 (namespace, parts) 입력은 항상 동일한 키를 생성합니다.
    조각이 없으면 네임스페이스 뒤에 구분자가 붙은 키가 됩니다.

    Args:
        namespace: 데이터 종류를 나타내는 비어 있지 않은 토큰
            예: "gameservers", "players", "mapinfo"
        *parts: 키 조각들 (str()로 변환됨)
        prefix: 키 접두사 (기본값: "takaro")

    Returns:
        str: 최종 캐시 키

    Raises:
        ValueError: namespace가 비어 있는 경우

    Example:
        ```python
        build_key("players", "service", "gs-1", "full")
        # → "takaro:players:service:gs-1:full"
        ```
    """
    if not namespace or not str(namespace).strip():
        raise ValueError("namespace must be a non-empty token")

    tail = KEY_SEPARATOR.join(str(part) for part in parts)
    return f"{prefix}{KEY_SEPARATOR}{namespace}{KEY_SEPARATOR}{tail}"
