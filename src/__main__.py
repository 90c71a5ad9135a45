"""
캐시 운영 CLI

사용법:
    python -m src stats                              # 활성 백엔드와 캐시 통계 출력
    python -m src invalidate "takaro:players:*"      # 패턴과 일치하는 캐시 삭제

설정은 환경 변수(REDIS_URL, CACHE_KEY_PREFIX, LOG_LEVEL 등)에서 읽습니다.
"""

import argparse
import asyncio
import json
import sys
from typing import Optional, Sequence

from src.cache import CacheStore
from src.config import AppConfig, LoggingConfig
from src.observability import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="python -m src", description="Takaro dashboard cache tools")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("stats", help="show active backend and cache statistics")

    invalidate = commands.add_parser("invalidate", help="delete keys matching a glob pattern")
    invalidate.add_argument("pattern", help='glob pattern with a single "*", e.g. takaro:players:*')

    return parser


async def run(args: argparse.Namespace, config: AppConfig) -> int:
    cache = await CacheStore.create(config.cache)
    try:
        if args.command == "stats":
            stats = await cache.stats()
            print(json.dumps(stats.model_dump(mode="json"), indent=2, ensure_ascii=False))
            return 0

        deleted = await cache.delete_pattern(args.pattern)
        print(f"Deleted {deleted} key(s) matching {args.pattern!r} ({cache.backend_name})")
        return 0
    finally:
        await cache.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # 설정 로드 로그도 같은 형식으로 출력되도록 로깅을 먼저 설정
    configure_logging(LoggingConfig.from_env())
    config = AppConfig.from_env()

    is_valid, errors = config.validate()
    if not is_valid:
        for error in errors:
            print(f"설정 오류: {error}", file=sys.stderr)
        return 2

    return asyncio.run(run(args, config))


if __name__ == "__main__":
    sys.exit(main())
