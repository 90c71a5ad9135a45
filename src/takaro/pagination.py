"""
페이지네이션 헬퍼

페이지 단위 API를 0페이지부터 순서대로 호출하여 전체 결과를 모읍니다.
캐싱은 하지 않으며, 보통 memoize의 producer 안에서 사용됩니다.

종료 조건:
    1. 누적 개수가 서버가 보고한 meta.total에 도달
    2. 누적 개수가 max_total에 도달 (정확히 max_total개로 잘라냄, total이 없거나 더 크면 경고 로그)
    3. 서버가 total을 보고하지 않음 (단일 페이지)
    4. total에 도달하기 전에 빈 페이지가 반환됨 (total 불일치)
"""

from typing import Any, Awaitable, Callable, TypeAlias

import structlog

from src.takaro.models import Page

logger = structlog.get_logger(__name__)

PageFetcher: TypeAlias = Callable[[int, int], Awaitable[Any]]


async def fetch_all_pages(
    page_fetcher: PageFetcher,
    page_size: int = 100,
    max_total: int = 10000,
) -> list[Any]:
    """
    모든 페이지를 가져와 하나의 리스트로 반환

    Args:
        page_fetcher: (page, limit)를 받아 {"data": [...], "meta": {"total": n}}
            형태의 응답을 반환하는 비동기 함수
        page_size: 페이지당 항목 수
        max_total: 최대 누적 항목 수

    Returns:
        list: 도착 순서대로 누적된 항목

    Raises:
        ValueError: page_size 또는 max_total이 양수가 아닌 경우
        page_fetcher가 던진 예외는 그대로 전파됩니다.
    """
    if page_size <= 0 or max_total <= 0:
        raise ValueError("page_size and max_total must be positive")

    results: list[Any] = []
    page = 0
    total = None

    while True:
        response = Page.from_response(await page_fetcher(page, page_size))
        results.extend(response.data)
        total = response.meta.total
        page += 1

        if len(results) >= max_total:
            # 서버 total이 max_total 이하이면 결과가 완전하므로 경고하지 않음
            if not total or total > max_total:
                logger.warning(
                    "페이지네이션 최대 개수 도달, 중단",
                    max_total=max_total,
                    total=total,
                    pages=page,
                )
            del results[max_total:]
            break

        if not total or len(results) >= total:
            break

        if not response.data:
            logger.warning(
                "total에 도달하기 전에 빈 페이지 반환, 중단",
                total=total,
                fetched=len(results),
                pages=page,
            )
            break

    if total and total > page_size:
        logger.info("페이지네이션 조회 완료", fetched=len(results), total=total, pages=page)

    return results
