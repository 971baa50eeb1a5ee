from collections.abc import Sequence
from typing import TypeVar

from cardkeep.config import settings
from cardkeep.models.failure import InvalidInputError

T = TypeVar("T")


def paginate(results: Sequence[T], page: int, count: int, limit: int | None = None) -> list[T]:
    """
    Slice one page out of `results`.

    `count` must be within [1, limit] and `page` within [1, last page].
    An empty result set has exactly one (empty) page.
    """
    limit = limit or settings.page_limit
    if not 1 <= count <= limit:
        raise InvalidInputError(f"count must be between 1 and {limit}.", detail=str(count))

    last_page = max(1, -(-len(results) // count))
    if not 1 <= page <= last_page:
        raise InvalidInputError(f"page must be between 1 and {last_page}.", detail=str(page))

    start = (page - 1) * count
    return list(results[start : start + count])
