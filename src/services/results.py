from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from utils.errors import BackendError
from utils.logger import get_logger

_logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """
    Outcome of a read the UI renders.

    ok=False means the store could not be read and data is the empty default;
    that is different from ok=True with empty data (nothing there).
    """

    ok: bool
    data: T
    error: Optional[str] = None


async def read_or_empty(
    what: str, fetch: Callable[[], Awaitable[T]], empty: T
) -> ReadResult[T]:
    """Run fetch(); a backend failure becomes ReadResult(ok=False, data=empty)."""
    try:
        return ReadResult(ok=True, data=await fetch())
    except BackendError as exc:
        _logger.error(f"Error fetching {what}: {exc}")
        return ReadResult(ok=False, data=empty, error=str(exc))
