import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

Strategy = Tuple[str, Callable[[], Awaitable[Any]]]


async def first_successful(strategies: Sequence[Strategy], label: str) -> Optional[Any]:
    """Run strategies in order and return the first non-None result.

    A strategy that raises is logged and treated as having returned None.
    """
    for name, strategy in strategies:
        try:
            result = await strategy()
        except Exception as e:
            logger.warning(f"{label}: strategy '{name}' failed: {e}")
            continue
        if result is not None:
            logger.info(f"{label}: strategy '{name}' succeeded")
            return result
        logger.info(f"{label}: strategy '{name}' returned nothing")
    logger.warning(f"{label}: all strategies exhausted")
    return None
