"""
Debounce manager for throttling periodic maintenance operations.
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple

from database.repository import DebounceRepository


logger = logging.getLogger(__name__)


class DebounceManager:
    """Allows an operation at most once per interval, tracked in the debounce table."""

    def __init__(self, debounce_repository: DebounceRepository):
        """
        Initialize debounce manager.

        Args:
            debounce_repository: Repository for debounce operations
        """
        self.debounce_repository = debounce_repository

    async def can_execute(
        self,
        operation: str,
        interval_seconds: int,
        now: Optional[datetime] = None
    ) -> Tuple[bool, float]:
        """
        Check if an operation can be executed based on debounce interval.

        Args:
            operation: Name of the operation to check
            interval_seconds: Minimum interval between executions in seconds
            now: Reference time (UTC), defaults to the current time

        Returns:
            Tuple of (can_execute, remaining_seconds)
        """
        try:
            last_execution = await self.debounce_repository.get_last_execution(operation)
        except Exception as e:
            logger.error(f"Error checking debounce for operation '{operation}': {e}")
            # A broken store must not block maintenance forever
            return True, 0.0

        if last_execution is None:
            logger.debug(f"Operation '{operation}' has no previous execution, allowing")
            return True, 0.0

        if last_execution.tzinfo is None:
            last_execution = last_execution.replace(tzinfo=timezone.utc)
        reference = now or datetime.now(timezone.utc)
        time_since_last = (reference - last_execution).total_seconds()

        if time_since_last >= interval_seconds:
            logger.debug(
                f"Operation '{operation}' last executed {time_since_last:.1f}s ago, "
                f"allowing (interval: {interval_seconds}s)"
            )
            return True, 0.0

        remaining = interval_seconds - time_since_last
        logger.debug(f"Operation '{operation}' debounced, {remaining:.1f}s remaining")
        return False, remaining

    async def mark_executed(self, operation: str) -> None:
        """
        Mark an operation as executed at the current time.

        Args:
            operation: Name of the operation that was executed
        """
        await self.debounce_repository.update_execution(operation)
        logger.debug(f"Operation '{operation}' marked as executed")
