"""
Knowledge about which optional columns the connected database actually has.
"""

import logging

from sqlalchemy.exc import DBAPIError

logger = logging.getLogger(__name__)

_MISSING_COLUMN_MARKERS = (
    "does not exist",  # postgres
    "no column named",  # sqlite
    "has no column",  # sqlite
    "unknown column",  # mysql
    "could not find",  # postgrest schema cache
)


def is_missing_column_error(error: BaseException, column: str) -> bool:
    """Whether a write failed because ``column`` is absent from the table."""
    if not isinstance(error, DBAPIError):
        return False
    message = str(error.orig if error.orig is not None else error).lower()
    if column.lower() not in message:
        return False
    return any(marker in message for marker in _MISSING_COLUMN_MARKERS)


class SchemaCapabilityCache:
    """
    Remembers whether optional columns exist.

    Each column starts unknown. Unknown columns are still attempted; once a
    write proves a column missing it is skipped until invalidated (e.g.
    after a migration runs).
    """

    def __init__(self) -> None:
        self._columns: dict[str, bool] = {}

    def status(self, column: str) -> bool | None:
        """True/False once known, None while unknown."""
        return self._columns.get(column)

    def is_available(self, column: str) -> bool:
        return self._columns.get(column, True)

    def mark_missing(self, column: str) -> None:
        if self._columns.get(column) is not False:
            logger.warning(
                "Optional column missing, skipping it until the schema is migrated",
                extra={"column": column},
            )
        self._columns[column] = False

    def mark_present(self, column: str) -> None:
        self._columns.setdefault(column, True)

    def invalidate(self, column: str | None = None) -> None:
        """Forget what is known about one column, or all of them."""
        if column is None:
            self._columns.clear()
        else:
            self._columns.pop(column, None)


# Process-wide instance handed to generators by the dependency wiring
_plan_item_capabilities = SchemaCapabilityCache()


def get_plan_item_capabilities() -> SchemaCapabilityCache:
    return _plan_item_capabilities
