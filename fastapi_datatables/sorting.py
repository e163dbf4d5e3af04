"""Sort engine for applying multi-column ordering to queries."""

import logging
from typing import List

from sqlalchemy import Select

from fastapi_datatables.exceptions import ColumnResolutionError
from fastapi_datatables.models import DataTablesRequest, SortDirection, SortKey
from fastapi_datatables.resolver import ColumnResolver

logger = logging.getLogger(__name__)


def normalize_direction(raw: str) -> SortDirection:
    """Case-insensitive "asc"/"desc"; anything else sorts ascending."""
    try:
        return SortDirection(str(raw).strip().lower())
    except ValueError:
        return SortDirection.ASC


class SortEngine:
    """
    Engine for applying sorting to SQL queries.

    Order entries refer to displayed columns by index. Only displayed columns
    flagged orderable count: the n-th orderable displayed column sorts by the
    n-th declared sortable column.
    """

    def __init__(self, resolver: ColumnResolver, sortable_columns: List[str]):
        """
        Initialize SortEngine.

        Args:
            resolver: Column resolver for the current request
            sortable_columns: Declared sortable column descriptors
        """
        self.resolver = resolver
        self.sortable_columns = sortable_columns

    def sortable_descriptor(self, request: DataTablesRequest, column_index: int) -> str:
        """
        Declared sortable descriptor for a displayed column.

        Raises:
            ColumnResolutionError: If the column is not orderable or has no
                declared sortable column
        """
        orderable = [i for i, column in enumerate(request.columns) if column.orderable]
        try:
            position = orderable.index(column_index)
        except ValueError:
            raise ColumnResolutionError(
                str(column_index), "displayed column is not orderable"
            ) from None
        if position >= len(self.sortable_columns):
            raise ColumnResolutionError(
                str(column_index), f"no sortable column declared at position {position}"
            )
        return self.sortable_columns[position]

    def build_sort_keys(self, request: DataTablesRequest) -> List[SortKey]:
        """
        Sort keys for the request, in request order.

        Args:
            request: Grid fetch request

        Returns:
            List[SortKey]: Primary key first

        Raises:
            ColumnResolutionError: If an order entry cannot be resolved
        """
        keys = []
        for item in request.order:
            descriptor = self.sortable_descriptor(request, item.column)
            keys.append(
                SortKey(
                    field=self.resolver.resolve(descriptor),
                    direction=normalize_direction(item.dir),
                )
            )
        logger.debug("Sort keys: %s", ", ".join(f"{k.field} {k.direction}" for k in keys))
        return keys

    def apply_sort(self, query: Select, request: DataTablesRequest) -> Select:
        """
        Apply the request's ordering to a query.

        Args:
            query: SQLAlchemy Select query
            request: Grid fetch request

        Returns:
            Select: Query with ORDER BY applied
        """
        keys = self.build_sort_keys(request)
        if not keys:
            return query
        clauses = []
        for key in keys:
            column = self.resolver.column_for(key.field)
            clauses.append(column.desc() if key.direction == SortDirection.DESC else column.asc())
        return query.order_by(*clauses)
