"""Pagination strategies and record counting."""

from typing import Any, Dict, Optional, Type

from sqlalchemy import Select, func
from sqlmodel import Session, select
from sqlmodel.ext.asyncio.session import AsyncSession

from fastapi_datatables.exceptions import MethodNotImplementedError


def page_index(start: int, length: int) -> int:
    """
    1-based page number holding the row at ``start``.

    Args:
        start: Offset of the first requested row
        length: Page size (>= 1)

    Returns:
        int: Page number
    """
    return start // length + 1


def page_offset(page: int, per_page: int) -> int:
    """Offset of the first row of a 1-based page."""
    return (page - 1) * per_page


def detect_adapter(session: Any) -> Optional[str]:
    """
    Read the dialect name of the database a session is bound to.

    Args:
        session: Database session (sync or async)

    Returns:
        Optional[str]: Dialect name such as "postgresql", or None if unbound
    """
    bind = getattr(session, "bind", None)
    if bind is None:
        # Async sessions keep their bind on the wrapped sync session
        sync_session = getattr(session, "sync_session", None)
        bind = getattr(sync_session, "bind", None)
    if bind is None:
        return None
    return bind.dialect.name


class Paginator:
    """
    Windowing strategy applied to a filtered query.

    Subclasses implement ``window``; a manager selects one strategy at
    construction and uses it for every request.
    """

    name = "abstract"

    def window(self, query: Select, page: int, per_page: int) -> Select:
        """
        Restrict a query to one page.

        Args:
            query: Sorted and filtered Select query
            page: 1-based page number
            per_page: Page size

        Returns:
            Select: Query limited to the page
        """
        raise MethodNotImplementedError(
            f"{type(self).__name__} must implement window() to paginate records."
        )


class OffsetPaginator(Paginator):
    """Plain OFFSET/LIMIT."""

    name = "simple"

    def window(self, query: Select, page: int, per_page: int) -> Select:
        return query.offset(page_offset(page, per_page)).limit(per_page)


class SlicePaginator(Paginator):
    """Delegates to SQLAlchemy's ``Select.slice``."""

    name = "slice"

    def window(self, query: Select, page: int, per_page: int) -> Select:
        start = page_offset(page, per_page)
        return query.slice(start, start + per_page)


class FetchPaginator(Paginator):
    """SQL standard ``OFFSET ... FETCH FIRST n ROWS ONLY``.

    Only for backends that implement FETCH (PostgreSQL, Oracle, SQL Server).
    """

    name = "fetch"

    def window(self, query: Select, page: int, per_page: int) -> Select:
        return query.offset(page_offset(page, per_page)).fetch(per_page)


# Strategy registry: maps paginator name -> strategy class
PAGINATORS: Dict[str, Type[Paginator]] = {
    OffsetPaginator.name: OffsetPaginator,
    SlicePaginator.name: SlicePaginator,
    FetchPaginator.name: FetchPaginator,
}


def get_paginator(name: str) -> Paginator:
    """
    Instantiate a registered pagination strategy.

    Args:
        name: Registered paginator name

    Returns:
        Paginator: Strategy instance

    Raises:
        MethodNotImplementedError: If no strategy is registered under ``name``
    """
    paginator_cls = PAGINATORS.get(name)
    if paginator_cls is None:
        raise MethodNotImplementedError(f"No paginator registered as '{name}'.")
    return paginator_cls()


def count_records(query: Select, session: Session) -> int:
    """
    Count rows returned by a query.

    Args:
        query: SQLAlchemy Select query
        session: Database session

    Returns:
        int: Row count
    """
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    return session.exec(count_query).one()


async def count_records_async(query: Select, session: AsyncSession) -> int:
    """Async version of count_records."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    result = await session.exec(count_query)
    return result.one()
