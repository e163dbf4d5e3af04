"""DataTables server-side processing for FastAPI + SQLModel"""

import logging
import re
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy import Select
from sqlmodel import Session
from sqlmodel.ext.asyncio.session import AsyncSession

from fastapi_datatables.config import DataTablesConfig
from fastapi_datatables.exceptions import MethodNotImplementedError, UnsupportedAdapterError
from fastapi_datatables.filters import FilterEngine
from fastapi_datatables.models import DataTablesRequest, DataTablesResponse
from fastapi_datatables.pagination import (
    count_records,
    count_records_async,
    detect_adapter,
    page_index,
)
from fastapi_datatables.resolver import ColumnResolver, query_entities
from fastapi_datatables.sorting import SortEngine

logger = logging.getLogger(__name__)

_COLUMN_KEY = re.compile(r"^columns\[(\d+)\]\[(\w+)\](?:\[(\w+)\])?$")
_ORDER_KEY = re.compile(r"^order\[(\d+)\]\[(\w+)\]$")
# Upper bound on bracketed indexes accepted from the query string
_MAX_INDEX = 1000


def _indexed_params(query_params: Any, pattern: re.Pattern) -> List[Dict[str, Any]]:
    """
    Collect bracketed query parameters into a list of dicts indexed by position.

    ``columns[0][search][value]=x`` becomes ``[{"search": {"value": "x"}}]``.
    Missing indexes are filled with empty dicts so positions are preserved.
    """
    entries: Dict[int, Dict[str, Any]] = {}
    for key, value in query_params.multi_items():
        match = pattern.match(key)
        if match is None:
            continue
        groups = match.groups()
        index, name = int(groups[0]), groups[1]
        if index > _MAX_INDEX:
            continue
        sub = groups[2] if len(groups) > 2 else None
        entry = entries.setdefault(index, {})
        if sub is None:
            entry[name] = value
        else:
            nested = entry.setdefault(name, {})
            if isinstance(nested, dict):
                nested[sub] = value
    if not entries:
        return []
    return [entries.get(i, {}) for i in range(max(entries) + 1)]


def _parse_order(raw_order: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Keep the order entries whose column is an integer."""
    order = []
    for item in raw_order:
        try:
            column = int(item.get("column"))
        except (TypeError, ValueError):
            continue
        order.append({"column": column, "dir": item.get("dir") or "asc"})
    return order


def parse_datatables_request(request: Request) -> DataTablesRequest:
    """
    Parse a DataTables server-side request from query parameters.

    Understands the parameters sent by DataTables for GET requests::

        ?draw=1&start=0&length=10&search[value]=foo&search[regex]=false
        &columns[0][data]=name&columns[0][searchable]=true
        &columns[0][orderable]=true&columns[0][search][value]=
        &order[0][column]=0&order[0][dir]=asc

    Args:
        request: FastAPI Request object containing query parameters

    Returns:
        DataTablesRequest: Parsed request

    Raises:
        HTTPException: If draw, start or length are invalid
    """
    query_params = request.query_params
    # A column is orderable only when the client says so
    columns = [
        {"orderable": "false", **entry} for entry in _indexed_params(query_params, _COLUMN_KEY)
    ]
    payload: Dict[str, Any] = {
        "columns": columns,
        "order": _parse_order(_indexed_params(query_params, _ORDER_KEY)),
    }
    for key in ("draw", "start", "length"):
        value = query_params.get(key)
        if value not in (None, ""):
            payload[key] = value
    if "search[value]" in query_params:
        payload["search"] = {
            "value": query_params.get("search[value]", ""),
            "regex": query_params.get("search[regex]") or False,
        }

    try:
        return DataTablesRequest.model_validate(payload)
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid DataTables request: {str(e)}",
        ) from e


def build_response(
    draw: int, records_total: int, records_filtered: int, rows: List[Any]
) -> DataTablesResponse[Any]:
    """
    Wrap a page of rows into the DataTables reply envelope.

    Args:
        draw: Draw counter echoed back to the client
        records_total: Row count before searching
        records_filtered: Row count after searching
        rows: Transformed rows of the current page

    Returns:
        DataTablesResponse: Reply envelope
    """
    return DataTablesResponse(
        draw=draw,
        recordsTotal=records_total,
        recordsFiltered=records_filtered,
        data=rows,
    )


class DatatableManager:
    """
    DataTables server-side processing manager.

    Orchestrates SortEngine, FilterEngine and a pagination strategy to turn a
    grid fetch request into a page of rows plus the row counts the client
    needs. Records are sorted, then filtered, then paginated.

    Subclass it to provide the raw records and the row shape:

        class UserDatatable(DatatableManager):
            def get_raw_records(self):
                return select(User)

            def transform_row(self, user):
                return {"name": user.name, "status": user.status}

        users_table = UserDatatable(DataTablesConfig(...))

        @app.get("/users/datatable")
        def users(
            params: DataTablesRequest = Depends(parse_datatables_request),
            session: Session = Depends(get_session),
        ):
            return users_table.generate_response(params, session)
    """

    def __init__(self, config: DataTablesConfig):
        """
        Initialize DatatableManager.

        Args:
            config: Configuration bound to this manager for its lifetime
        """
        self.config = config
        self.paginator = config.build_paginator()

    # --- Collaborator hooks ---

    def get_raw_records(self) -> Select:
        """Base query listing every record of the grid."""
        raise MethodNotImplementedError("Please implement get_raw_records() in your class.")

    def transform_row(self, record: Any) -> Any:
        """Shape of one record in the reply."""
        raise MethodNotImplementedError("Please implement transform_row() in your class.")

    def data(self, records: List[Any]) -> List[Any]:
        return [self.transform_row(record) for record in records]

    # --- Pipeline ---

    def build_resolver(self, query: Select) -> ColumnResolver:
        """
        Column resolver for one request.

        Models from the configuration take precedence over entities selected
        by the query.
        """
        models = query_entities(query)
        models.update({model.__name__: model for model in self.config.models})
        return ColumnResolver(models)

    def db_adapter(self, session: Any) -> str:
        """
        Adapter used for text casts.

        Raises:
            UnsupportedAdapterError: If not configured and not detectable
        """
        adapter = self.config.db_adapter or detect_adapter(session)
        if adapter is None:
            raise UnsupportedAdapterError("<unbound session>")
        return adapter

    def sort_records(
        self, query: Select, request: DataTablesRequest, resolver: ColumnResolver
    ) -> Select:
        return SortEngine(resolver, self.config.sortable_columns).apply_sort(query, request)

    def filter_records(
        self,
        query: Select,
        request: DataTablesRequest,
        resolver: ColumnResolver,
        adapter: str,
    ) -> Select:
        engine = FilterEngine(resolver, self.config.searchable_columns, adapter)
        return engine.apply_filters(query, request)

    def paginate_records(self, query: Select, request: DataTablesRequest) -> Select:
        page = page_index(request.start, request.length)
        logger.debug(
            "Paginating with %s: page %d of size %d", self.paginator.name, page, request.length
        )
        return self.paginator.window(query, page, request.length)

    def fetch_records(
        self,
        query: Select,
        request: DataTablesRequest,
        resolver: ColumnResolver,
        adapter: Optional[str],
    ) -> Select:
        """
        Sort, filter and paginate the raw query, in that order.

        Args:
            query: Raw records query
            request: Grid fetch request
            resolver: Column resolver for this request
            adapter: Database adapter for text casts; only read when searching

        Returns:
            Select: Query for the rows of the requested page
        """
        if request.order:
            query = self.sort_records(query, request, resolver)
        if request.has_search_terms:
            query = self.filter_records(query, request, resolver, adapter)
        if not request.unbounded:
            query = self.paginate_records(query, request)
        return query

    def _prepare(self, request: DataTablesRequest, session: Any, query: Optional[Select]):
        raw = query if query is not None else self.get_raw_records()
        resolver = self.build_resolver(raw)
        # Text casts only matter when a search term is present
        adapter = None
        filtered = raw
        if request.has_search_terms:
            adapter = self.db_adapter(session)
            filtered = self.filter_records(raw, request, resolver, adapter)
        page = self.fetch_records(raw, request, resolver, adapter)
        return raw, filtered, page

    def generate_response(
        self,
        request: DataTablesRequest,
        session: Session,
        query: Optional[Select] = None,
    ) -> DataTablesResponse[Any]:
        """
        Generate the DataTables reply for a request.

        Args:
            request: Grid fetch request
            session: Database session
            query: Raw records query; defaults to get_raw_records()

        Returns:
            DataTablesResponse: Reply envelope

        Raises:
            ColumnResolutionError: If a declared column cannot be resolved
            MethodNotImplementedError: If a collaborator hook is missing
            UnsupportedAdapterError: If no text cast type is known
        """
        raw, filtered, page = self._prepare(request, session, query)
        records_total = count_records(raw, session)
        records_filtered = count_records(filtered, session)
        records = session.exec(page).all()
        logger.debug(
            "draw=%d total=%d filtered=%d rows=%d",
            request.draw,
            records_total,
            records_filtered,
            len(records),
        )
        return build_response(request.draw, records_total, records_filtered, self.data(records))

    async def generate_response_async(
        self,
        request: DataTablesRequest,
        session: AsyncSession,
        query: Optional[Select] = None,
    ) -> DataTablesResponse[Any]:
        """
        Generate the DataTables reply for a request asynchronously.

        Args:
            request: Grid fetch request
            session: Async database session
            query: Raw records query; defaults to get_raw_records()

        Returns:
            DataTablesResponse: Reply envelope
        """
        raw, filtered, page = self._prepare(request, session, query)
        records_total = await count_records_async(raw, session)
        records_filtered = await count_records_async(filtered, session)
        result = await session.exec(page)
        records = result.all()
        return build_response(request.draw, records_total, records_filtered, self.data(records))
