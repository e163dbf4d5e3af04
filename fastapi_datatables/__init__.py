"""fastapi-datatables: DataTables server-side processing for FastAPI + SQLModel."""

from . import models as models  # noqa: F401
from .config import DataTablesConfig  # noqa: F401
from .datatable import DatatableManager, build_response, parse_datatables_request  # noqa: F401
from .exceptions import (  # noqa: F401
    ColumnResolutionError,
    DataTablesError,
    MethodNotImplementedError,
    UnsupportedAdapterError,
)
from .filters import PREDICATE_STRATEGIES, FilterEngine  # noqa: F401
from .models import (  # noqa: F401
    ColumnKind,
    ColumnSpec,
    DataTablesRequest,
    DataTablesResponse,
    EnumMembershipMatch,
    FilterPredicate,
    OrderParams,
    ResolvedField,
    SearchParams,
    SortDirection,
    SortKey,
    SubstringMatch,
)
from .pagination import (  # noqa: F401
    PAGINATORS,
    FetchPaginator,
    OffsetPaginator,
    Paginator,
    SlicePaginator,
)
from .resolver import ColumnResolver  # noqa: F401
from .sorting import SortEngine  # noqa: F401

__all__ = [
    # Main class
    "DatatableManager",
    "parse_datatables_request",
    "build_response",
    # Engines
    "ColumnResolver",
    "FilterEngine",
    "SortEngine",
    # Strategy registries
    "PREDICATE_STRATEGIES",
    "PAGINATORS",
    # Paginators
    "Paginator",
    "OffsetPaginator",
    "SlicePaginator",
    "FetchPaginator",
    # Configuration
    "DataTablesConfig",
    # Errors
    "DataTablesError",
    "ColumnResolutionError",
    "MethodNotImplementedError",
    "UnsupportedAdapterError",
    # Models
    "ColumnKind",
    "ColumnSpec",
    "DataTablesRequest",
    "DataTablesResponse",
    "EnumMembershipMatch",
    "FilterPredicate",
    "OrderParams",
    "ResolvedField",
    "SearchParams",
    "SortDirection",
    "SortKey",
    "SubstringMatch",
    # Module
    "models",
]
