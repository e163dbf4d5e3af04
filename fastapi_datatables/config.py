"""Configuration classes for fastapi-datatables."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fastapi_datatables.exceptions import UnsupportedAdapterError
from fastapi_datatables.pagination import PAGINATORS, Paginator, get_paginator
from fastapi_datatables.resolver import split_descriptor

# Canonical adapter name for each accepted spelling
ADAPTER_ALIASES: Dict[str, str] = {
    "oracle": "oracle",
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "pg": "postgresql",
    "mysql": "mysql",
    "mysql2": "mysql",
    "mariadb": "mysql",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
}


def normalize_adapter(adapter: str) -> str:
    """
    Map an adapter or dialect name to its canonical form.

    Args:
        adapter: Adapter identifier, e.g. "pg" or a SQLAlchemy dialect name

    Returns:
        str: One of "oracle", "postgresql", "mysql", "sqlite"

    Raises:
        UnsupportedAdapterError: If the adapter is not known
    """
    try:
        return ADAPTER_ALIASES[adapter.lower()]
    except (KeyError, AttributeError):
        raise UnsupportedAdapterError(str(adapter)) from None


@dataclass
class DataTablesConfig:
    """
    Construction-time configuration for a DatatableManager.

    One config is bound to one manager for its whole lifetime; nothing here
    changes between requests.

    Attributes:
        searchable_columns: Column descriptors matched by the search boxes, in
            the order of the displayed searchable columns
        sortable_columns: Column descriptors used for ordering, in the order
            of the displayed orderable columns
        models: SQLModel classes that descriptors may name. Entities selected
            by the raw query are always available as well.
        db_adapter: Database adapter used to pick the text cast type for
            substring search. None detects it from the session.
        paginator: Pagination strategy name ("simple", "slice" or "fetch")

    Example:
        config = DataTablesConfig(
            searchable_columns=["User.name", "User.status"],
            sortable_columns=["User.name", "User.status"],
            models=[User],
            db_adapter="postgresql",
        )
    """

    searchable_columns: List[str] = field(default_factory=list)
    sortable_columns: List[str] = field(default_factory=list)
    models: List[type] = field(default_factory=list)
    db_adapter: Optional[str] = None
    paginator: str = "simple"

    def __post_init__(self):
        """Validate configuration values."""
        if self.db_adapter is not None:
            try:
                self.db_adapter = normalize_adapter(self.db_adapter)
            except UnsupportedAdapterError as e:
                raise ValueError(f"Unsupported db_adapter '{self.db_adapter}'") from e
        if self.paginator not in PAGINATORS:
            available = ", ".join(sorted(PAGINATORS))
            raise ValueError(f"Unknown paginator '{self.paginator}'. Available: {available}")
        for descriptor in [*self.searchable_columns, *self.sortable_columns]:
            if split_descriptor(descriptor) is None:
                raise ValueError(
                    f"Column descriptor '{descriptor}' must have the form 'Model.field'"
                )

    def build_paginator(self) -> Paginator:
        """Instantiate the configured pagination strategy."""
        return get_paginator(self.paginator)
