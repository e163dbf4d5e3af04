"""DataTables request, predicate and response models"""

from enum import StrEnum
from typing import Generic, List, Literal, Optional, Tuple, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SortDirection(StrEnum):
    """Sorting directions"""

    ASC = "asc"
    DESC = "desc"


class ColumnKind(StrEnum):
    """How a searchable column is matched"""

    TEXT = "text"  # CAST(col AS text) ILIKE %value%
    ENUM = "enum"  # col IN (codes whose label matches)


class ResolutionOutcome(StrEnum):
    """Which strategy resolved a column descriptor"""

    PRIMARY = "primary"
    FALLBACK = "fallback"
    FAILED = "failed"


T = TypeVar("T")


class SearchParams(BaseModel):
    """Search box state, global or per column"""

    model_config = ConfigDict(frozen=True)

    value: str = ""
    regex: bool = False


class ColumnSpec(BaseModel):
    """A column displayed by the client grid.

    The display index of a column is its position in
    ``DataTablesRequest.columns``.
    """

    model_config = ConfigDict(frozen=True)

    data: str = ""
    name: str = ""
    searchable: bool = True
    orderable: bool = True
    search: SearchParams = Field(default_factory=SearchParams)


class OrderParams(BaseModel):
    """Requested ordering on a displayed column"""

    model_config = ConfigDict(frozen=True)

    column: int
    dir: str = SortDirection.ASC.value


class DataTablesRequest(BaseModel):
    """A grid fetch request as issued by a DataTables client."""

    model_config = ConfigDict(frozen=True)

    draw: int = 0
    start: int = 0
    length: int = 10
    search: Optional[SearchParams] = None
    columns: List[ColumnSpec] = Field(default_factory=list)
    order: List[OrderParams] = Field(default_factory=list)

    @field_validator("start")
    @classmethod
    def _check_start(cls, value: int) -> int:
        if value < 0:
            raise ValueError("start must be >= 0")
        return value

    @field_validator("length")
    @classmethod
    def _check_length(cls, value: int) -> int:
        if value != -1 and value < 1:
            raise ValueError("length must be -1 or >= 1")
        return value

    @property
    def unbounded(self) -> bool:
        """True when the client asked for every row (``length == -1``)."""
        return self.length == -1

    @property
    def global_search_value(self) -> str:
        return self.search.value if self.search is not None else ""

    def column_search_value(self, index: int) -> str:
        """Search value typed in the column at ``index``, empty when absent."""
        if index < 0 or index >= len(self.columns):
            return ""
        return self.columns[index].search.value

    @property
    def has_search_terms(self) -> bool:
        if self.global_search_value.strip():
            return True
        return any(column.search.value.strip() for column in self.columns)


class ResolvedField(BaseModel):
    """Backend-addressable field: a SQLModel class name and attribute name."""

    model_config = ConfigDict(frozen=True)

    container: str
    field: str

    def __str__(self) -> str:
        return f"{self.container}.{self.field}"


class Resolution(BaseModel):
    """Outcome of resolving a column descriptor"""

    model_config = ConfigDict(frozen=True)

    outcome: ResolutionOutcome
    field: Optional[ResolvedField] = None


class SubstringMatch(BaseModel):
    """Case-insensitive substring test on the text form of a field"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["substring"] = "substring"
    field: ResolvedField
    value: str


class EnumMembershipMatch(BaseModel):
    """Membership test of a coded field against the selected codes"""

    model_config = ConfigDict(frozen=True)

    kind: Literal["enum"] = "enum"
    field: ResolvedField
    coded_values: Tuple[int, ...]


FilterPredicate = Union[SubstringMatch, EnumMembershipMatch]


class SortKey(BaseModel):
    """One ORDER BY term"""

    model_config = ConfigDict(frozen=True)

    field: ResolvedField
    direction: SortDirection = SortDirection.ASC


class DataTablesResponse(BaseModel, Generic[T]):
    """Reply envelope consumed by the DataTables client"""

    draw: int
    recordsTotal: int
    recordsFiltered: int
    data: List[T]
    error: Optional[str] = None
