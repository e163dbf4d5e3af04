"""Filter engine compiling DataTables search terms into SQL conditions."""

import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import CHAR, TEXT, VARCHAR, ColumnElement, Select, and_, cast, false, or_
from sqlalchemy.dialects.oracle import VARCHAR2
from sqlalchemy.types import TypeEngine

from fastapi_datatables.config import normalize_adapter
from fastapi_datatables.models import (
    ColumnKind,
    DataTablesRequest,
    EnumMembershipMatch,
    FilterPredicate,
    ResolvedField,
    SubstringMatch,
)
from fastapi_datatables.resolver import ColumnResolver

# Type alias for predicate compile functions
PredicateStrategyFn = Callable[[Any, Any, TypeEngine], ColumnElement[bool]]

# Text type each adapter casts a column to before substring matching
TEXT_CAST_TYPES: Dict[str, Callable[[], TypeEngine]] = {
    "oracle": lambda: VARCHAR2(4000),
    "postgresql": VARCHAR,
    "mysql": CHAR,
    "sqlite": TEXT,
}


def text_cast_type(adapter: str) -> TypeEngine:
    """
    Text type used to cast a column for substring matching.

    Args:
        adapter: Database adapter identifier

    Returns:
        TypeEngine: SQLAlchemy type instance

    Raises:
        UnsupportedAdapterError: If the adapter is not known
    """
    return TEXT_CAST_TYPES[normalize_adapter(adapter)]()


def defined_enums(model: type) -> Mapping[str, Mapping[str, int]]:
    """
    Enumerated fields declared by a model.

    Models declare them as a class attribute mapping field name to a
    ``{label: code}`` dict::

        class User(SQLModel, table=True):
            __enums__: ClassVar[dict] = {"status": {"active": 0, "inactive": 1}}
    """
    return getattr(model, "__enums__", None) or {}


def is_enum_column(model: type, field: str) -> bool:
    return field in defined_enums(model)


def classify(model: type, field: str) -> ColumnKind:
    """Whether a model field is matched as text or as an enumeration."""
    return ColumnKind.ENUM if is_enum_column(model, field) else ColumnKind.TEXT


def enum_membership(
    field: ResolvedField, mapping: Mapping[str, int], value: str
) -> EnumMembershipMatch:
    """
    Select the codes whose label contains ``value``.

    Matching is case-sensitive and unanchored, so an empty value selects
    every code.

    Args:
        field: Resolved enumerated field
        mapping: Label to code mapping of the field
        value: Search value

    Returns:
        EnumMembershipMatch: Predicate over the selected codes
    """
    pattern = re.compile(re.escape(value))
    codes = tuple(code for label, code in mapping.items() if pattern.search(label))
    return EnumMembershipMatch(field=field, coded_values=codes)


# --- Strategy functions for each predicate kind ---


def _strategy_substring(
    column: Any, predicate: SubstringMatch, text_type: TypeEngine
) -> ColumnElement[bool]:
    return cast(column, text_type).ilike(f"%{predicate.value}%")


def _strategy_enum(
    column: Any, predicate: EnumMembershipMatch, text_type: TypeEngine
) -> ColumnElement[bool]:
    if not predicate.coded_values:
        return false()
    return column.in_(predicate.coded_values)


# Strategy registry: maps predicate kind -> compile function
PREDICATE_STRATEGIES: Dict[str, PredicateStrategyFn] = {
    "substring": _strategy_substring,
    "enum": _strategy_enum,
}


class FilterEngine:
    """
    Engine for turning search terms into SQL conditions.

    The global search phrase is split into words: each word must match at
    least one searchable column. Per-column search values must all match.
    """

    def __init__(
        self,
        resolver: ColumnResolver,
        searchable_columns: List[str],
        db_adapter: str,
    ):
        """
        Initialize FilterEngine.

        Args:
            resolver: Column resolver for the current request
            searchable_columns: Declared searchable column descriptors
            db_adapter: Database adapter identifier for text casts

        Raises:
            UnsupportedAdapterError: If the adapter is not known
        """
        self.resolver = resolver
        self.searchable_columns = searchable_columns
        self.text_type = text_cast_type(db_adapter)

    def resolve(self, descriptor: str) -> ResolvedField:
        """
        Resolve a searchable column descriptor.

        A descriptor starting with a lowercase letter is taken to be in the
        legacy ``table_name.field`` notation without trying the qualified one.
        """
        if descriptor[:1].islower():
            return self.resolver.resolve_legacy(descriptor)
        return self.resolver.resolve(descriptor)

    def build_predicate(self, descriptor: str, value: str) -> Optional[FilterPredicate]:
        """
        Build the predicate matching ``value`` against one column.

        Args:
            descriptor: Declared column descriptor
            value: Search value

        Returns:
            Optional[FilterPredicate]: Predicate, or None for a blank value
        """
        if not value or not value.strip():
            return None
        field = self.resolve(descriptor)
        model = self.resolver.model_for(field)
        if classify(model, field.field) == ColumnKind.ENUM:
            return enum_membership(field, defined_enums(model)[field.field], value)
        return SubstringMatch(field=field, value=value)

    def to_condition(self, predicate: FilterPredicate) -> ColumnElement[bool]:
        """
        Compile a predicate using strategy pattern dispatch.

        Args:
            predicate: Predicate to compile

        Returns:
            ColumnElement[bool]: SQLAlchemy condition
        """
        strategy = PREDICATE_STRATEGIES[predicate.kind]
        column = self.resolver.column_for(predicate.field)
        return strategy(column, predicate, self.text_type)

    def global_search_condition(self, phrase: str) -> Optional[ColumnElement[bool]]:
        """
        Condition for the global search box.

        Args:
            phrase: Global search phrase

        Returns:
            Optional[ColumnElement[bool]]: AND over words of OR over columns,
                or None if there is nothing to search
        """
        atoms = phrase.split() if phrase else []
        if not atoms or not self.searchable_columns:
            return None

        criteria = []
        for atom in atoms:
            per_column = [
                self.to_condition(self.build_predicate(descriptor, atom))
                for descriptor in self.searchable_columns
            ]
            criteria.append(or_(*per_column))
        return and_(*criteria)

    def composite_search_condition(
        self, request: DataTablesRequest
    ) -> Optional[ColumnElement[bool]]:
        """
        Condition for the per-column search boxes.

        The value for the i-th searchable column is read from the i-th
        displayed column of the request.

        Args:
            request: Grid fetch request

        Returns:
            Optional[ColumnElement[bool]]: AND over columns with a value, or None
        """
        if not request.columns:
            return None

        conditions = []
        for index, descriptor in enumerate(self.searchable_columns):
            predicate = self.build_predicate(descriptor, request.column_search_value(index))
            if predicate is not None:
                conditions.append(self.to_condition(predicate))
        if not conditions:
            return None
        return and_(*conditions)

    def combined_condition(self, request: DataTablesRequest) -> Optional[ColumnElement[bool]]:
        """
        Global search AND per-column search, whichever are present.

        Returns:
            Optional[ColumnElement[bool]]: Combined condition or None
        """
        conditions = [
            condition
            for condition in (
                self.global_search_condition(request.global_search_value),
                self.composite_search_condition(request),
            )
            if condition is not None
        ]
        if not conditions:
            return None
        if len(conditions) == 1:
            return conditions[0]
        return and_(*conditions)

    def apply_filters(self, query: Select, request: DataTablesRequest) -> Select:
        """
        Apply the request's search terms to a query.

        Args:
            query: SQLAlchemy Select query
            request: Grid fetch request

        Returns:
            Select: Query with the search conditions applied
        """
        condition = self.combined_condition(request)
        if condition is not None:
            query = query.where(condition)
        return query
