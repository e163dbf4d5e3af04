"""Tests for request and predicate models."""

import pytest
from fastapi_datatables.models import (
    ColumnSpec,
    DataTablesRequest,
    EnumMembershipMatch,
    ResolvedField,
    SearchParams,
    SubstringMatch,
)
from pydantic import ValidationError


class TestDataTablesRequest:
    """Tests for DataTablesRequest validation and helpers."""

    def test_defaults(self):
        request = DataTablesRequest()
        assert request.draw == 0
        assert request.start == 0
        assert request.length == 10
        assert request.search is None
        assert request.columns == []
        assert request.order == []

    def test_string_values_coerced(self):
        request = DataTablesRequest.model_validate({"draw": "4", "start": "20", "length": "-1"})
        assert request.draw == 4
        assert request.start == 20
        assert request.unbounded

    @pytest.mark.parametrize("length", [0, -2])
    def test_invalid_length(self, length):
        with pytest.raises(ValidationError, match="length must be -1 or >= 1"):
            DataTablesRequest(length=length)

    def test_invalid_start(self):
        with pytest.raises(ValidationError, match="start must be >= 0"):
            DataTablesRequest(start=-1)

    def test_frozen(self):
        request = DataTablesRequest()
        with pytest.raises(ValidationError):
            request.length = 5

    def test_column_search_value(self):
        request = DataTablesRequest(
            columns=[ColumnSpec(), ColumnSpec(search=SearchParams(value="x"))]
        )
        assert request.column_search_value(0) == ""
        assert request.column_search_value(1) == "x"
        assert request.column_search_value(2) == ""

    def test_has_search_terms(self):
        assert not DataTablesRequest().has_search_terms
        assert not DataTablesRequest(search=SearchParams(value="  ")).has_search_terms
        assert DataTablesRequest(search=SearchParams(value="a")).has_search_terms
        assert DataTablesRequest(
            columns=[ColumnSpec(search=SearchParams(value="a"))]
        ).has_search_terms


class TestPredicates:
    """Tests for the tagged predicate variants."""

    def test_kinds(self):
        field = ResolvedField(container="User", field="name")
        assert SubstringMatch(field=field, value="a").kind == "substring"
        assert EnumMembershipMatch(field=field, coded_values=(1,)).kind == "enum"

    def test_resolved_field_str(self):
        assert str(ResolvedField(container="User", field="name")) == "User.name"

    def test_resolved_field_hashable(self):
        a = ResolvedField(container="User", field="name")
        b = ResolvedField(container="User", field="name")
        assert {a, b} == {a}
