"""Tests for ColumnResolver."""

import logging
from typing import Optional

import pytest
from fastapi_datatables.exceptions import ColumnResolutionError
from fastapi_datatables.models import ResolutionOutcome, ResolvedField
from fastapi_datatables.resolver import (
    ColumnResolver,
    legacy_container_name,
    query_entities,
    split_descriptor,
)
from sqlmodel import Field, SQLModel, select

RESOLVER_LOGGER = "fastapi_datatables.resolver"


class Post(SQLModel, table=True):
    """Test model for resolver tests."""

    __tablename__ = "resolver_posts"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(default="")


class BlogPost(SQLModel, table=True):
    """Test model with a compound class name."""

    __tablename__ = "resolver_blog_posts"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(default="")


@pytest.fixture
def resolver():
    return ColumnResolver({"Post": Post, "BlogPost": BlogPost})


def deprecation_records(caplog):
    return [r for r in caplog.records if r.name == RESOLVER_LOGGER]


class TestHelpers:
    """Tests for descriptor helpers."""

    def test_split_descriptor(self):
        assert split_descriptor("Post.title") == ("Post", "title")

    @pytest.mark.parametrize("descriptor", ["title", ".title", "Post.", "a.b.c", ""])
    def test_split_descriptor_malformed(self, descriptor):
        assert split_descriptor(descriptor) is None

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("posts", "Post"),
            ("Posts", "Post"),
            ("users", "User"),
            ("blog_posts", "BlogPost"),
            ("categories", "Category"),
        ],
    )
    def test_legacy_container_name(self, label, expected):
        assert legacy_container_name(label) == expected

    def test_query_entities(self):
        entities = query_entities(select(Post))
        assert entities == {"Post": Post}


class TestAttempt:
    """Tests for the tagged two-phase resolution."""

    def test_primary(self, resolver):
        resolution = resolver.attempt("Post.title")
        assert resolution.outcome == ResolutionOutcome.PRIMARY
        assert resolution.field == ResolvedField(container="Post", field="title")

    def test_fallback(self, resolver):
        resolution = resolver.attempt("blog_posts.title")
        assert resolution.outcome == ResolutionOutcome.FALLBACK
        assert resolution.field == ResolvedField(container="BlogPost", field="title")

    def test_failed(self, resolver):
        resolution = resolver.attempt("comments.body")
        assert resolution.outcome == ResolutionOutcome.FAILED
        assert resolution.field is None

    def test_unknown_field_fails(self, resolver):
        assert resolver.attempt("Post.missing").outcome == ResolutionOutcome.FAILED

    @pytest.mark.parametrize(
        "descriptor",
        ["Post.model_dump", "Post.metadata", "Post.__tablename__", "posts.model_validate"],
    )
    def test_non_column_attribute_fails(self, resolver, descriptor):
        assert resolver.attempt(descriptor).outcome == ResolutionOutcome.FAILED
        with pytest.raises(ColumnResolutionError):
            resolver.resolve(descriptor)

    def test_attempt_does_not_log(self, resolver, caplog):
        caplog.set_level(logging.WARNING, logger=RESOLVER_LOGGER)
        resolver.attempt("posts.title")
        assert deprecation_records(caplog) == []


class TestResolve:
    """Tests for ColumnResolver.resolve()."""

    def test_primary_no_notice(self, resolver, caplog):
        caplog.set_level(logging.WARNING, logger=RESOLVER_LOGGER)
        assert resolver.resolve("Post.title") == ResolvedField(container="Post", field="title")
        assert deprecation_records(caplog) == []

    def test_legacy_matches_direct_declaration(self, resolver, caplog):
        caplog.set_level(logging.WARNING, logger=RESOLVER_LOGGER)
        legacy = resolver.resolve("Posts.title")
        direct = ColumnResolver({"Post": Post}).resolve("Post.title")
        assert legacy == direct
        records = deprecation_records(caplog)
        assert len(records) == 1
        assert records[0].levelno == logging.WARNING
        assert "DEPRECATED" in records[0].getMessage()

    def test_notice_points_at_caller(self, resolver, caplog):
        caplog.set_level(logging.WARNING, logger=RESOLVER_LOGGER)
        resolver.resolve("posts.title")
        (record,) = deprecation_records(caplog)
        assert record.funcName == "test_notice_points_at_caller"
        assert record.pathname.endswith("test_resolver.py")

    def test_cached_per_resolver(self, resolver, caplog):
        caplog.set_level(logging.WARNING, logger=RESOLVER_LOGGER)
        first = resolver.resolve("posts.title")
        second = resolver.resolve("posts.title")
        assert first == second
        assert len(deprecation_records(caplog)) == 1

    def test_new_resolver_resolves_again(self, caplog):
        caplog.set_level(logging.WARNING, logger=RESOLVER_LOGGER)
        ColumnResolver({"Post": Post}).resolve("posts.title")
        ColumnResolver({"Post": Post}).resolve("posts.title")
        assert len(deprecation_records(caplog)) == 2

    def test_both_strategies_fail(self, resolver):
        with pytest.raises(ColumnResolutionError) as exc_info:
            resolver.resolve("Comment.body")
        assert exc_info.value.descriptor == "Comment.body"
        assert "Comment.body" in str(exc_info.value)


class TestResolveLegacy:
    """Tests for ColumnResolver.resolve_legacy()."""

    def test_resolve_legacy(self, resolver, caplog):
        caplog.set_level(logging.WARNING, logger=RESOLVER_LOGGER)
        resolved = resolver.resolve_legacy("blog_posts.title")
        assert resolved == ResolvedField(container="BlogPost", field="title")
        assert len(deprecation_records(caplog)) == 1

    def test_resolve_legacy_unknown(self, resolver):
        with pytest.raises(ColumnResolutionError):
            resolver.resolve_legacy("comments.body")


class TestColumnFor:
    """Tests for mapping resolved fields back to model attributes."""

    def test_model_for(self, resolver):
        assert resolver.model_for(ResolvedField(container="Post", field="title")) is Post

    def test_column_for(self, resolver):
        column = resolver.column_for(ResolvedField(container="Post", field="title"))
        assert str(column) == "Post.title"
        assert "resolver_posts.title" in str(select(Post).order_by(column))
