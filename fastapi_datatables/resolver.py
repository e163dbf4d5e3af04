"""Column descriptor resolution with legacy dotted-notation fallback."""

import logging
from typing import Any, Dict, Mapping, Optional, Tuple

import inflection
from sqlalchemy import ColumnElement, Select

from fastapi_datatables.exceptions import ColumnResolutionError
from fastapi_datatables.models import Resolution, ResolutionOutcome, ResolvedField

logger = logging.getLogger(__name__)

LEGACY_NOTATION_MESSAGE = (
    "[DEPRECATED] Using table_name.column_name notation is deprecated. "
    "Declare columns as 'ModelName.field_name' instead."
)


def split_descriptor(descriptor: str) -> Optional[Tuple[str, str]]:
    """
    Split ``"Container.field"`` into its two parts.

    Returns:
        Optional[Tuple[str, str]]: (container, field) or None if malformed
    """
    container, sep, field = descriptor.partition(".")
    if not sep or not container or not field or "." in field:
        return None
    return container, field


def legacy_container_name(label: str) -> str:
    """
    Derive a model class name from a table-style label.

    ``users`` -> ``User``, ``blog_posts`` -> ``BlogPost``, ``Posts`` -> ``Post``.
    """
    return inflection.camelize(inflection.singularize(inflection.underscore(label)))


def is_mapped_attribute(attr: Any) -> bool:
    """
    Whether a class attribute is usable in SQL expressions.

    Columns and hybrid properties qualify; methods, metadata and other plain
    class attributes do not.
    """
    if attr is None:
        return False
    return isinstance(attr, ColumnElement) or hasattr(attr, "__clause_element__")


def query_entities(query: Select) -> Dict[str, type]:
    """
    Map class names to the ORM entities selected by a query.

    Args:
        query: SQLAlchemy Select query

    Returns:
        Dict[str, type]: Entities keyed by class name
    """
    entities: Dict[str, type] = {}
    for description in query.column_descriptions:
        entity = description.get("entity")
        if entity is not None:
            entities.setdefault(entity.__name__, entity)
    return entities


class ColumnResolver:
    """
    Resolves declared column descriptors to model fields.

    A descriptor is first read as ``"ModelName.field"``; if that fails it is
    read in the deprecated ``"table_name.field"`` notation. Results are cached
    for the lifetime of the resolver, which is a single request.
    """

    def __init__(self, models: Mapping[str, type]):
        """
        Initialize ColumnResolver.

        Args:
            models: Model classes keyed by class name
        """
        self.models = dict(models)
        self._cache: Dict[str, ResolvedField] = {}

    def _lookup(self, container: str, field: str) -> Optional[ResolvedField]:
        model = self.models.get(container)
        if model is None or not is_mapped_attribute(getattr(model, field, None)):
            return None
        return ResolvedField(container=container, field=field)

    def _primary(self, descriptor: str) -> Optional[ResolvedField]:
        parts = split_descriptor(descriptor)
        if parts is None:
            return None
        return self._lookup(*parts)

    def _legacy(self, descriptor: str) -> Optional[ResolvedField]:
        parts = split_descriptor(descriptor)
        if parts is None:
            return None
        label, field = parts
        return self._lookup(legacy_container_name(label), field)

    def attempt(self, descriptor: str) -> Resolution:
        """
        Try the qualified notation, then the legacy notation.

        Args:
            descriptor: Declared column descriptor

        Returns:
            Resolution: Tagged outcome with the resolved field, if any
        """
        resolved = self._primary(descriptor)
        if resolved is not None:
            return Resolution(outcome=ResolutionOutcome.PRIMARY, field=resolved)
        resolved = self._legacy(descriptor)
        if resolved is not None:
            return Resolution(outcome=ResolutionOutcome.FALLBACK, field=resolved)
        return Resolution(outcome=ResolutionOutcome.FAILED)

    def resolve(self, descriptor: str) -> ResolvedField:
        """
        Resolve a descriptor, falling back to the legacy notation.

        Args:
            descriptor: Declared column descriptor

        Returns:
            ResolvedField: The model field

        Raises:
            ColumnResolutionError: If neither notation names a known field
        """
        cached = self._cache.get(descriptor)
        if cached is not None:
            return cached

        resolution = self.attempt(descriptor)
        if resolution.outcome == ResolutionOutcome.FAILED:
            raise ColumnResolutionError(descriptor, "no model field matches either notation")
        if resolution.outcome == ResolutionOutcome.FALLBACK:
            self._deprecated()
        self._cache[descriptor] = resolution.field
        return resolution.field

    def resolve_legacy(self, descriptor: str) -> ResolvedField:
        """
        Resolve a descriptor already known to use the legacy notation.

        Args:
            descriptor: Declared column descriptor, e.g. ``"users.name"``

        Returns:
            ResolvedField: The model field

        Raises:
            ColumnResolutionError: If the derived model or field does not exist
        """
        cached = self._cache.get(descriptor)
        if cached is not None:
            return cached

        self._deprecated()
        resolved = self._legacy(descriptor)
        if resolved is None:
            raise ColumnResolutionError(descriptor, "legacy notation names no known field")
        self._cache[descriptor] = resolved
        return resolved

    @staticmethod
    def _deprecated() -> None:
        # stacklevel 3 attributes the record to whoever called resolve()
        logger.warning(LEGACY_NOTATION_MESSAGE, stacklevel=3)

    def model_for(self, resolved: ResolvedField) -> type:
        """Model class a resolved field belongs to."""
        return self.models[resolved.container]

    def column_for(self, resolved: ResolvedField) -> Any:
        """SQLAlchemy column attribute for a resolved field."""
        return getattr(self.model_for(resolved), resolved.field)
