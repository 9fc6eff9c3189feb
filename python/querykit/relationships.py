"""Relation descriptors for models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from querykit.exceptions import ConfigurationError

if TYPE_CHECKING:
    from querykit.base import Base


# Global model registry - maps table names and class names to model classes
_model_registry: dict[str, type[Base]] = {}


def register_model(model_cls: type[Base]) -> None:
    """Register a model class for relationship resolution."""
    _model_registry[model_cls.__tablename__] = model_cls
    _model_registry[model_cls.__name__] = model_cls


def get_model(name: str) -> type[Base] | None:
    """Get a model class by table name or class name."""
    return _model_registry.get(name)


class RelationKind(str, Enum):
    HAS_MANY = "has_many"
    HAS_ONE = "has_one"
    BELONGS_TO = "belongs_to"


@dataclass
class Relation:
    """Stores metadata about a relationship between models.

    For HAS_MANY / HAS_ONE the foreign key lives on the related table and
    points at the owner's ``local_key``. For BELONGS_TO the foreign key lives
    on the owner and points at the related table's ``local_key``.
    """

    kind: RelationKind
    related: str | type[Base]
    foreign_key: str | None = None
    local_key: str = "id"
    name: str | None = None

    # Resolved at class creation / first use
    owner: type[Base] | None = field(default=None, repr=False)
    _related_model: type[Base] | None = field(default=None, repr=False)

    @property
    def uselist(self) -> bool:
        """True for collections (has-many), False for single objects."""
        return self.kind is RelationKind.HAS_MANY

    def resolve(self, owner: type[Base], attr_name: str) -> None:
        """Bind the relation to its owning model and fill in default keys."""
        self.owner = owner
        self.name = attr_name
        if self.foreign_key is None and self.kind is not RelationKind.BELONGS_TO:
            self.foreign_key = f"{singular(owner.__tablename__)}_id"

    @property
    def related_model(self) -> type[Base]:
        """The related model class, looked up in the registry if given by name."""
        if self._related_model is None:
            if isinstance(self.related, str):
                model = get_model(self.related)
                if model is None:
                    raise ConfigurationError(
                        f"Relation '{self.name}' refers to unknown model '{self.related}'"
                    )
                self._related_model = model
            else:
                self._related_model = self.related
        if self.foreign_key is None:
            self.foreign_key = f"{singular(self._related_model.__tablename__)}_id"
        return self._related_model

    @property
    def related_table(self) -> str:
        return self.related_model.__tablename__

    @property
    def parent_key(self) -> str:
        """Column read off each parent record to collect match keys."""
        _ = self.related_model
        if self.kind is RelationKind.BELONGS_TO:
            return self.foreign_key  # type: ignore[return-value]
        return self.local_key

    @property
    def match_column(self) -> str:
        """Column of the related table matched against the collected keys."""
        _ = self.related_model
        if self.kind is RelationKind.BELONGS_TO:
            return self.local_key
        return self.foreign_key  # type: ignore[return-value]

    def empty_value(self) -> Any:
        """Value attached when a parent has no related rows."""
        return [] if self.uselist else None

    def copy(self) -> Relation:
        """Unbound copy, used when a subclass inherits a relation."""
        return Relation(
            kind=self.kind,
            related=self.related,
            foreign_key=self.foreign_key,
            local_key=self.local_key,
        )


def has_many(related: str | type[Base], foreign_key: str | None = None, local_key: str = "id") -> Any:
    """Declare a one-to-many relationship.

    Example:
        >>> class User(Base):
        ...     posts = has_many("Post", foreign_key="user_id")
    """
    return Relation(RelationKind.HAS_MANY, related, foreign_key, local_key)


def has_one(related: str | type[Base], foreign_key: str | None = None, local_key: str = "id") -> Any:
    """Declare a one-to-one relationship whose foreign key is on the related table.

    Example:
        >>> class User(Base):
        ...     profile = has_one("Profile", foreign_key="user_id")
    """
    return Relation(RelationKind.HAS_ONE, related, foreign_key, local_key)


def belongs_to(related: str | type[Base], foreign_key: str | None = None, owner_key: str = "id") -> Any:
    """Declare the inverse side: the foreign key is on this model.

    Example:
        >>> class Post(Base):
        ...     author = belongs_to("User", foreign_key="user_id")
    """
    return Relation(RelationKind.BELONGS_TO, related, foreign_key, owner_key)


def singular(table: str) -> str:
    """Naive singular form of a table name: ``categories`` -> ``category``."""
    if table.endswith("ies"):
        return table[:-3] + "y"
    if table.endswith("s") and not table.endswith("ss"):
        return table[:-1]
    return table
