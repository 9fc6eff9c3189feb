"""Declarative base for record models."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, ClassVar

from querykit.relationships import Relation, register_model

if TYPE_CHECKING:
    from querykit.builder import QueryBuilder
    from querykit.session import Session


class ModelMeta(type):
    """Metaclass that collects relation declarations into ``__relations__``."""

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ) -> ModelMeta:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        # Skip processing for the Base class itself
        if name == "Base" and not bases:
            return cls

        tablename = namespace.get("__tablename__")
        if tablename is None:
            tablename = table_name_for(name)
        cls.__tablename__ = tablename  # type: ignore[attr-defined]

        # Inherited relations are re-bound to the subclass
        relations: dict[str, Relation] = {}
        for base in reversed(bases):
            for rel_name, rel in getattr(base, "__relations__", {}).items():
                inherited = rel.copy()
                inherited.resolve(cls, rel_name)  # type: ignore[arg-type]
                relations[rel_name] = inherited

        for attr_name, attr_value in namespace.items():
            if isinstance(attr_value, Relation):
                attr_value.resolve(cls, attr_name)  # type: ignore[arg-type]
                relations[attr_name] = attr_value
                # Removed from the class so instance access goes through __getattr__
                delattr(cls, attr_name)

        cls.__relations__ = relations  # type: ignore[attr-defined]

        register_model(cls)  # type: ignore[arg-type]

        return cls


def table_name_for(class_name: str) -> str:
    """Derive a table name: ``UserPost`` -> ``user_posts``, ``Category`` -> ``categories``."""
    snake = re.sub(r"(?<!^)(?=[A-Z])", "_", class_name).lower()
    if snake.endswith("y") and not snake.endswith(("ay", "ey", "oy", "uy")):
        return snake[:-1] + "ies"
    return snake + "s"


class Base(metaclass=ModelMeta):
    """Base class for record models.

    Column values are plain instance attributes; relations are declared with
    ``has_many`` / ``has_one`` / ``belongs_to`` and filled in by eager loading.

    Example:
        >>> class User(Base):
        ...     __tablename__ = "users"
        ...     posts = has_many("Post", foreign_key="user_id")
    """

    __tablename__: ClassVar[str]
    __relations__: ClassVar[dict[str, Relation]]
    __primary_key__: ClassVar[str] = "id"

    _loaded_relationships: dict[str, Any]
    _original: dict[str, Any]

    def __init__(self, **attributes: Any) -> None:
        object.__setattr__(self, "_loaded_relationships", {})
        object.__setattr__(self, "_original", {})
        for key, value in attributes.items():
            if key in self.__relations__:
                self._set_relationship(key, value)
            else:
                setattr(self, key, value)

    def __repr__(self) -> str:
        pk = self.__primary_key__
        if pk in self.__dict__:
            return f"<{self.__class__.__name__} {pk}={self.__dict__[pk]!r}>"
        return f"<{self.__class__.__name__}>"

    def __getattr__(self, name: str) -> Any:
        """Handle access to relationship attributes."""
        if name.startswith("_"):
            raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

        if name in type(self).__relations__:
            loaded = object.__getattribute__(self, "_loaded_relationships")
            if name in loaded:
                return loaded[name]
            raise AttributeError(
                f"Relationship '{name}' is not loaded. "
                "Use eager loading with with_() or Session.load()."
            )

        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    def _set_relationship(self, name: str, value: Any) -> None:
        """Set a loaded relationship value."""
        self._loaded_relationships[name] = value

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded_relationships

    @classmethod
    def get_relation(cls, name: str) -> Relation | None:
        """The relation declared under ``name``, or None."""
        return cls.__relations__.get(name)

    def to_dict(self, include_relationships: bool = False) -> dict[str, Any]:
        """Convert model instance to a dictionary."""
        result = {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

        if include_relationships:
            for rel_name, rel_value in self._loaded_relationships.items():
                if isinstance(rel_value, list):
                    result[rel_name] = [_as_dict(item) for item in rel_value]
                else:
                    result[rel_name] = _as_dict(rel_value)

        return result

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Base:
        """Create an instance from a database row, marking it clean."""
        instance = cls(**row)
        instance._sync_original()
        return instance

    def _sync_original(self) -> None:
        object.__setattr__(self, "_original", self.to_dict())

    def get_dirty(self) -> dict[str, Any]:
        """Attributes changed since the instance was loaded or saved."""
        return {
            key: value
            for key, value in self.to_dict().items()
            if key not in self._original or self._original[key] != value
        }

    # ========== Active record helpers ==========

    @classmethod
    def query(cls, session: Session) -> QueryBuilder:
        """Begin a query on this model's table, hydrating results into it."""
        return session.query(cls)

    @classmethod
    def all(cls, session: Session) -> list[Any]:
        return cls.query(session).get()

    @classmethod
    def find(cls, session: Session, id: Any) -> Any:
        """Fetch one instance by primary key, or None."""
        return cls.query(session).where(cls.__primary_key__, "=", id).first()

    def save(self, session: Session) -> bool:
        """Insert a new record or update the changed columns of a loaded one.

        Returns True when a row was written (or nothing needed writing).
        """
        pk = self.__primary_key__
        pk_value = self._original.get(pk)

        if pk_value is not None:
            dirty = self.get_dirty()
            if not dirty:
                return True
            affected = session.builder().update(self.__tablename__, dirty).where(pk, "=", pk_value).execute()
            self._sync_original()
            return affected > 0

        payload = self.to_dict()
        if payload.get(pk) is None:
            payload.pop(pk, None)
        new_id = session.builder().insert(self.__tablename__, payload).insert_get_id()
        if new_id is not None and getattr(self, pk, None) is None:
            setattr(self, pk, new_id)
        self._sync_original()
        return True


def _as_dict(value: Any) -> Any:
    if isinstance(value, Base):
        return value.to_dict()
    return value
