"""Shared persistence helpers for the credential store repositories.

Repositories are thin: they translate lookups into SQL against the session
owned by the current Unit of Work and never commit or roll back. Listing
accepts public sort keys and equality filters, each checked against a
per-repository whitelist so request data never names arbitrary columns.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, Generic, TypeVar, cast

from sqlalchemy import Select, and_, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from authgate.core.extensions import db

E = TypeVar("E")

Columns = Mapping[str, InstrumentedAttribute[Any]]


def parse_sort_tokens(raw: Iterable[str]) -> list[tuple[str, bool]]:
    """Split ``["-created_at", "username"]`` into ``(field, is_desc)`` pairs.

    Blank tokens are dropped.
    """
    parsed: list[tuple[str, bool]] = []
    for token in raw:
        is_desc = token.startswith("-")
        field = token.lstrip("-").strip()
        if field:
            parsed.append((field, is_desc))
    return parsed


def apply_sorting(
    stmt: Select[Any],
    sortable: Columns,
    tokens: Iterable[str],
    *,
    pk_attr: InstrumentedAttribute[Any] | None,
) -> Select[Any]:
    """Order ``stmt`` by whitelisted keys, then by primary key.

    :param stmt: Base selectable.
    :param sortable: Public key to column mapping.
    :param tokens: Public sort tokens; unknown keys are skipped.
    :param pk_attr: Final ascending tiebreaker, so listings are stable.
    :returns: The ordered statement.
    """
    orders = [
        col.desc() if is_desc else col.asc()
        for field, is_desc in parse_sort_tokens(tokens)
        if (col := sortable.get(field)) is not None
    ]
    if pk_attr is not None:
        orders.append(pk_attr.asc())
    return stmt.order_by(*orders) if orders else stmt


class BaseRepository(Generic[E]):
    """Repository over a single mapped class.

    Subclasses set ``model`` and may override ``_sortable_fields`` and
    ``_filterable_fields``.
    """

    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """
        :param session: Session of the enclosing Unit of Work. When omitted the
            Flask-scoped ``db.session`` is used.
        """
        self._session: Session | None = session

    @property
    def session(self) -> Session:
        if self._session is not None:
            return self._session
        return cast(Session, db.session)

    def _pk_attr(self) -> InstrumentedAttribute[Any] | None:
        return getattr(self.model, "id", None)

    def _sortable_fields(self) -> Columns:
        return {}

    def _filterable_fields(self) -> Columns:
        return {}

    def _where(self, stmt: Select[Any], filters: Mapping[str, Any] | None) -> Select[Any]:
        """Apply whitelisted equality filters; unknown keys are ignored."""
        allowed = self._filterable_fields()
        clauses = [allowed[k] == v for k, v in (filters or {}).items() if k in allowed]
        return stmt.where(and_(*clauses)) if clauses else stmt

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so its primary key is assigned."""
        self.session.add(instance)
        self.session.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        """Return the row with primary key ``entity_id``, or ``None``."""
        pk_attr = self._pk_attr()
        if pk_attr is None:
            raise RuntimeError(f"{type(self).__name__} has no primary key attribute")
        stmt = select(self.model).where(pk_attr == entity_id)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def exists(self, **filters: Any) -> bool:
        """Return ``True`` when a row matches the whitelisted ``filters``."""
        stmt = self._where(select(func.count()).select_from(self.model), filters)
        return bool(self.session.execute(stmt).scalar())

    def list(
        self,
        *,
        filters: Mapping[str, Any] | None = None,
        sort: Iterable[str] | None = None,
    ) -> list[E]:
        """List rows matching ``filters`` ordered by ``sort`` tokens.

        :param filters: Equality filters keyed by public field name.
        :param sort: Public sort tokens such as ``["-created_at"]``.
        :returns: Matching entities.
        """
        stmt = self._where(select(self.model), filters)
        stmt = apply_sorting(stmt, self._sortable_fields(), sort or [], pk_attr=self._pk_attr())
        return cast(list[E], list(self.session.execute(stmt).scalars().all()))
