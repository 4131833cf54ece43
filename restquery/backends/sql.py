# Copyright (c) Nex-AGI. All rights reserved.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""SQL query backend using SQLModel/SQLAlchemy.

Conditions are converted with ``to_sqlalchemy()`` and added to a ``select()``
of the model class. Includes map to loader options: to-one relations are
loaded with a join (``joinedload``), to-many relations with a separate
``SELECT ... IN`` query (``selectinload``).

The backend borrows the caller's ``Session``; it never commits or closes it.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, TypeVar

from sqlalchemy import Column, func
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy.orm.interfaces import LoaderOption
from sqlmodel import Session, SQLModel, select
from sqlmodel.sql.expression import SelectOfScalar

from ..filters import search_to_sqlalchemy, to_sqlalchemy
from ..includes import IncludeSpec, RelationType
from ..models import Condition
from .base import QueryBackend, facet_key, parse_order_spec

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)


def get_column(model_class: type[SQLModel], field_name: str) -> Column[Any]:
    """Look up a table column by model attribute or column name.

    Raises:
        ValueError: If the field is not a column of ``model_class``
    """
    attr = getattr(model_class, field_name, None)
    prop = getattr(attr, "property", None)
    columns = getattr(prop, "columns", None)
    if columns:
        return columns[0]

    table = model_class.__table__  # type: ignore[attr-defined]
    for column in table.columns:
        if field_name in (column.key, column.name):
            return column
    raise ValueError(f"Field '{field_name}' not found in model {model_class.__name__}")


def _relationship(model_class: type[Any], relation: str) -> Any:
    attr = getattr(model_class, relation, None)
    if attr is None or not hasattr(getattr(attr, "property", None), "mapper"):
        raise ValueError(f"Relation '{relation}' not found in model {model_class.__name__}")
    return attr


def _unpaged(query: SelectOfScalar[Any]) -> SelectOfScalar[Any]:
    return query.order_by(None).limit(None).offset(None)


def _sort_key(item: Any, field: str) -> tuple[int, Any]:
    value = getattr(item, field, None)
    # NULLs first, and never compared with each other.
    return (0, 0) if value is None else (1, value)


class SQLQueryBackend(QueryBackend[SelectOfScalar[T], T]):
    """Query backend for one SQLModel table class.

    Example:
        >>> with Session(engine) as session:
        ...     backend = SQLQueryBackend(session, Ticket)
        ...     result = apply_query(backend, params, config)
    """

    def __init__(self, session: Session, model_class: type[T]) -> None:
        self._session = session
        self._model_class = model_class

    @property
    def model_class(self) -> type[T]:
        return self._model_class

    def query(self) -> SelectOfScalar[T]:
        return select(self._model_class)

    def where(self, query: SelectOfScalar[T], field: str, condition: Condition) -> SelectOfScalar[T]:
        expression = to_sqlalchemy(condition, get_column(self._model_class, field))
        if expression is None:
            return query
        return query.where(expression)

    def search(self, query: SelectOfScalar[T], text: str, fields: Sequence[str]) -> SelectOfScalar[T]:
        if not fields:
            return query
        columns = [get_column(self._model_class, f) for f in fields]
        return query.where(search_to_sqlalchemy(text, columns))

    def count(self, query: SelectOfScalar[T]) -> int:
        stmt = select(func.count()).select_from(_unpaged(query).subquery())
        return self._session.exec(stmt).one()

    def order_by(self, query: SelectOfScalar[T], field: str, *, descending: bool = False) -> SelectOfScalar[T]:
        column = get_column(self._model_class, field)
        return query.order_by(column.desc() if descending else column.asc())

    def paginate(self, query: SelectOfScalar[T], *, offset: int, limit: int) -> SelectOfScalar[T]:
        return query.offset(offset).limit(limit)

    def fetch(self, query: SelectOfScalar[T], includes: Sequence[IncludeSpec] = ()) -> list[T]:
        options = [self._loader_option(spec) for spec in includes if spec.relation]
        if options:
            logger.debug("Loading %d relation(s) for %s", len(options), self._model_class.__name__)
            query = query.options(*options)
        rows = list(self._session.exec(query).all())
        for spec in includes:
            if spec.relation and spec.type == RelationType.HAS_MANY and spec.order_by:
                self._order_collection(rows, spec)
        return rows

    def group_count(self, query: SelectOfScalar[T], field: str) -> dict[str, int]:
        column = get_column(self._model_class, field)
        subquery = _unpaged(query).subquery()
        grouped = subquery.corresponding_column(column)
        if grouped is None:
            raise ValueError(f"Field '{field}' is not selected by the query")
        stmt = select(grouped, func.count()).group_by(grouped)
        return {facet_key(value): count for value, count in self._session.exec(stmt).all()}

    def _loader_option(self, spec: IncludeSpec) -> LoaderOption:
        attr = _relationship(self._model_class, spec.relation)
        if spec.type != RelationType.HAS_MANY:
            return joinedload(attr)

        option = selectinload(attr)
        target = attr.property.mapper.class_
        nested_options = [
            joinedload(_relationship(target, nested.relation))
            for nested in spec.nested.values()
            if nested.relation and nested.type.is_to_one
        ]
        if nested_options:
            option = option.options(*nested_options)
        return option

    def _order_collection(self, rows: Sequence[T], spec: IncludeSpec) -> None:
        order = parse_order_spec(spec.order_by)
        for row in rows:
            items = list(getattr(row, spec.relation) or [])
            for field, descending in reversed(order):
                items.sort(key=lambda item: _sort_key(item, field), reverse=descending)
            set_committed_value(row, spec.relation, items)
