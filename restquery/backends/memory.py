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

"""In-memory query backend using pure Python evaluation.

Records may be mappings, pydantic models or plain objects. Related records
are expected to be present on the record already; loading an include only
orders to-many collections. The ordered collection is set on a shallow copy of
the record, so stored records are never modified.
"""

from __future__ import annotations

import copy
from collections import Counter
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, is_dataclass, replace
from typing import Any, TypeVar

from pydantic import BaseModel

from ..filters import evaluate, get_field_value, matches_search
from ..includes import IncludeSpec, RelationType
from ..models import Condition
from .base import QueryBackend, facet_key, parse_order_spec

T = TypeVar("T")

Predicate = Callable[[Any], bool]


@dataclass(frozen=True)
class MemoryQuery:
    """Immutable query handle for ``InMemoryQueryBackend``."""

    predicates: tuple[Predicate, ...] = ()
    order: tuple[tuple[str, bool], ...] = ()
    offset: int = 0
    limit: int | None = None


def _sort_records(records: list[Any], order: Sequence[tuple[str, bool]]) -> list[Any]:
    # Stable sorts applied from the last key to the first give a multi-key sort.
    for field, descending in reversed(order):
        present = [r for r in records if get_field_value(r, field) is not None]
        missing = [r for r in records if get_field_value(r, field) is None]
        present.sort(key=lambda r: get_field_value(r, field), reverse=descending)
        # NULLs sort first ascending and last descending, as in SQLite.
        records = present + missing if descending else missing + present
    return records


def _with_field(record: Any, field: str, value: Any) -> Any:
    if isinstance(record, BaseModel):
        return record.model_copy(update={field: value})
    if isinstance(record, Mapping):
        return {**record, field: value}
    if is_dataclass(record) and not isinstance(record, type):
        return replace(record, **{field: value})
    updated = copy.copy(record)
    setattr(updated, field, value)
    return updated


class InMemoryQueryBackend(QueryBackend[MemoryQuery, T]):
    """Query backend over an in-memory sequence of records.

    Example:
        >>> backend = InMemoryQueryBackend([{"status": "active"}, {"status": "closed"}])
        >>> query = backend.where(backend.query(), "status", Condition.eq("status", "active"))
        >>> backend.count(query)
        1
    """

    def __init__(self, records: Iterable[T]) -> None:
        self._records: tuple[T, ...] = tuple(records)

    def _matching(self, query: MemoryQuery) -> list[T]:
        return [r for r in self._records if all(p(r) for p in query.predicates)]

    def query(self) -> MemoryQuery:
        return MemoryQuery()

    def where(self, query: MemoryQuery, field: str, condition: Condition) -> MemoryQuery:
        def predicate(record: Any) -> bool:
            return evaluate(condition, record, field)

        return replace(query, predicates=(*query.predicates, predicate))

    def search(self, query: MemoryQuery, text: str, fields: Sequence[str]) -> MemoryQuery:
        fields = tuple(fields)

        def predicate(record: Any) -> bool:
            return matches_search(text, record, fields)

        return replace(query, predicates=(*query.predicates, predicate))

    def count(self, query: MemoryQuery) -> int:
        return len(self._matching(query))

    def order_by(self, query: MemoryQuery, field: str, *, descending: bool = False) -> MemoryQuery:
        return replace(query, order=(*query.order, (field, descending)))

    def paginate(self, query: MemoryQuery, *, offset: int, limit: int) -> MemoryQuery:
        return replace(query, offset=offset, limit=limit)

    def fetch(self, query: MemoryQuery, includes: Sequence[IncludeSpec] = ()) -> list[T]:
        records = _sort_records(self._matching(query), query.order)
        end = None if query.limit is None else query.offset + query.limit
        records = records[query.offset : end]
        for spec in includes:
            if spec.type != RelationType.HAS_MANY or not spec.relation or not spec.order_by:
                continue
            records = [self._order_collection(r, spec) for r in records]
        return records

    def _order_collection(self, record: T, spec: IncludeSpec) -> T:
        related = get_field_value(record, spec.relation)
        if not related:
            return record
        ordered = _sort_records(list(related), parse_order_spec(spec.order_by))
        return _with_field(record, spec.relation, ordered)

    def group_count(self, query: MemoryQuery, field: str) -> dict[str, int]:
        counter = Counter(facet_key(get_field_value(r, field)) for r in self._matching(query))
        return dict(counter)
