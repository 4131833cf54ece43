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

"""Query backend abstract base class."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

from ..includes import IncludeSpec
from ..models import Condition, QueryConfig

Q = TypeVar("Q")
T = TypeVar("T")


def parse_order_spec(spec: str) -> list[tuple[str, bool]]:
    """Parse an order spec into ``(field, descending)`` pairs.

    Accepts ``"name"``, ``"name DESC"``, ``"-name"`` and comma-separated
    combinations of those.

    Examples:
        >>> parse_order_spec("priority DESC, -created_at, name")
        [('priority', True), ('created_at', True), ('name', False)]
    """
    order: list[tuple[str, bool]] = []
    for item in spec.split(","):
        words = item.split()
        if not words:
            continue
        field = words[0]
        descending = len(words) > 1 and words[1].lower() == "desc"
        if field.startswith("-"):
            field = field[1:]
            descending = True
        if field:
            order.append((field, descending))
    return order


def facet_key(value: Any) -> str:
    """String key used for a grouped value in facet counts."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class QueryBackend(ABC, Generic[Q, T]):
    """Abstract query backend.

    A backend hands out immutable query handles of type ``Q``; every operation
    returns a new handle, so handles can be reused as the base of independent
    queries (facets are computed that way). ``field`` arguments are physical
    names, already passed through ``QueryConfig.resolve_field``.
    """

    @abstractmethod
    def query(self) -> Q:
        """Return a fresh, unfiltered query handle."""

    @abstractmethod
    def where(self, query: Q, field: str, condition: Condition) -> Q:
        """Restrict ``query`` with ``condition`` applied to ``field``."""

    @abstractmethod
    def search(self, query: Q, text: str, fields: Sequence[str]) -> Q:
        """Restrict ``query`` to rows where any of ``fields`` contains ``text`` (case-insensitive)."""

    @abstractmethod
    def count(self, query: Q) -> int:
        """Count rows matching ``query``, ignoring order and pagination."""

    @abstractmethod
    def order_by(self, query: Q, field: str, *, descending: bool = False) -> Q:
        """Append a sort key."""

    @abstractmethod
    def paginate(self, query: Q, *, offset: int, limit: int) -> Q:
        """Apply offset and limit."""

    @abstractmethod
    def fetch(self, query: Q, includes: Sequence[IncludeSpec] = ()) -> list[T]:
        """Execute ``query`` and materialize rows, loading ``includes``."""

    @abstractmethod
    def group_count(self, query: Q, field: str) -> dict[str, int]:
        """Count rows of ``query`` per distinct value of ``field``."""

    def apply_search(self, query: Q, free_text: str, config: QueryConfig) -> Q:
        """Apply free-text search over the configured search fields."""
        if not free_text or not config.search_fields:
            return query
        return self.search(query, free_text, [config.resolve_field(f) for f in config.search_fields])

    def apply_conditions(self, query: Q, conditions: Sequence[Condition], config: QueryConfig) -> Q:
        for condition in conditions:
            query = self.where(query, config.resolve_field(condition.field), condition)
        return query

    def filtered_query(self, conditions: Sequence[Condition], config: QueryConfig, free_text: str = "") -> Q:
        """Fresh handle with search and conditions applied."""
        query = self.apply_search(self.query(), free_text, config)
        return self.apply_conditions(query, conditions, config)
