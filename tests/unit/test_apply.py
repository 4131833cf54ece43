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

"""Tests for facets and apply_query() on the in-memory backend.

Feature: list-query-application
"""

from __future__ import annotations

import pytest

from restquery import (
    Condition,
    InMemoryQueryBackend,
    Pagination,
    Params,
    QueryConfig,
    QueryError,
    QueryPhase,
    apply_query,
    compute_facets,
    exclude_field_conditions,
    parse_params,
    resolve_include_specs,
)
from restquery.backends import MemoryQuery
from restquery.facets import TOTAL_KEY
from restquery.includes import IncludeConfig, IncludeSpec, RelationType, parse_includes

# ============================================================================
# Test Data
# ============================================================================


def make_tickets(count: int) -> list[dict[str, object]]:
    statuses = ["open", "closed", "pending"]
    return [
        {
            "id": i,
            "title": f"Ticket {i}",
            "status": statuses[i % 3],
            "team": "red" if i % 2 else "blue",
            "priority": i % 5,
        }
        for i in range(1, count + 1)
    ]


TICKETS = [
    {"id": 1, "title": "Printer on fire", "status": "active", "team": "red"},
    {"id": 2, "title": "Login fails", "status": "active", "team": "blue"},
    {"id": 3, "title": "Slow pages", "status": "closed", "team": "red"},
    {"id": 4, "title": "Broken printer", "status": "pending", "team": None},
]


@pytest.fixture
def config() -> QueryConfig:
    return QueryConfig(
        search_fields=("title",),
        allowed_sort_fields=("id", "title"),
        allowed_filters=("status", "team", "squad"),
        field_aliases={"squad": "team"},
        default_sort="id",
        facet_fields=("status", "team"),
        facet_labels={"team": "Team"},
    )


@pytest.fixture
def backend() -> InMemoryQueryBackend[dict[str, object]]:
    return InMemoryQueryBackend(TICKETS)


# ============================================================================
# Facets
# ============================================================================


class TestFacets:
    """Tests for cross-filtered facet computation."""

    def test_own_condition_is_ignored(self, backend, config: QueryConfig) -> None:
        facets = compute_facets(backend, config.facet_fields, [Condition.eq("status", "active")], config)
        assert facets["status"] == {TOTAL_KEY: 4, "active": 2, "closed": 1, "pending": 1}
        assert facets["Team"] == {TOTAL_KEY: 2, "red": 1, "blue": 1}

    def test_alias_condition_is_excluded_for_its_column(self, backend, config: QueryConfig) -> None:
        facets = compute_facets(backend, ("team",), [Condition.eq("squad", "red")], config)
        assert facets["Team"] == {TOTAL_KEY: 4, "red": 2, "blue": 1, "": 1}

    def test_search_applies_to_facets(self, backend, config: QueryConfig) -> None:
        facets = compute_facets(backend, ("status",), [], config, free_text="printer")
        assert facets["status"] == {TOTAL_KEY: 2, "active": 1, "pending": 1}

    def test_no_facet_fields(self, backend, config: QueryConfig) -> None:
        assert compute_facets(backend, (), [Condition.eq("status", "active")], config) == {}

    def test_exclude_field_conditions(self, config: QueryConfig) -> None:
        conditions = [Condition.eq("squad", "red"), Condition.eq("status", "x"), Condition.eq("team", "blue")]
        assert exclude_field_conditions(conditions, "team", config) == [Condition.eq("status", "x")]

    def test_backend_failure_is_wrapped(self, config: QueryConfig) -> None:
        class BrokenBackend(InMemoryQueryBackend[dict[str, object]]):
            def group_count(self, query: MemoryQuery, field: str) -> dict[str, int]:
                raise RuntimeError("boom")

        with pytest.raises(QueryError) as exc_info:
            compute_facets(BrokenBackend(TICKETS), ("status",), [], config)
        assert exc_info.value.phase == QueryPhase.FACET
        assert str(exc_info.value) == "facet: boom"


# ============================================================================
# Pagination
# ============================================================================


class TestPagination:
    """Tests for pagination arithmetic."""

    @pytest.mark.parametrize(
        ("total", "page_size", "expected_pages"),
        [(45, 20, 3), (0, 20, 1), (40, 20, 2), (41, 20, 3), (1, 100, 1)],
    )
    def test_total_pages(self, total: int, page_size: int, expected_pages: int) -> None:
        assert Pagination.compute(page=1, page_size=page_size, total=total).total_pages == expected_pages

    def test_no_pagination(self) -> None:
        pagination = Pagination.compute(page=1, page_size=20, total=45, no_pagination=True)
        assert (pagination.page_size, pagination.total_pages) == (45, 1)

    def test_camel_case_serialization(self) -> None:
        dumped = Pagination.compute(page=2, page_size=10, total=15).model_dump(by_alias=True)
        assert dumped == {"page": 2, "pageSize": 10, "total": 15, "totalPages": 2}


# ============================================================================
# apply_query()
# ============================================================================


class TestApplyQuery:
    """Tests for apply_query() on the in-memory backend."""

    def test_pages(self, config: QueryConfig) -> None:
        backend = InMemoryQueryBackend(make_tickets(45))
        result = apply_query(backend, parse_params({"page": "3", "limit": "20"}, config), config)
        assert [r["id"] for r in result.data] == [41, 42, 43, 44, 45]
        assert result.pagination.total_pages == 3
        assert result.pagination.total == 45

    def test_page_past_the_end_is_empty(self, config: QueryConfig) -> None:
        backend = InMemoryQueryBackend(make_tickets(5))
        result = apply_query(backend, Params(page=4, page_size=2), config)
        assert result.data == []
        assert result.pagination.total_pages == 3

    def test_no_pagination_returns_everything(self, config: QueryConfig) -> None:
        backend = InMemoryQueryBackend(make_tickets(45))
        result = apply_query(backend, parse_params({"limit": "all"}, config), config)
        assert len(result.data) == 45
        assert result.pagination.page_size == 45
        assert result.pagination.total_pages == 1

    def test_empty_result(self, backend, config: QueryConfig) -> None:
        result = apply_query(backend, parse_params({"status": "eq.missing"}, config), config)
        assert result.data == []
        assert result.pagination.total == 0
        assert result.pagination.total_pages == 1

    def test_sort_desc(self, backend, config: QueryConfig) -> None:
        result = apply_query(backend, parse_params({"sortBy": "title", "order": "desc"}, config), config)
        assert [r["id"] for r in result.data] == [3, 1, 2, 4]

    def test_filters_and_search(self, backend, config: QueryConfig) -> None:
        params = parse_params({"search": "printer", "filter": "squad=eq.red"}, config)
        result = apply_query(backend, params, config)
        assert [r["id"] for r in result.data] == [1]
        assert result.facets["status"] == {TOTAL_KEY: 1, "active": 1}
        assert result.facets["Team"] == {TOTAL_KEY: 2, "red": 1, "": 1}

    def test_count_failure_is_wrapped(self, backend, config: QueryConfig) -> None:
        class BrokenBackend(InMemoryQueryBackend[dict[str, object]]):
            def count(self, query: MemoryQuery) -> int:
                raise RuntimeError("db down")

        with pytest.raises(QueryError) as exc_info:
            apply_query(BrokenBackend(TICKETS), Params(), config)
        assert exc_info.value.phase == QueryPhase.COUNT
        assert isinstance(exc_info.value.cause, RuntimeError)

    def test_fetch_failure_is_wrapped(self, config: QueryConfig) -> None:
        class BrokenBackend(InMemoryQueryBackend[dict[str, object]]):
            def fetch(self, query, includes=()):
                raise RuntimeError("timeout")

        with pytest.raises(QueryError) as exc_info:
            apply_query(BrokenBackend(TICKETS), Params(), config)
        assert exc_info.value.phase == QueryPhase.QUERY


# ============================================================================
# Includes and payload
# ============================================================================


class TestIncludesAndPayload:
    """Tests for include resolution and result serialization."""

    def test_resolve_include_specs(self) -> None:
        include_config = IncludeConfig(
            allowed_paths=("owner", "service", "service.*"),
            specs={
                "service": IncludeSpec(type=RelationType.BELONGS_TO, relation="service"),
                "owner": IncludeSpec(type=RelationType.BELONGS_TO),
            },
        )
        includes = parse_includes("service,service.protocols,owner", include_config)
        assert resolve_include_specs(includes, include_config) == [include_config.specs["service"]]

    def test_apply_orders_included_collections(self) -> None:
        include_config = IncludeConfig(
            allowed_paths=("ports",),
            specs={"ports": IncludeSpec(type=RelationType.HAS_MANY, relation="ports", order_by="-number")},
        )
        config = QueryConfig(include_config=include_config)
        backend = InMemoryQueryBackend([{"id": 1, "ports": [{"number": 22}, {"number": 443}]}])
        result = apply_query(backend, parse_params({"_include": "ports"}, config), config)
        assert [p["number"] for p in result.data[0]["ports"]] == [443, 22]

    def test_payload(self, backend, config: QueryConfig) -> None:
        result = apply_query(backend, parse_params({"status": "eq.closed"}, config), config)
        payload = result.to_payload()
        assert payload["pagination"] == {"page": 1, "pageSize": 20, "total": 1, "totalPages": 1}
        assert payload["data"] == [TICKETS[2]]
        assert payload["facets"]["status"][TOTAL_KEY] == 4

    def test_payload_omits_empty_facets(self, backend) -> None:
        result = apply_query(backend, Params(), QueryConfig())
        assert "facets" not in result.to_payload()
