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

"""Apply ``Params`` to a query backend and build the paginated ``Result``."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, TypeVar

from .backends.base import QueryBackend, parse_order_spec
from .errors import QueryError, QueryPhase
from .facets import compute_facets
from .includes import IncludeConfig, IncludeSet, IncludeSpec
from .models import Condition, Pagination, Params, QueryConfig, Result, SortOrder

logger = logging.getLogger(__name__)

Q = TypeVar("Q")
T = TypeVar("T")


def apply_conditions(backend: QueryBackend[Q, Any], query: Q, conditions: Sequence[Condition], config: QueryConfig) -> Q:
    """Apply conditions to an existing query handle."""
    return backend.apply_conditions(query, conditions, config)


def apply_sort(backend: QueryBackend[Q, Any], query: Q, sort_by: str, sort_order: SortOrder, config: QueryConfig) -> Q:
    """Sort by ``sort_by`` if it is allowed, else by the config's default sort."""
    if sort_by and sort_by in config.allowed_sort_fields:
        return backend.order_by(query, config.resolve_field(sort_by), descending=sort_order == "desc")
    if sort_by:
        logger.debug("Ignoring sort on %r: field not allowed", sort_by)
    for field, descending in parse_order_spec(config.default_sort):
        query = backend.order_by(query, field, descending=descending)
    return query


def resolve_include_specs(includes: IncludeSet, config: IncludeConfig) -> list[IncludeSpec]:
    """Map accepted include paths to their specs; paths without a spec are skipped."""
    if includes.is_empty() or not config.specs:
        return []
    specs: list[IncludeSpec] = []
    for path in includes.paths:
        spec = config.specs.get(path.raw)
        if spec is None or not spec.relation:
            continue
        specs.append(spec)
    return specs


def apply_query(backend: QueryBackend[Any, T], params: Params, config: QueryConfig) -> Result[T]:
    """Run a list query and assemble the paginated result.

    Steps: search and filters, count, facets, sort, pagination, fetch with
    includes. Facets use their own query handles.

    Raises:
        QueryError: If the backend fails; ``phase`` is count, facet or query.

    Example:
        >>> backend = InMemoryQueryBackend(records)
        >>> params = parse_params({"filter": "status=eq.active", "limit": "10"}, config)
        >>> result = apply_query(backend, params, config)
        >>> result.pagination.total_pages
        1
    """
    conditions = params.query.conditions
    free_text = params.query.free_text

    try:
        query = backend.filtered_query(conditions, config, free_text)
        total = backend.count(query)
    except Exception as exc:
        raise QueryError(QueryPhase.COUNT, exc) from exc

    facets = compute_facets(backend, config.facet_fields, conditions, config, free_text=free_text)

    try:
        query = apply_sort(backend, query, params.sort_by, params.sort_order, config)
        if not params.no_pagination:
            query = backend.paginate(query, offset=params.offset, limit=params.page_size)
        data = backend.fetch(query, resolve_include_specs(params.includes, config.include_config))
    except Exception as exc:
        raise QueryError(QueryPhase.QUERY, exc) from exc

    pagination = Pagination.compute(
        page=params.page,
        page_size=params.page_size,
        total=total,
        no_pagination=params.no_pagination,
    )
    return Result(data=data, pagination=pagination, facets=facets)
