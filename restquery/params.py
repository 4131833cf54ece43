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

"""Build ``Params`` from flat, web-style query parameters.

Recognized keys::

    page=2                      1-based page number
    limit=50 / pageSize=50      page size, clamped to [1, 100]; -1 or "all" disables pagination
    sortBy=name&order=desc      sort field and direction
    search=foo                  free-text search over the resource's search fields
    filter=status=eq.active&... combined filter string
    status=in.(a,b)             per-field filter, for each allowed filter field
    _include=owner,service.*    eager-load include paths

Invalid values never raise; they fall back to defaults.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from .filters.parser import parse_condition, parse_filter_string
from .includes import parse_includes
from .models import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, Condition, FilterQuery, Params, QueryConfig, SortOrder

PAGE_PARAM = "page"
LIMIT_PARAM = "limit"
PAGE_SIZE_PARAM = "pageSize"
SORT_BY_PARAM = "sortBy"
ORDER_PARAM = "order"
SEARCH_PARAM = "search"
FILTER_PARAM = "filter"
INCLUDE_PARAM = "_include"

_NO_PAGINATION_VALUES = frozenset({"-1", "all"})
_INTEGER = re.compile(r"[+-]?[0-9]+")


def first_value(source: Mapping[str, str], key: str) -> str | None:
    """Value of ``key``; the first one wins in multi-value sources such as starlette ``QueryParams``."""
    getlist = getattr(source, "getlist", None)
    if getlist is None:
        return source.get(key)
    values: list[Any] = getlist(key)
    return values[0] if values else None


def int_or_default(raw: str | None, default: int) -> int:
    """Parse a positive ASCII integer such as ``5`` or ``+5``, falling back to ``default``.

    Whitespace, digit separators and non-ASCII digits are rejected.
    """
    if raw is None or not _INTEGER.fullmatch(raw):
        return default
    value = int(raw)
    return value if value > 0 else default


def clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


def normalize_sort_order(raw: str | None) -> SortOrder:
    """Only a case-insensitive ``desc`` sorts descending."""
    if raw is not None and raw.lower() == "desc":
        return "desc"
    return "asc"


def parse_page_size(raw: str | None) -> tuple[int, bool]:
    """Return ``(page_size, no_pagination)`` for a limit/pageSize value."""
    if raw in _NO_PAGINATION_VALUES:
        return DEFAULT_PAGE_SIZE, True
    return clamp(int_or_default(raw, DEFAULT_PAGE_SIZE), 1, MAX_PAGE_SIZE), False


def parse_conditions(source: Mapping[str, str], config: QueryConfig) -> list[Condition]:
    """Gather filter conditions; combined-string filters come first."""
    conditions: list[Condition] = []

    filter_str = first_value(source, FILTER_PARAM)
    if filter_str:
        conditions.extend(parse_filter_string(filter_str, config.allowed_filters))

    for field in config.allowed_filters:
        value = first_value(source, field)
        if value:
            conditions.append(parse_condition(field, value))
    return conditions


def parse_params(source: Mapping[str, str], config: QueryConfig) -> Params:
    """Build normalized ``Params`` from a string mapping.

    Args:
        source: Query parameters, e.g. ``dict`` or starlette ``QueryParams``
        config: Policy of the resource being queried

    Examples:
        >>> params = parse_params({"page": "0", "limit": "500", "order": "DESC"}, QueryConfig())
        >>> (params.page, params.page_size, params.sort_order)
        (1, 100, 'desc')
    """
    page_size, no_pagination = parse_page_size(first_value(source, LIMIT_PARAM))
    page_size_raw = first_value(source, PAGE_SIZE_PARAM)
    if page_size_raw:
        explicit_size, explicit_no_pagination = parse_page_size(page_size_raw)
        if explicit_no_pagination:
            no_pagination = True
        else:
            page_size = explicit_size

    free_text = (first_value(source, SEARCH_PARAM) or "").strip()

    return Params(
        page=int_or_default(first_value(source, PAGE_PARAM), 1),
        page_size=page_size,
        no_pagination=no_pagination,
        sort_by=first_value(source, SORT_BY_PARAM) or "",
        sort_order=normalize_sort_order(first_value(source, ORDER_PARAM)),
        query=FilterQuery(conditions=tuple(parse_conditions(source, config)), free_text=free_text),
        includes=parse_includes(first_value(source, INCLUDE_PARAM), config.include_config),
    )
