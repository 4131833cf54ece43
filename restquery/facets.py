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

"""Cross-filtered facet counts.

Each facet is counted as if the filter on its own field were not applied,
so a UI can show how many results every other value of that field would
give while one value is selected. Filters on all other fields still apply.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from .backends.base import QueryBackend
from .errors import QueryError, QueryPhase
from .models import Condition, QueryConfig

logger = logging.getLogger(__name__)

TOTAL_KEY = "_total"


def exclude_field_conditions(conditions: Sequence[Condition], column: str, config: QueryConfig) -> list[Condition]:
    """Drop conditions whose resolved field is ``column``."""
    return [c for c in conditions if config.resolve_field(c.field) != column]


def compute_facets(
    backend: QueryBackend[Any, Any],
    facet_fields: Sequence[str],
    conditions: Sequence[Condition],
    config: QueryConfig,
    *,
    free_text: str = "",
) -> dict[str, dict[str, int]]:
    """Compute ``{label: {value: count, "_total": n}}`` for each facet field.

    Every facet runs on fresh query handles from ``backend``; the caller's
    query is never touched.

    Raises:
        QueryError: With phase ``facet`` if the backend fails
    """
    facets: dict[str, dict[str, int]] = {}
    for field in facet_fields:
        column = config.resolve_field(field)
        other_conditions = exclude_field_conditions(conditions, column, config)
        try:
            base_query = backend.filtered_query(other_conditions, config, free_text)
            total = backend.count(base_query)
            counts = backend.group_count(base_query, column)
        except Exception as exc:
            raise QueryError(QueryPhase.FACET, exc) from exc

        label = config.resolve_facet_label(field)
        logger.debug("Facet %r: %d value(s), %d total", label, len(counts), total)
        facets[label] = {TOTAL_KEY: total, **counts}
    return facets
