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

"""PostgREST-style query translation for list endpoints.

Parses flat query parameters (pagination, sort, filters, search, includes)
into ``Params`` and applies them to a query backend, returning a paginated
``Result`` with optional cross-filtered facets.
"""

from .apply import apply_conditions, apply_query, apply_sort, resolve_include_specs
from .backends import InMemoryQueryBackend, QueryBackend, SQLQueryBackend
from .errors import ConfigError, QueryError, QueryPhase
from .facets import compute_facets, exclude_field_conditions
from .filters import (
    evaluate,
    format_condition,
    format_filter_string,
    parse_condition,
    parse_filter_string,
    to_sqlalchemy,
)
from .includes import (
    IncludeConfig,
    IncludePath,
    IncludeSet,
    IncludeSpec,
    RelationType,
    match_path,
    parse_includes,
)
from .models import (
    Condition,
    FilterQuery,
    Pagination,
    Params,
    QueryConfig,
    Result,
)
from .operators import Operator, is_valid_operator
from .params import parse_params

__version__ = "0.1.0"

__all__ = [
    # Models
    "Operator",
    "Condition",
    "FilterQuery",
    "Params",
    "Pagination",
    "Result",
    "QueryConfig",
    # Includes
    "IncludeConfig",
    "IncludePath",
    "IncludeSet",
    "IncludeSpec",
    "RelationType",
    # Parsing
    "is_valid_operator",
    "parse_condition",
    "parse_filter_string",
    "format_condition",
    "format_filter_string",
    "parse_includes",
    "match_path",
    "parse_params",
    # Backends
    "QueryBackend",
    "InMemoryQueryBackend",
    "SQLQueryBackend",
    "to_sqlalchemy",
    "evaluate",
    # Application
    "apply_query",
    "apply_conditions",
    "apply_sort",
    "resolve_include_specs",
    "compute_facets",
    "exclude_field_conditions",
    # Errors
    "ConfigError",
    "QueryError",
    "QueryPhase",
]
