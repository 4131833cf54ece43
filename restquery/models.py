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

"""Query models: conditions, request params, resource config and results."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .errors import ConfigError
from .includes import IncludeConfig, IncludeSet
from .operators import Operator

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

SortOrder = Literal["asc", "desc"]


class Condition(BaseModel):
    """A single parsed filter condition.

    ``values`` is populated for array operands such as ``in.(a,b)``,
    ``value`` otherwise.
    """

    model_config = ConfigDict(frozen=True)

    field: str
    operator: Operator
    value: str = ""
    values: tuple[str, ...] = ()

    @classmethod
    def eq(cls, field: str, value: str) -> Condition:
        return cls(field=field, operator=Operator.EQ, value=value)

    @classmethod
    def in_(cls, field: str, values: list[str]) -> Condition:
        return cls(field=field, operator=Operator.IN, values=tuple(values))

    @classmethod
    def is_null(cls, field: str) -> Condition:
        return cls(field=field, operator=Operator.NULL)

    @classmethod
    def not_null(cls, field: str) -> Condition:
        return cls(field=field, operator=Operator.NOT_NULL)


class FilterQuery(BaseModel):
    """ANDed conditions plus an optional free-text search."""

    model_config = ConfigDict(frozen=True)

    conditions: tuple[Condition, ...] = ()
    free_text: str = ""


class Params(BaseModel):
    """Normalized request parameters for one list query."""

    model_config = ConfigDict(frozen=True)

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    no_pagination: bool = False
    sort_by: str = ""
    sort_order: SortOrder = "asc"
    query: FilterQuery = Field(default_factory=FilterQuery)
    includes: IncludeSet = Field(default_factory=IncludeSet)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def add_condition(self, field: str, operator: Operator, value: str = "") -> Params:
        """Return a copy with one more condition appended."""
        condition = Condition(field=field, operator=operator, value=value)
        query = self.query.model_copy(update={"conditions": (*self.query.conditions, condition)})
        return self.model_copy(update={"query": query})


class Pagination(BaseModel):
    """Pagination metadata, serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    page: int
    page_size: int
    total: int
    total_pages: int

    @classmethod
    def compute(cls, *, page: int, page_size: int, total: int, no_pagination: bool = False) -> Pagination:
        if no_pagination:
            return cls(page=page, page_size=total, total=total, total_pages=1)
        total_pages = max(1, math.ceil(total / page_size))
        return cls(page=page, page_size=page_size, total=total, total_pages=total_pages)


class Result(BaseModel, Generic[T]):
    """Paginated result envelope with optional facets."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    data: list[T]
    pagination: Pagination
    facets: dict[str, dict[str, int]] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Serialize for a JSON response; empty facets are omitted."""
        payload = self.model_dump(mode="json", by_alias=True)
        if not self.facets:
            payload.pop("facets", None)
        return payload


class QueryConfig(BaseModel):
    """Per-resource query policy.

    Built once at startup and shared read-only between requests.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    search_fields: tuple[str, ...] = ()
    allowed_sort_fields: tuple[str, ...] = ()
    allowed_filters: tuple[str, ...] = ()
    field_aliases: dict[str, str] = Field(default_factory=dict)
    default_sort: str = ""
    facet_fields: tuple[str, ...] = ()
    facet_labels: dict[str, str] = Field(default_factory=dict)
    include_config: IncludeConfig = Field(default_factory=IncludeConfig.default)

    def resolve_field(self, field: str) -> str:
        """Return the physical column for ``field``, applying aliases."""
        return self.field_aliases.get(field, field)

    def resolve_facet_label(self, field: str) -> str:
        return self.facet_labels.get(field, field)

    @classmethod
    def from_yaml(cls, config_path: str | Path, resource: str) -> QueryConfig:
        """Load the config of one resource from a YAML file."""
        from .config import load_resource_configs

        configs = load_resource_configs(config_path)
        if resource not in configs:
            raise ConfigError(f"Resource '{resource}' not found in {config_path}")
        return configs[resource]

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, source: str = "<dict>") -> QueryConfig:
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid query config in {source}: {exc}") from exc
