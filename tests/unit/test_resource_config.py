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

"""Tests for loading query configs from YAML.

Feature: resource-query-config
"""

from __future__ import annotations

from pathlib import Path

import pytest

from restquery import ConfigError, IncludeSpec, QueryConfig, RelationType
from restquery.config import load_resource_configs, resolve_placeholders

CONFIG_YAML = """
variables:
  depth: 2
  sort:
    field: created_at

resources:
  tickets:
    search_fields: [title, description]
    allowed_sort_fields: [created_at, priority]
    allowed_filters: [status, owner]
    field_aliases: {owner: owner_id}
    default_sort: ${variables.sort.field} DESC
    facet_fields: [status]
    facet_labels: {status: Status}
    include_config:
      allowed_paths: ["service", "service.*"]
      max_depth: ${variables.depth}
      specs:
        service:
          type: belongs_to
          relation: service
        service.protocols:
          type: has_many
          relation: protocols
          order_by: port
  services:
    search_fields: [name]
  empty:
"""


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "resources.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


# ============================================================================
# Placeholder resolution
# ============================================================================


class TestResolvePlaceholders:
    """Tests for variable and env substitution."""

    def test_env_substitution(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RESTQUERY_SORT", "priority")
        assert resolve_placeholders({"default_sort": "${env.RESTQUERY_SORT} DESC"}, {}) == {
            "default_sort": "priority DESC"
        }

    def test_missing_env_var(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RESTQUERY_MISSING", raising=False)
        with pytest.raises(ConfigError, match="RESTQUERY_MISSING"):
            resolve_placeholders("${env.RESTQUERY_MISSING}", {})

    def test_whole_value_keeps_yaml_type(self) -> None:
        variables = {"limits": {"depth": 2}, "fields": ["status", "owner"]}
        resolved = resolve_placeholders({"max_depth": "${variables.limits.depth}", "filters": "${variables.fields}"}, variables)
        assert resolved == {"max_depth": 2, "filters": ["status", "owner"]}

    def test_nested_lists_and_non_strings(self) -> None:
        resolved = resolve_placeholders({"a": ["${variables.x}-1", 3, None]}, {"x": "v"})
        assert resolved == {"a": ["v-1", 3, None]}

    def test_undefined_variable(self) -> None:
        with pytest.raises(ConfigError, match="'b'"):
            resolve_placeholders("${variables.b}", {"a": 1})

    def test_embedded_non_scalar_variable(self) -> None:
        with pytest.raises(ConfigError, match="not a scalar"):
            resolve_placeholders("sort ${variables.a}", {"a": [1, 2]})

    def test_env_placeholder_in_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RESTQUERY_FILTER", "status")
        path = tmp_path / "env.yaml"
        path.write_text("resources:\n  tickets:\n    allowed_filters: ['${env.RESTQUERY_FILTER}']\n", encoding="utf-8")
        assert load_resource_configs(path)["tickets"].allowed_filters == ("status",)

    def test_variables_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "vars.yaml"
        path.write_text("variables: [1]\nresources: {}\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="'variables'"):
            load_resource_configs(path)


# ============================================================================
# Resource configs
# ============================================================================


class TestLoadResourceConfigs:
    """Tests for load_resource_configs() and QueryConfig.from_yaml()."""

    def test_loads_all_resources(self, config_file: Path) -> None:
        configs = load_resource_configs(config_file)
        assert set(configs) == {"tickets", "services", "empty"}
        assert configs["empty"] == QueryConfig()

    def test_ticket_config(self, config_file: Path) -> None:
        tickets = QueryConfig.from_yaml(config_file, "tickets")
        assert tickets.default_sort == "created_at DESC"
        assert tickets.resolve_field("owner") == "owner_id"
        assert tickets.resolve_field("status") == "status"
        assert tickets.resolve_facet_label("status") == "Status"
        assert tickets.resolve_facet_label("owner") == "owner"
        assert tickets.include_config.max_depth == 2
        assert tickets.include_config.specs["service.protocols"] == IncludeSpec(
            type=RelationType.HAS_MANY, relation="protocols", order_by="port"
        )

    def test_unknown_resource(self, config_file: Path) -> None:
        with pytest.raises(ConfigError, match="users"):
            QueryConfig.from_yaml(config_file, "users")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            load_resource_configs(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("resources: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="YAML parsing error"):
            load_resource_configs(path)

    def test_missing_resources_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "bare.yaml"
        path.write_text("tickets: {}\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="resources"):
            load_resource_configs(path)

    def test_unknown_key_is_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "typo.yaml"
        path.write_text("resources:\n  tickets:\n    allowed_filter: [status]\n", encoding="utf-8")
        with pytest.raises(ConfigError, match="tickets"):
            load_resource_configs(path)

    def test_from_dict(self) -> None:
        config = QueryConfig.from_dict({"allowed_filters": ["status"], "facet_fields": ["status"]})
        assert config.allowed_filters == ("status",)
        with pytest.raises(ConfigError):
            QueryConfig.from_dict({"include_config": {"max_depth": "deep"}})
