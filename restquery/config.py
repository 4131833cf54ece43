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

"""Load per-resource query configs from YAML.

Example file::

    variables:
      max_depth: 2
      sort: created_at DESC

    resources:
      tickets:
        search_fields: [title, description]
        allowed_sort_fields: [created_at, priority]
        allowed_filters: [status, priority, owner]
        field_aliases: {owner: owner_id}
        default_sort: ${variables.sort}
        facet_fields: [status]
        facet_labels: {status: Status}
        include_config:
          allowed_paths: ["service", "service.*"]
          max_depth: ${variables.max_depth}
          specs:
            service: {type: belongs_to, relation: service}

Placeholders are resolved in string values of the ``resources`` tree:
``${variables.a.b}`` from the ``variables`` mapping and ``${env.NAME}`` from
the environment. A value that is exactly one placeholder takes the
referenced value with its YAML type.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .models import QueryConfig

_PLACEHOLDER = re.compile(r"\$\{(env|variables)\.([A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)\}")


def _lookup(kind: str, name: str, variables: dict[str, Any]) -> Any:
    if kind == "env":
        if name not in os.environ:
            raise ConfigError(f"Environment variable '{name}' is not set")
        return os.environ[name]

    current: Any = variables
    for part in name.split("."):
        if not isinstance(current, dict) or part not in current:
            raise ConfigError(f"Variable '{name}' is not defined in 'variables'")
        current = current[part]
    return current


def resolve_placeholders(value: Any, variables: dict[str, Any]) -> Any:
    """Return ``value`` with placeholders in every nested string resolved.

    Raises:
        ConfigError: If a placeholder is undefined, or a list or mapping
            is embedded inside a longer string
    """
    if isinstance(value, dict):
        return {key: resolve_placeholders(item, variables) for key, item in value.items()}
    if isinstance(value, list):
        return [resolve_placeholders(item, variables) for item in value]
    if not isinstance(value, str):
        return value

    whole = _PLACEHOLDER.fullmatch(value)
    if whole:
        return _lookup(whole.group(1), whole.group(2), variables)

    def _embed(match: re.Match[str]) -> str:
        resolved = _lookup(match.group(1), match.group(2), variables)
        if isinstance(resolved, (dict, list)):
            raise ConfigError(f"Variable '{match.group(2)}' is not a scalar and cannot be embedded in '{value}'")
        return str(resolved)

    return _PLACEHOLDER.sub(_embed, value)


def load_resource_configs(config_path: str | os.PathLike[str]) -> dict[str, QueryConfig]:
    """Load every resource under the top-level ``resources`` key.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            document = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML parsing error in {config_path}: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("resources"), dict):
        raise ConfigError(f"Missing 'resources' mapping in {config_path}")

    variables = document.get("variables") or {}
    if not isinstance(variables, dict):
        raise ConfigError(f"'variables' must be a mapping in {config_path}")

    configs: dict[str, QueryConfig] = {}
    for name, data in document["resources"].items():
        resolved = resolve_placeholders(data or {}, variables)
        configs[name] = QueryConfig.from_dict(resolved, source=f"{config_path}:{name}")
    return configs
