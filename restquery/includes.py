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

"""Include paths for eager loading of nested relations.

An include request such as ``_include=service.protocols,owner`` is split into
dotted paths, each checked against the resource's allowed glob patterns:

- ``*`` matches exactly one path segment
- ``**`` matches zero or more segments

Paths that are not allowed, or that are nested deeper than ``max_depth``, are
dropped without raising.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 3


class RelationType(str, Enum):
    """How a relation is loaded."""

    BELONGS_TO = "belongs_to"
    HAS_ONE = "has_one"
    HAS_MANY = "has_many"

    @property
    def is_to_one(self) -> bool:
        return self in (RelationType.BELONGS_TO, RelationType.HAS_ONE)


class IncludeSpec(BaseModel):
    """Maps an allowed include path to the relation that gets loaded."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: RelationType = RelationType.BELONGS_TO
    relation: str = ""
    nested: dict[str, IncludeSpec] = Field(default_factory=dict)
    order_by: str = ""


IncludeSpec.model_rebuild()


class IncludeConfig(BaseModel):
    """Allowed include patterns for one resource."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    allowed_paths: tuple[str, ...] = ()
    max_depth: int = DEFAULT_MAX_DEPTH
    specs: dict[str, IncludeSpec] = Field(default_factory=dict)

    @classmethod
    def default(cls) -> IncludeConfig:
        """Config that allows no includes at all."""
        return cls(allowed_paths=(), max_depth=DEFAULT_MAX_DEPTH)

    def is_path_allowed(self, path: str) -> bool:
        if not self.allowed_paths:
            return False
        if self.max_depth > 0 and len(path.split(".")) > self.max_depth:
            return False
        return any(match_path(path, pattern) for pattern in self.allowed_paths)


class IncludePath(BaseModel):
    """A parsed include path like ``service.protocols``."""

    model_config = ConfigDict(frozen=True)

    parts: tuple[str, ...]
    raw: str

    @classmethod
    def parse(cls, raw: str) -> IncludePath:
        return cls(parts=tuple(raw.split(".")), raw=raw)

    @property
    def root(self) -> str:
        return self.parts[0] if self.parts else ""

    @property
    def depth(self) -> int:
        return len(self.parts)

    @property
    def has_children(self) -> bool:
        return len(self.parts) > 1

    def child(self) -> IncludePath:
        """Return the path with its root segment removed."""
        if len(self.parts) <= 1:
            return IncludePath(parts=(), raw="")
        child_parts = self.parts[1:]
        return IncludePath(parts=child_parts, raw=".".join(child_parts))


class IncludeSet(BaseModel):
    """Accepted include paths, grouped by their root segment."""

    model_config = ConfigDict(frozen=True)

    paths: tuple[IncludePath, ...] = ()
    by_root: dict[str, tuple[IncludePath, ...]] = Field(default_factory=dict)

    @classmethod
    def from_paths(cls, paths: Sequence[IncludePath]) -> IncludeSet:
        by_root: dict[str, list[IncludePath]] = {}
        for path in paths:
            by_root.setdefault(path.root, []).append(path)
        return cls(paths=tuple(paths), by_root={root: tuple(group) for root, group in by_root.items()})

    def has(self, path: str) -> bool:
        """True if ``path`` or one of its descendants was requested."""
        root = path.split(".")[0]
        return any(p.raw == path or p.raw.startswith(path + ".") for p in self.by_root.get(root, ()))

    def has_exact(self, path: str) -> bool:
        root = path.split(".")[0]
        return any(p.raw == path for p in self.by_root.get(root, ()))

    def children_of(self, root: str) -> list[IncludePath]:
        """Paths below ``root``, with the root segment stripped."""
        return [p.child() for p in self.by_root.get(root, ()) if p.has_children]

    def is_empty(self) -> bool:
        return not self.paths


def match_path(path: str, pattern: str) -> bool:
    """Match a dotted path against a glob pattern.

    Examples:
        >>> match_path("service.protocols", "service.*")
        True
        >>> match_path("service.protocols.ports", "service.**")
        True
        >>> match_path("service.protocols", "service")
        False
    """
    if path == pattern or pattern == "**":
        return True
    return _match_parts(path.split("."), pattern.split("."))


def _match_parts(path_parts: Sequence[str], pattern_parts: Sequence[str]) -> bool:
    pi = 0
    pati = 0
    while pi < len(path_parts) and pati < len(pattern_parts):
        segment = pattern_parts[pati]
        if segment == "**":
            if pati == len(pattern_parts) - 1:
                return True
            # A non-terminal ** may swallow any number of segments, including none.
            return any(_match_parts(path_parts[i:], pattern_parts[pati + 1 :]) for i in range(pi, len(path_parts) + 1))
        if segment != "*" and segment != path_parts[pi]:
            return False
        pi += 1
        pati += 1

    if pi == len(path_parts):
        # Leftover pattern can only match the empty suffix.
        return all(segment == "**" for segment in pattern_parts[pati:])
    return False


def parse_includes(include_str: str | None, config: IncludeConfig) -> IncludeSet:
    """Parse a comma-separated include string against ``config``.

    Empty, disallowed and too-deep segments are dropped.
    """
    if not include_str:
        return IncludeSet()

    accepted: list[IncludePath] = []
    for segment in include_str.split(","):
        segment = segment.strip()
        if not segment:
            continue
        if not config.is_path_allowed(segment):
            logger.debug("Dropping include path %r: not allowed", segment)
            continue
        accepted.append(IncludePath.parse(segment))
    return IncludeSet.from_paths(accepted)
