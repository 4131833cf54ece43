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

"""Exceptions raised by restquery."""

from __future__ import annotations

from enum import Enum


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


class QueryPhase(str, Enum):
    """Stage of query execution that failed."""

    COUNT = "count"
    QUERY = "query"
    FACET = "facet"


class QueryError(Exception):
    """A backend operation failed while running a list query.

    The underlying backend exception is available as ``cause`` and as
    ``__cause__``.
    """

    def __init__(self, phase: QueryPhase, cause: BaseException) -> None:
        self.phase = phase
        self.cause = cause
        super().__init__(f"{phase.value}: {cause}")
