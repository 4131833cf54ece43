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

"""Query backends."""

from .base import QueryBackend, facet_key, parse_order_spec
from .memory import InMemoryQueryBackend, MemoryQuery
from .sql import SQLQueryBackend, get_column

__all__ = [
    "QueryBackend",
    "InMemoryQueryBackend",
    "MemoryQuery",
    "SQLQueryBackend",
    "get_column",
    "facet_key",
    "parse_order_spec",
]
