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

"""Filter string parsing and condition conversion."""

from .converter import (
    coerce_value,
    evaluate,
    get_field_value,
    matches_search,
    search_to_sqlalchemy,
    to_sqlalchemy,
)
from .parser import (
    format_condition,
    format_filter_string,
    parse_array_values,
    parse_condition,
    parse_filter_string,
    unescape_value,
)

__all__ = [
    # Parsing
    "parse_condition",
    "parse_filter_string",
    "parse_array_values",
    "unescape_value",
    # Serialization
    "format_condition",
    "format_filter_string",
    # Conversion
    "to_sqlalchemy",
    "search_to_sqlalchemy",
    "evaluate",
    "matches_search",
    "get_field_value",
    "coerce_value",
]
