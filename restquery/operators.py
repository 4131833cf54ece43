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

"""PostgREST-style filter operators."""

from __future__ import annotations

from enum import Enum


class Operator(str, Enum):
    """Filter operators accepted in ``field=op.value`` tokens."""

    EQ = "eq"  # equal
    NEQ = "neq"  # not equal
    GT = "gt"  # greater than
    GTE = "gte"  # greater than or equal
    LT = "lt"  # less than
    LTE = "lte"  # less than or equal
    IN = "in"  # member of list
    NIN = "nin"  # not a member of list
    LIKE = "like"  # substring match (case-sensitive)
    ILIKE = "ilike"  # substring match (case-insensitive)
    NULL = "null"  # IS NULL
    NOT_NULL = "notNull"  # IS NOT NULL

    def is_valid(self) -> bool:
        return is_valid_operator(self.value)


_VALID_OPERATORS = frozenset(op.value for op in Operator)

# Operators whose scalar operand is a comma-separated list.
LIST_OPERATORS = frozenset({Operator.IN, Operator.NIN})

# Operators that take no operand at all.
NULLARY_OPERATORS = frozenset({Operator.NULL, Operator.NOT_NULL})


def is_valid_operator(token: str) -> bool:
    """Return True iff ``token`` is one of the defined operator tokens."""
    return token in _VALID_OPERATORS


def all_operators() -> list[Operator]:
    return list(Operator)
