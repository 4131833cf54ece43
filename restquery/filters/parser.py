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

"""PostgREST-style filter string parsing.

Supported token formats:

- ``field=op.value`` (scalar operand)
- ``field=op.(v1,v2,...)`` (array operand, ``\\`` escapes the next character)
- ``field=is.null`` / ``field=not.is.null``
- ``field=value`` (bare value, exact match)

Parsing never fails. A token with an unknown operator is treated as an exact
match against the whole value, so ``score=xx.5`` filters ``score = "xx.5"``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from ..models import Condition
from ..operators import NULLARY_OPERATORS, Operator, is_valid_operator

logger = logging.getLogger(__name__)

IS_NULL = "is.null"
NOT_IS_NULL = "not.is.null"

# Characters that need a backslash when formatting a value back into a token.
_SPECIAL_CHARS = frozenset("\\,()&")


def parse_condition(field: str, value: str) -> Condition:
    """Parse the right-hand side of a single ``field=...`` token.

    Examples:
        >>> parse_condition("status", "eq.active")
        Condition(field='status', operator=<Operator.EQ: 'eq'>, value='active', values=())
        >>> parse_condition("status", "in.(active,pending)").values
        ('active', 'pending')
        >>> parse_condition("score", "xx.5").value
        'xx.5'
    """
    if value == IS_NULL:
        return Condition(field=field, operator=Operator.NULL)
    if value == NOT_IS_NULL:
        return Condition(field=field, operator=Operator.NOT_NULL)

    op_token, dot, raw_value = value.partition(".")
    if not dot or not is_valid_operator(op_token):
        return Condition(field=field, operator=Operator.EQ, value=value)

    operator = Operator(op_token)
    if raw_value.startswith("(") and raw_value.endswith(")") and len(raw_value) >= 2:
        return Condition(field=field, operator=operator, values=tuple(parse_array_values(raw_value[1:-1])))
    return Condition(field=field, operator=operator, value=unescape_value(raw_value))


def parse_array_values(inner: str) -> list[str]:
    """Split a comma-separated array body, honoring backslash escapes.

    Elements are trimmed and empty elements are dropped.
    """
    values: list[str] = []
    current: list[str] = []
    escaped = False
    for char in inner:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == ",":
            item = "".join(current).strip()
            if item:
                values.append(item)
            current = []
        else:
            current.append(char)

    item = "".join(current).strip()
    if item:
        values.append(item)
    return values


def unescape_value(raw: str) -> str:
    """Drop backslashes, keeping the character each one escapes."""
    result: list[str] = []
    escaped = False
    for char in raw:
        if escaped:
            result.append(char)
            escaped = False
        elif char == "\\":
            escaped = True
        else:
            result.append(char)
    return "".join(result)


def is_field_allowed(field: str, allowed_fields: Sequence[str]) -> bool:
    """An empty allow-list permits every field."""
    return not allowed_fields or field in allowed_fields


def _split_unescaped(s: str, separator: str) -> list[str]:
    """Split on ``separator`` unless it is preceded by a backslash.

    Escapes are kept in the output so that operands can be unescaped later.
    """
    parts: list[str] = []
    current: list[str] = []
    escaped = False
    for char in s:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\":
            current.append(char)
            escaped = True
        elif char == separator:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def parse_filter_string(filter_str: str, allowed_fields: Sequence[str] = ()) -> list[Condition]:
    """Parse an ampersand-joined filter string such as ``status=eq.active&priority=gt.3``.

    Tokens without ``=`` and fields outside ``allowed_fields`` are skipped.
    """
    conditions: list[Condition] = []
    for token in _split_unescaped(filter_str, "&"):
        field, sep, value = token.partition("=")
        if not sep:
            continue
        if not is_field_allowed(field, allowed_fields):
            logger.debug("Dropping filter on %r: field not allowed", field)
            continue
        conditions.append(parse_condition(field, value))
    return conditions


def escape_value(value: str) -> str:
    return "".join(f"\\{char}" if char in _SPECIAL_CHARS else char for char in value)


def format_condition(condition: Condition) -> str:
    """Serialize a condition back into a ``field=op.value`` token.

    Examples:
        >>> format_condition(Condition.in_("tag", ["a,b", "c"]))
        'tag=in.(a\\\\,b,c)'
        >>> format_condition(Condition.is_null("name"))
        'name=is.null'
    """
    field = condition.field
    if condition.operator in NULLARY_OPERATORS:
        return f"{field}={IS_NULL if condition.operator == Operator.NULL else NOT_IS_NULL}"

    op = condition.operator.value
    if condition.values:
        return f"{field}={op}.({','.join(escape_value(v) for v in condition.values)})"
    return f"{field}={op}.{escape_value(condition.value)}"


def format_filter_string(conditions: Iterable[Condition]) -> str:
    """Serialize conditions into a combined ``&``-joined filter string."""
    return "&".join(format_condition(c) for c in conditions)
