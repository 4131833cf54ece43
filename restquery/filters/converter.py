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

"""Condition converter.

Turns a parsed ``Condition`` into a SQLAlchemy ``ColumnElement[bool]`` or
evaluates it against a Python record. Operands arrive as strings and are
coerced to the column's Python type first; a value that cannot be coerced is
compared as the raw string.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import ColumnElement, String, cast, or_

from ..models import Condition
from ..operators import Operator

_TRUE_WORDS = frozenset({"1", "true", "yes", "y", "on"})
_FALSE_WORDS = frozenset({"0", "false", "no", "n", "off"})


# ============================================================================
# Operand coercion
# ============================================================================


def _coerce_bool(text: str) -> bool | str:
    lowered = text.strip().lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    return text


def _coerce_datetime(text: str) -> datetime | str:
    stripped = text.strip()
    try:
        if "T" not in stripped and " " not in stripped and len(stripped) == 10:
            # Date-only literal for a timestamp column -> start of the day.
            parsed = datetime.combine(date.fromisoformat(stripped), datetime.min.time())
        else:
            parsed = datetime.fromisoformat(stripped.replace("Z", "+00:00"))
    except ValueError:
        return text
    return parsed


def _coerce_date(text: str) -> date | str:
    stripped = text.strip()
    try:
        if "T" in stripped or " " in stripped:
            return datetime.fromisoformat(stripped.replace("Z", "+00:00")).date()
        return date.fromisoformat(stripped)
    except ValueError:
        return text


def coerce_value(raw: str, python_type: type | None) -> Any:
    """Convert a string operand to ``python_type``.

    Returns ``raw`` unchanged when the type is unknown or conversion fails.

    Examples:
        >>> coerce_value("42", int)
        42
        >>> coerce_value("true", bool)
        True
        >>> coerce_value("abc", int)
        'abc'
    """
    if python_type is None or python_type is str:
        return raw
    if python_type is bool:
        return _coerce_bool(raw)
    if python_type is datetime:
        return _coerce_datetime(raw)
    if python_type is date:
        return _coerce_date(raw)
    try:
        if python_type is int:
            return int(raw.strip())
        if python_type is float:
            return float(raw.strip())
        if python_type is Decimal:
            return Decimal(raw.strip())
        if python_type is uuid.UUID:
            return uuid.UUID(raw.strip())
    except (ValueError, InvalidOperation):
        return raw
    return raw


def column_python_type(column: ColumnElement[Any]) -> type | None:
    """Python type of a SQLAlchemy column, or None if the type does not say."""
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _scalar_operands(condition: Condition) -> list[str]:
    """Operands of an array-style condition.

    A scalar ``in``/``nin`` operand is read as a comma-separated list.
    """
    if condition.values:
        return list(condition.values)
    if condition.value:
        return condition.value.split(",")
    return []


# ============================================================================
# SQLAlchemy conversion
# ============================================================================


def to_sqlalchemy(condition: Condition, column: ColumnElement[Any]) -> ColumnElement[bool] | None:
    """Convert a condition on ``column`` into a SQLAlchemy expression.

    Returns None when the condition is a no-op (``in``/``nin`` without
    operands).

    Examples:
        >>> from sqlalchemy import Column, Integer
        >>> expr = to_sqlalchemy(Condition.eq("age", "30"), Column("age", Integer))
        >>> str(expr)
        'age = :age_1'
    """
    python_type = column_python_type(column)
    op = condition.operator

    def coerce(raw: str) -> Any:
        return coerce_value(raw, python_type)

    if op == Operator.EQ:
        if condition.values:
            return column.in_([coerce(v) for v in condition.values])
        return column == coerce(condition.value)
    if op == Operator.NEQ:
        if condition.values:
            return column.not_in([coerce(v) for v in condition.values])
        return column != coerce(condition.value)
    if op == Operator.GT:
        return column > coerce(condition.value)
    if op == Operator.GTE:
        return column >= coerce(condition.value)
    if op == Operator.LT:
        return column < coerce(condition.value)
    if op == Operator.LTE:
        return column <= coerce(condition.value)
    if op in (Operator.IN, Operator.NIN):
        operands = _scalar_operands(condition)
        if not operands:
            return None
        coerced = [coerce(v) for v in operands]
        return column.in_(coerced) if op == Operator.IN else column.not_in(coerced)
    if op == Operator.LIKE:
        return column.like(f"%{condition.value}%")
    if op == Operator.ILIKE:
        return column.ilike(f"%{condition.value}%")
    if op == Operator.NULL:
        return column.is_(None)
    if op == Operator.NOT_NULL:
        return column.is_not(None)
    raise ValueError(f"Unsupported operator: {op}")


def search_to_sqlalchemy(text: str, columns: Sequence[ColumnElement[Any]]) -> ColumnElement[bool]:
    """OR of case-insensitive substring matches of ``text`` over ``columns``."""
    pattern = f"%{text.lower()}%"
    clauses = []
    for column in columns:
        target = column if isinstance(column.type, String) else cast(column, String)
        clauses.append(target.ilike(pattern))
    return or_(*clauses)


# ============================================================================
# Python evaluation
# ============================================================================


def get_field_value(record: Any, field: str) -> Any:
    """Read ``field`` from a mapping or an object; missing fields are None."""
    if isinstance(record, Mapping):
        return record.get(field)
    return getattr(record, field, None)


def _coerce_like(raw: str, sample: Any) -> Any:
    if sample is None:
        return raw
    coerced = coerce_value(raw, type(sample))
    if isinstance(sample, datetime) and isinstance(coerced, datetime) and coerced.tzinfo is None:
        # Naive literals take the record's timezone so the two stay comparable.
        coerced = coerced.replace(tzinfo=sample.tzinfo)
    return coerced


def _safe_compare(a: object, b: object, op: Operator) -> bool:
    try:
        if op == Operator.GT:
            return a > b  # type: ignore[operator]
        if op == Operator.GTE:
            return a >= b  # type: ignore[operator]
        if op == Operator.LT:
            return a < b  # type: ignore[operator]
        if op == Operator.LTE:
            return a <= b  # type: ignore[operator]
        return False
    except TypeError:
        return False


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def evaluate(condition: Condition, record: Any, field: str | None = None) -> bool:
    """Evaluate a condition against a record in Python.

    Args:
        condition: Parsed condition
        record: Mapping, pydantic model or plain object
        field: Physical field to read; defaults to ``condition.field``

    Examples:
        >>> evaluate(Condition.eq("name", "alice"), {"name": "alice"})
        True
        >>> evaluate(Condition.in_("age", ["25", "30"]), {"age": 30})
        True
    """
    field_value = get_field_value(record, field or condition.field)
    op = condition.operator

    if op == Operator.NULL:
        return field_value is None
    if op == Operator.NOT_NULL:
        return field_value is not None
    if op in (Operator.IN, Operator.NIN) and not _scalar_operands(condition):
        return True
    # SQL semantics: any other comparison against NULL is not true.
    if field_value is None:
        return False

    if op in (Operator.EQ, Operator.NEQ, Operator.IN, Operator.NIN):
        if op in (Operator.EQ, Operator.NEQ) and not condition.values:
            equal = field_value == _coerce_like(condition.value, field_value)
            return equal if op == Operator.EQ else not equal
        member = field_value in [_coerce_like(v, field_value) for v in _scalar_operands(condition)]
        return member if op in (Operator.EQ, Operator.IN) else not member

    if op in (Operator.GT, Operator.GTE, Operator.LT, Operator.LTE):
        return _safe_compare(field_value, _coerce_like(condition.value, field_value), op)
    if op == Operator.LIKE:
        return condition.value in _as_text(field_value)
    if op == Operator.ILIKE:
        return condition.value.lower() in _as_text(field_value).lower()

    raise ValueError(f"Unsupported operator: {op}")


def matches_search(text: str, record: Any, fields: Sequence[str]) -> bool:
    """True if any of ``fields`` contains ``text``, ignoring case."""
    needle = text.lower()
    for field in fields:
        value = get_field_value(record, field)
        if value is not None and needle in _as_text(value).lower():
            return True
    return False
