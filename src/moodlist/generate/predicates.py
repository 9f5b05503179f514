"""
Catalog predicates as a small expression tree.

Tags, relaxation and the optimizer all build predicates out of these nodes;
only the catalog boundary turns them into SQL. Two renderings exist:

- str(predicate): catalog text form,
  e.g. "energy >= 0.6 AND (genre = 'rock' OR genre = 'pop')"
- predicate.to_sql(): parameterised SQLite WHERE fragment and its params
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, List, Sequence, Tuple, Union

from .features import Feature

logger = logging.getLogger(__name__)

# Columns a predicate may reference
QUERYABLE_FIELDS = frozenset({f.value for f in Feature} | {"genre"})

# One loosening step per threshold value; values not listed stay put
THRESHOLD_RELAXATION: Dict[float, float] = {0.4: 0.5, 0.6: 0.5}


class Op(Enum):
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="
    EQ = "="


def _check_field(field: str) -> str:
    if field not in QUERYABLE_FIELDS:
        raise ValueError(f"Field {field!r} is not queryable")
    return field


def _format_value(value: Union[float, str]) -> str:
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return repr(float(value))


@dataclass(frozen=True)
class Comparison:
    """Single `field op value` test."""

    field: str
    op: Op
    value: Union[float, str]

    def __str__(self) -> str:
        return f"{self.field} {self.op.value} {_format_value(self.value)}"

    def to_sql(self) -> Tuple[str, List]:
        return f"{_check_field(self.field)} {self.op.value} ?", [self.value]


@dataclass(frozen=True)
class And:
    """Conjunction. An empty conjunction matches everything."""

    terms: Tuple = ()

    def __str__(self) -> str:
        return " AND ".join(
            f"({term})" if isinstance(term, Or) else str(term) for term in self.terms
        )

    def to_sql(self) -> Tuple[str, List]:
        if not self.terms:
            return "1 = 1", []
        parts, params = [], []
        for term in self.terms:
            sql, term_params = term.to_sql()
            parts.append(f"({sql})")
            params.extend(term_params)
        return " AND ".join(parts), params


@dataclass(frozen=True)
class Or:
    """Disjunction. An empty disjunction matches nothing."""

    terms: Tuple = ()

    def __str__(self) -> str:
        return " OR ".join(
            f"({term})" if isinstance(term, And) else str(term) for term in self.terms
        )

    def to_sql(self) -> Tuple[str, List]:
        if not self.terms:
            return "1 = 0", []
        parts, params = [], []
        for term in self.terms:
            sql, term_params = term.to_sql()
            parts.append(f"({sql})")
            params.extend(term_params)
        return " OR ".join(parts), params


@dataclass(frozen=True)
class Not:
    """Negation."""

    term: object

    def __str__(self) -> str:
        return f"NOT ({self.term})"

    def to_sql(self) -> Tuple[str, List]:
        sql, params = self.term.to_sql()
        return f"NOT ({sql})", params


Predicate = Union[Comparison, And, Or, Not]

MATCH_ALL = And(())


def build_query(
    feature_predicates: Sequence[Comparison],
    genre_predicates: Sequence[Comparison],
) -> Predicate:
    """
    Combine feature and genre predicates into one catalog filter.

    Feature predicates are ANDed; genre predicates are ORed and the genre
    clause is parenthesised when both kinds are present:
    "tempo >= 125.0 AND valence >= 0.6 AND (genre = 'rock' OR genre = 'pop')"

    Args:
        feature_predicates: Numeric threshold comparisons
        genre_predicates: Genre equality comparisons

    Returns:
        Combined predicate; MATCH_ALL if both inputs are empty
    """
    if feature_predicates and genre_predicates:
        return And(tuple(feature_predicates) + (Or(tuple(genre_predicates)),))
    if genre_predicates:
        return Or(tuple(genre_predicates))
    return And(tuple(feature_predicates))


def relax(
    comparison: Comparison,
    table: Dict[float, float] = THRESHOLD_RELAXATION,
) -> Comparison:
    """
    Loosen a threshold comparison by one step.

    Args:
        comparison: Threshold to loosen
        table: Mapping of threshold value to its looser neighbour

    Returns:
        Comparison with the looser value, or the input unchanged if the value
        has no entry in the table
    """
    if isinstance(comparison.value, str) or comparison.value not in table:
        return comparison
    return replace(comparison, value=table[comparison.value])
