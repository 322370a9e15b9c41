"""
Query-string to MongoDB query compiler.

``compile_query`` turns the raw query parameters of a list endpoint into a
``CompiledQuery``: filter clauses, sort order, pagination and grouping. The
clauses are plain tagged values (``Equals``, ``In``, ``Between``, ``Compare``,
``FullText``) and are only turned into MongoDB syntax by the ``to_mongo_*``
and ``group_pipeline`` functions, so the parsing rules can be tested without
a database. Lowering takes an optional field-type lookup so that values
reach the store as the numbers or booleans their fields hold.

Parameter rules:

- ``search``                -> full-text predicate over the text index
- ``field=value``           -> equality (``"true"``/``"false"`` become booleans)
- ``field__in=a,b``         -> membership
- ``field__between=lo,hi``  -> inclusive range, ISO dates parsed when valid
- ``field__<op>=value``     -> ``$<op>`` comparison, operator passed through verbatim
- ``sort=f__asc,g__desc``   -> sort order, tokens without ``__`` are skipped
- ``page`` + ``perpage``    -> offset pagination
- ``group__columns`` / ``group__sums`` -> aggregation pipeline
- ``projection``            -> field selection (``-field`` excludes)

The compiler never raises: bad operators surface at the store.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

RESERVED_PARAMS = frozenset(
    {"search", "page", "perpage", "status", "sort", "projection", "export_by"}
)
GROUP_PREFIX = "group__"
OPERATOR_SEPARATOR = "__"


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any


@dataclass(frozen=True)
class In:
    field: str
    values: Tuple[Any, ...]


@dataclass(frozen=True)
class Between:
    field: str
    low: Any
    high: Any = None


@dataclass(frozen=True)
class Compare:
    field: str
    operator: str
    value: Any


@dataclass(frozen=True)
class FullText:
    text: str


FilterClause = Union[Equals, In, Between, Compare, FullText]


@dataclass(frozen=True)
class Pagination:
    page: int
    perpage: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.perpage

    def page_count(self, total: int) -> int:
        return math.ceil(total / self.perpage)


@dataclass(frozen=True)
class Grouping:
    columns: Tuple[str, ...]
    sums: Tuple[str, ...] = ()


@dataclass
class CompiledQuery:
    clauses: List[FilterClause] = field(default_factory=list)
    sort: List[Tuple[str, int]] = field(default_factory=list)
    pagination: Optional[Pagination] = None
    grouping: Optional[Grouping] = None
    projection: Optional[str] = None


def is_reserved(name: str) -> bool:
    return name in RESERVED_PARAMS or name.startswith(GROUP_PREFIX)


def coerce_bool(value: str) -> Any:
    if value == "true":
        return True
    if value == "false":
        return False
    return value


def parse_date_or_raw(value: str) -> Any:
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError:
        return value


def _split_list(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_clause(key: str, value: str) -> FilterClause:
    name, sep, operator = key.partition(OPERATOR_SEPARATOR)
    if not sep:
        return Equals(key, coerce_bool(value))

    if operator == "in":
        return In(name, tuple(coerce_bool(v) for v in value.split(",")))
    if operator == "between":
        low, _, high = value.partition(",")
        return Between(
            name,
            parse_date_or_raw(low),
            parse_date_or_raw(high) if high else None,
        )
    return Compare(name, operator, coerce_bool(value))


def parse_sort(value: Optional[str]) -> List[Tuple[str, int]]:
    order = []
    for token in _split_list(value or ""):
        parts = token.split(OPERATOR_SEPARATOR)
        if len(parts) < 2 or not parts[0]:
            continue
        order.append((parts[0], 1 if parts[1] == "asc" else -1))
    return order


def parse_pagination(page: Optional[str], perpage: Optional[str]) -> Optional[Pagination]:
    if page is None or perpage is None:
        return None
    try:
        page_num, size = int(page), int(perpage)
    except ValueError:
        return None
    if page_num < 1 or size < 1:
        return None
    return Pagination(page_num, size)


def parse_grouping(params: Mapping[str, str]) -> Optional[Grouping]:
    columns = _split_list(params.get("group__columns") or "")
    if not columns:
        return None
    sums = _split_list(params.get("group__sums") or "")
    return Grouping(tuple(columns), tuple(sums))


def compile_query(params: Mapping[str, str]) -> CompiledQuery:
    query = CompiledQuery()

    search = params.get("search")
    if search:
        query.clauses.append(FullText(search))

    for key, value in params.items():
        if is_reserved(key):
            continue
        query.clauses.append(parse_clause(key, value))

    query.sort = parse_sort(params.get("sort"))
    query.grouping = parse_grouping(params)
    if query.grouping is None:
        query.pagination = parse_pagination(params.get("page"), params.get("perpage"))
        query.projection = params.get("projection") or None
    return query


# ---------- MongoDB lowering ----------

# dotted field path -> stored scalar type, or None when unknown
FieldTypes = Callable[[str], Optional[type]]


def cast_value(value: Any, target: Optional[type]) -> Any:
    """Convert a raw query string to the stored type of its field; anything else is kept."""
    if not isinstance(value, str) or target is None:
        return value
    if target is bool:
        return coerce_bool(value)
    if target in (int, float):
        for convert in (target, float):
            try:
                return convert(value)
            except ValueError:
                continue
    return value


def clause_to_mongo(clause: FilterClause, field_types: Optional[FieldTypes] = None) -> Dict[str, Any]:
    if isinstance(clause, FullText):
        return {"$text": {"$search": clause.text}}

    target = field_types(clause.field) if field_types is not None else None
    if isinstance(clause, Equals):
        return {clause.field: cast_value(clause.value, target)}
    if isinstance(clause, In):
        return {clause.field: {"$in": [cast_value(v, target) for v in clause.values]}}
    if isinstance(clause, Between):
        bounds = {"$gte": cast_value(clause.low, target)}
        if clause.high is not None:
            bounds["$lte"] = cast_value(clause.high, target)
        return {clause.field: bounds}
    if isinstance(clause, Compare):
        return {clause.field: {"$" + clause.operator: cast_value(clause.value, target)}}
    raise TypeError(f"Unknown filter clause: {clause!r}")


def to_mongo_filter(
    clauses: List[FilterClause], field_types: Optional[FieldTypes] = None
) -> Dict[str, Any]:
    parts = [clause_to_mongo(c, field_types) for c in clauses]
    merged: Dict[str, Any] = {}
    for part in parts:
        if any(key in merged for key in part):
            # same field constrained twice: keep both predicates
            return {"$and": parts}
        merged.update(part)
    return merged


def to_mongo_projection(projection: Optional[str]) -> Optional[Dict[str, int]]:
    if not projection:
        return None
    fields = [f for f in projection.replace(",", " ").split() if f]
    if not fields:
        return None
    return {f.lstrip("-"): 0 if f.startswith("-") else 1 for f in fields}


def group_pipeline(
    query: CompiledQuery, field_types: Optional[FieldTypes] = None
) -> List[Dict[str, Any]]:
    if query.grouping is None:
        raise ValueError("query has no grouping")

    group: Dict[str, Any] = {"_id": {col: f"${col}" for col in query.grouping.columns}}
    for column in query.grouping.sums:
        group[column] = {"$sum": f"${column}"}

    pipeline: List[Dict[str, Any]] = [
        {"$match": to_mongo_filter(query.clauses, field_types)},
        {"$group": group},
    ]
    if query.sort:
        pipeline.append({"$sort": dict(query.sort)})
    return pipeline
