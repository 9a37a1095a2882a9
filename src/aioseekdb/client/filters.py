"""
Typed metadata and document filters and their compilation to parameterized SQL

Metadata filters (Filter):
- Comparisons: Eq, Lt, Gt, Lte, Gte, Ne
- Membership: In, Nin
- Logical: And, Or, Not

Document filters (DocFilter):
- Contains (full-text match), Regex
- DocAnd, DocOr

Values are always bound as ``%s`` parameters; only metadata field names are
written into the SQL text, and those are checked against FIELD_NAME_PATTERN.

Empty logical lists: And([]) compiles to ``1=1`` (always true) and Or([])
to ``1=0`` (always false). In(field, []) is ``1=0`` and Nin(field, []) is
``1=1``. The same policy applies to DocAnd/DocOr.

The dict dialect used by the rest of the SDK is accepted through parse_where()
and parse_where_document():

    {"age": {"$gte": 18}}
    {"$and": [{"age": {"$gte": 18}}, {"city": "Beijing"}]}
    {"$contains": "python"}
"""
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidInputError
from .meta_info import CollectionFieldNames

FilterValue = Union[str, int, float, bool, None]

FIELD_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")

ALWAYS_TRUE = "1=1"
ALWAYS_FALSE = "1=0"


def _check_field(field: str) -> str:
    if not isinstance(field, str) or not FIELD_NAME_PATTERN.match(field):
        raise InvalidInputError(f"Invalid metadata field name: {field!r}")
    return field


def _check_value(value: Any) -> FilterValue:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    raise InvalidInputError(
        f"Filter values must be str, int, float, bool or None, got {type(value).__name__}"
    )


def json_path(field: str) -> str:
    """SQL expression extracting a metadata field"""
    return f"JSON_EXTRACT({CollectionFieldNames.METADATA}, '$.{_check_field(field)}')"


# ==================== Metadata filters ====================


class Filter:
    """Base class of all metadata filter variants"""

    def __and__(self, other: "Filter") -> "And":
        return And([self, _as_filter(other)])

    def __or__(self, other: "Filter") -> "Or":
        return Or([self, _as_filter(other)])

    def __invert__(self) -> "Not":
        return Not(self)

    @staticmethod
    def from_dict(where: Mapping[str, Any]) -> "Filter":
        return _filter_from_dict(where)


@dataclass(frozen=True)
class _Comparison(Filter):
    field: str
    value: FilterValue

    def __post_init__(self):
        _check_field(self.field)
        _check_value(self.value)


class Eq(_Comparison):
    pass


class Lt(_Comparison):
    pass


class Gt(_Comparison):
    pass


class Lte(_Comparison):
    pass


class Gte(_Comparison):
    pass


class Ne(_Comparison):
    pass


@dataclass(frozen=True)
class _Membership(Filter):
    field: str
    values: Tuple[FilterValue, ...]

    def __post_init__(self):
        _check_field(self.field)
        if isinstance(self.values, (str, bytes)) or not isinstance(self.values, Sequence):
            raise InvalidInputError(f"{type(self).__name__} values must be a list, got {type(self.values).__name__}")
        object.__setattr__(self, "values", tuple(_check_value(v) for v in self.values))


class In(_Membership):
    pass


class Nin(_Membership):
    pass


@dataclass(frozen=True)
class _Junction(Filter):
    children: Tuple[Filter, ...]

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(_as_filter(c) for c in self.children))


class And(_Junction):
    pass


class Or(_Junction):
    pass


@dataclass(frozen=True)
class Not(Filter):
    child: Filter

    def __post_init__(self):
        object.__setattr__(self, "child", _as_filter(self.child))


def _as_filter(value: Any) -> Filter:
    if isinstance(value, Filter):
        return value
    if isinstance(value, Mapping):
        return _filter_from_dict(value)
    raise InvalidInputError(f"Expected a metadata Filter, got {type(value).__name__}")


_COMPARISON_OPERATORS = {
    Eq: "=",
    Lt: "<",
    Gt: ">",
    Lte: "<=",
    Gte: ">=",
    Ne: "!=",
}

_DICT_COMPARISONS = {
    "$eq": Eq,
    "$lt": Lt,
    "$gt": Gt,
    "$lte": Lte,
    "$gte": Gte,
    "$ne": Ne,
}


@dataclass(frozen=True)
class SqlWhere:
    """Compiled predicate: clause text (without the WHERE keyword) and ordered parameters"""
    clause: str
    params: Tuple[Any, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.clause)

    def to_sql(self) -> str:
        return f"WHERE {self.clause}" if self.clause else ""


def compile_filter(flt: Filter) -> SqlWhere:
    """
    Compile a metadata filter tree

    Examples:
        Gte("age", 18)
        -> ("JSON_EXTRACT(metadata, '$.age') >= %s", (18,))

        And([Gte("age", 18), Eq("city", "Beijing")])
        -> ("(JSON_EXTRACT(metadata, '$.age') >= %s AND JSON_EXTRACT(metadata, '$.city') = %s)", (18, "Beijing"))
    """
    params: List[Any] = []
    clause = _compile_filter(flt, params)
    return SqlWhere(clause, tuple(params))


def _compile_filter(flt: Filter, params: List[Any]) -> str:
    if isinstance(flt, _Comparison):
        params.append(flt.value)
        return f"{json_path(flt.field)} {_COMPARISON_OPERATORS[type(flt)]} %s"

    if isinstance(flt, _Membership):
        if not flt.values:
            return ALWAYS_FALSE if isinstance(flt, In) else ALWAYS_TRUE
        params.extend(flt.values)
        placeholders = ", ".join(["%s"] * len(flt.values))
        operator = "IN" if isinstance(flt, In) else "NOT IN"
        return f"{json_path(flt.field)} {operator} ({placeholders})"

    if isinstance(flt, _Junction):
        if not flt.children:
            return ALWAYS_TRUE if isinstance(flt, And) else ALWAYS_FALSE
        joiner = " AND " if isinstance(flt, And) else " OR "
        return "(" + joiner.join(_compile_filter(c, params) for c in flt.children) + ")"

    if isinstance(flt, Not):
        return f"NOT ({_compile_filter(flt.child, params)})"

    raise InvalidInputError(f"Unsupported metadata filter: {type(flt).__name__}")


def _filter_from_dict(where: Mapping[str, Any]) -> Filter:
    if not isinstance(where, Mapping):
        raise InvalidInputError(f"Metadata filter must be a dict, got {type(where).__name__}")

    conditions: List[Filter] = []
    for key, value in where.items():
        if key in ("$and", "$or"):
            if not isinstance(value, (list, tuple)):
                raise InvalidInputError(f"{key} expects a list of filters")
            children = [_filter_from_dict(v) for v in value]
            conditions.append(And(children) if key == "$and" else Or(children))
        elif key == "$not":
            conditions.append(Not(_filter_from_dict(value)))
        elif key.startswith("$"):
            raise InvalidInputError(f"Unknown logical operator: {key}")
        elif isinstance(value, Mapping):
            for op, op_value in value.items():
                conditions.append(_field_condition(key, op, op_value))
        else:
            conditions.append(Eq(key, value))

    if len(conditions) == 1:
        return conditions[0]
    return And(conditions)


def _field_condition(field: str, op: str, value: Any) -> Filter:
    if op in _DICT_COMPARISONS:
        return _DICT_COMPARISONS[op](field, value)
    if op == "$in":
        return In(field, value)
    if op == "$nin":
        return Nin(field, value)
    raise InvalidInputError(f"Unknown operator {op!r} for field {field!r}")


# ==================== Document filters ====================


class DocFilter:
    """Base class of all document (full-text) filter variants"""

    def __and__(self, other: "DocFilter") -> "DocAnd":
        return DocAnd([self, _as_doc_filter(other)])

    def __or__(self, other: "DocFilter") -> "DocOr":
        return DocOr([self, _as_doc_filter(other)])

    @staticmethod
    def from_dict(where_document: Mapping[str, Any]) -> "DocFilter":
        return _doc_filter_from_dict(where_document)


@dataclass(frozen=True)
class Contains(DocFilter):
    text: str

    def __post_init__(self):
        if not isinstance(self.text, str):
            raise InvalidInputError(f"$contains expects a string, got {type(self.text).__name__}")


@dataclass(frozen=True)
class Regex(DocFilter):
    pattern: str

    def __post_init__(self):
        if not isinstance(self.pattern, str):
            raise InvalidInputError(f"$regex expects a string, got {type(self.pattern).__name__}")


@dataclass(frozen=True)
class _DocJunction(DocFilter):
    children: Tuple[DocFilter, ...]

    def __post_init__(self):
        object.__setattr__(self, "children", tuple(_as_doc_filter(c) for c in self.children))


class DocAnd(_DocJunction):
    pass


class DocOr(_DocJunction):
    pass


def _as_doc_filter(value: Any) -> DocFilter:
    if isinstance(value, DocFilter):
        return value
    if isinstance(value, Mapping):
        return _doc_filter_from_dict(value)
    if isinstance(value, str):
        return Contains(value)
    raise InvalidInputError(f"Expected a DocFilter, got {type(value).__name__}")


def compile_doc_filter(flt: DocFilter) -> SqlWhere:
    """
    Compile a document filter tree

    Examples:
        Contains("python")
        -> ("MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE)", ("python",))

        Regex("^hello.*world$")
        -> ("document REGEXP %s", ("^hello.*world$",))
    """
    params: List[Any] = []
    clause = _compile_doc_filter(flt, params)
    return SqlWhere(clause, tuple(params))


def _compile_doc_filter(flt: DocFilter, params: List[Any]) -> str:
    document = CollectionFieldNames.DOCUMENT
    if isinstance(flt, Contains):
        params.append(flt.text)
        return f"MATCH({document}) AGAINST (%s IN NATURAL LANGUAGE MODE)"

    if isinstance(flt, Regex):
        params.append(flt.pattern)
        return f"{document} REGEXP %s"

    if isinstance(flt, _DocJunction):
        if not flt.children:
            return ALWAYS_TRUE if isinstance(flt, DocAnd) else ALWAYS_FALSE
        joiner = " AND " if isinstance(flt, DocAnd) else " OR "
        return "(" + joiner.join(_compile_doc_filter(c, params) for c in flt.children) + ")"

    raise InvalidInputError(f"Unsupported document filter: {type(flt).__name__}")


def _doc_filter_from_dict(where_document: Mapping[str, Any]) -> DocFilter:
    if not isinstance(where_document, Mapping):
        raise InvalidInputError(f"Document filter must be a dict, got {type(where_document).__name__}")

    conditions: List[DocFilter] = []
    for key, value in where_document.items():
        if key == "$contains":
            conditions.append(Contains(value))
        elif key == "$regex":
            conditions.append(Regex(value))
        elif key in ("$and", "$or"):
            if not isinstance(value, (list, tuple)):
                raise InvalidInputError(f"{key} expects a list of document filters")
            children = [_doc_filter_from_dict(v) for v in value]
            conditions.append(DocAnd(children) if key == "$and" else DocOr(children))
        else:
            raise InvalidInputError(f"Unknown document filter operator: {key}")

    if len(conditions) == 1:
        return conditions[0]
    return DocAnd(conditions)


# ==================== Normalization & assembly ====================

WhereParam = Optional[Union[Filter, Dict[str, Any]]]
WhereDocumentParam = Optional[Union[DocFilter, Dict[str, Any]]]


def parse_where(where: WhereParam) -> Optional[Filter]:
    """Normalize a metadata filter argument; None and {} mean 'no filter'"""
    if where is None:
        return None
    if isinstance(where, Filter):
        return where
    if isinstance(where, Mapping) and not where:
        return None
    return _filter_from_dict(where)


def parse_where_document(where_document: WhereDocumentParam) -> Optional[DocFilter]:
    """Normalize a document filter argument; None and {} mean 'no filter'"""
    if where_document is None:
        return None
    if isinstance(where_document, DocFilter):
        return where_document
    if isinstance(where_document, Mapping) and not where_document:
        return None
    return _doc_filter_from_dict(where_document)


def merge_filters(*filters: Optional[Filter]) -> Optional[Filter]:
    """AND-merge the given filters, ignoring None"""
    present = [f for f in filters if f is not None]
    if not present:
        return None
    if len(present) == 1:
        return present[0]
    return And(present)


def build_where_clause(
    ids: Optional[Sequence[Any]] = None,
    where: WhereParam = None,
    where_document: WhereDocumentParam = None,
) -> SqlWhere:
    """
    Assemble the predicate shared by every read and write path

    Parts are AND-joined in a fixed order: id membership, metadata filter,
    document filter. Returns SqlWhere("", ()) when nothing is given.
    """
    clauses: List[str] = []
    params: List[Any] = []

    if ids:
        placeholders = ", ".join(["%s"] * len(ids))
        clauses.append(f"{CollectionFieldNames.ID} IN ({placeholders})")
        params.extend(str(i) for i in ids)

    meta_filter = parse_where(where)
    if meta_filter is not None:
        compiled = compile_filter(meta_filter)
        clauses.append(compiled.clause)
        params.extend(compiled.params)

    doc_filter = parse_where_document(where_document)
    if doc_filter is not None:
        compiled = compile_doc_filter(doc_filter)
        clauses.append(compiled.clause)
        params.extend(compiled.params)

    return SqlWhere(" AND ".join(clauses), tuple(params))
