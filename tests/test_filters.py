"""
Filter compiler tests - metadata filters, document filters and WHERE assembly
"""
import pytest

from aioseekdb import (
    And,
    Contains,
    DocAnd,
    DocOr,
    Eq,
    Gt,
    Gte,
    In,
    InvalidInputError,
    Lt,
    Lte,
    Ne,
    Nin,
    Not,
    Or,
    Regex,
)
from aioseekdb.client.filters import (
    build_where_clause,
    compile_doc_filter,
    compile_filter,
    merge_filters,
    parse_where,
    parse_where_document,
)


class TestCompileFilter:
    """Metadata filter compilation"""

    @pytest.mark.parametrize("flt, op", [
        (Eq("a", 1), "="),
        (Ne("a", 1), "!="),
        (Lt("a", 1), "<"),
        (Lte("a", 1), "<="),
        (Gt("a", 1), ">"),
        (Gte("a", 1), ">="),
    ])
    def test_comparisons(self, flt, op):
        compiled = compile_filter(flt)
        assert compiled.clause == f"JSON_EXTRACT(metadata, '$.a') {op} %s"
        assert compiled.params == (1,)

    def test_and_of_comparisons(self):
        compiled = compile_filter(And([Gte("age", 18), Eq("city", "Beijing")]))
        assert compiled.clause == (
            "(JSON_EXTRACT(metadata, '$.age') >= %s AND JSON_EXTRACT(metadata, '$.city') = %s)"
        )
        assert compiled.params == (18, "Beijing")

    def test_in_has_one_placeholder_per_value(self):
        values = ["a", "b", "c", "d"]
        compiled = compile_filter(In("tag", values))
        assert compiled.clause.count("%s") == len(values)
        assert compiled.clause == "JSON_EXTRACT(metadata, '$.tag') IN (%s, %s, %s, %s)"
        assert compiled.params == tuple(values)

    def test_nin(self):
        compiled = compile_filter(Nin("tag", ["x"]))
        assert compiled.clause == "JSON_EXTRACT(metadata, '$.tag') NOT IN (%s)"
        assert compiled.params == ("x",)

    def test_empty_lists(self):
        assert compile_filter(And([])).clause == "1=1"
        assert compile_filter(Or([])).clause == "1=0"
        assert compile_filter(In("a", [])).clause == "1=0"
        assert compile_filter(Nin("a", [])).clause == "1=1"
        assert compile_filter(In("a", [])).params == ()

    def test_not_and_nesting_preserve_parameter_order(self):
        flt = Or([Eq("a", 1), Not(And([Gt("b", 2), In("c", [3, 4])]))])
        compiled = compile_filter(flt)
        assert compiled.clause == (
            "(JSON_EXTRACT(metadata, '$.a') = %s OR NOT ((JSON_EXTRACT(metadata, '$.b') > %s "
            "AND JSON_EXTRACT(metadata, '$.c') IN (%s, %s))))"
        )
        assert compiled.params == (1, 2, 3, 4)

    def test_operators_build_junctions(self):
        flt = (Eq("a", 1) & Eq("b", 2)) | ~Eq("c", 3)
        assert isinstance(flt, Or)
        assert isinstance(flt.children[0], And)
        assert flt.children[1] == Not(Eq("c", 3))

    def test_compilation_is_deterministic(self):
        flt = And([Eq("a", "x"), Or([Lt("b", 1.5), Nin("c", [True, None])])])
        assert compile_filter(flt) == compile_filter(flt)

    def test_nested_field_path(self):
        assert compile_filter(Eq("user.name", "bob")).clause == "JSON_EXTRACT(metadata, '$.user.name') = %s"

    @pytest.mark.parametrize("field", ["", "a'b", "a b", "1abc", "a..b", "a;DROP"])
    def test_rejects_unsafe_field_names(self, field):
        with pytest.raises(InvalidInputError):
            Eq(field, 1)

    def test_rejects_unsupported_values(self):
        with pytest.raises(InvalidInputError):
            Eq("a", {"nested": 1})
        with pytest.raises(InvalidInputError):
            In("a", [[1, 2]])
        with pytest.raises(InvalidInputError):
            In("a", "abc")

    def test_values_are_never_inlined(self):
        compiled = compile_filter(Eq("name", "x' OR '1'='1"))
        assert "x'" not in compiled.clause
        assert compiled.params == ("x' OR '1'='1",)

    def test_filters_are_hashable(self):
        assert hash(In("a", [1, 2])) == hash(In("a", (1, 2)))


class TestDictDialect:
    """The dict syntax shared with other vector database clients"""

    def test_bare_equality(self):
        assert parse_where({"category": "AI"}) == Eq("category", "AI")

    def test_operators(self):
        assert parse_where({"score": {"$gte": 90}}) == Gte("score", 90)
        assert parse_where({"tag": {"$in": ["ml", "python"]}}) == In("tag", ["ml", "python"])
        assert parse_where({"tag": {"$nin": ["ml"]}}) == Nin("tag", ["ml"])

    def test_logical_operators(self):
        where = {"$and": [{"category": "AI"}, {"$or": [{"score": {"$gt": 90}}, {"$not": {"tag": "ml"}}]}]}
        assert parse_where(where) == And([
            Eq("category", "AI"),
            Or([Gt("score", 90), Not(Eq("tag", "ml"))]),
        ])

    def test_multiple_conditions_are_anded(self):
        assert parse_where({"a": 1, "b": {"$lt": 2}}) == And([Eq("a", 1), Lt("b", 2)])

    def test_empty_means_no_filter(self):
        assert parse_where(None) is None
        assert parse_where({}) is None
        assert parse_where_document(None) is None
        assert parse_where_document({}) is None

    def test_unknown_operator(self):
        with pytest.raises(InvalidInputError):
            parse_where({"a": {"$like": "x"}})
        with pytest.raises(InvalidInputError):
            parse_where({"$xor": []})

    def test_document_dialect(self):
        assert parse_where_document({"$contains": "ai"}) == Contains("ai")
        assert parse_where_document({"$regex": "^a"}) == Regex("^a")
        assert parse_where_document({"$or": [{"$contains": "a"}, {"$contains": "b"}]}) == DocOr(
            [Contains("a"), Contains("b")]
        )

    def test_merge_filters(self):
        assert merge_filters(None, None) is None
        assert merge_filters(Eq("a", 1), None) == Eq("a", 1)
        assert merge_filters(Eq("a", 1), Eq("b", 2)) == And([Eq("a", 1), Eq("b", 2)])


class TestCompileDocFilter:
    """Document filter compilation"""

    def test_contains(self):
        compiled = compile_doc_filter(Contains("python"))
        assert compiled.clause == "MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE)"
        assert compiled.params == ("python",)

    def test_regex(self):
        compiled = compile_doc_filter(Regex("^hello.*world$"))
        assert compiled.clause == "document REGEXP %s"
        assert compiled.params == ("^hello.*world$",)

    def test_junctions(self):
        compiled = compile_doc_filter(DocAnd([Contains("a"), DocOr([Contains("b"), Regex("c")])]))
        assert compiled.clause == (
            "(MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE) AND "
            "(MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE) OR document REGEXP %s))"
        )
        assert compiled.params == ("a", "b", "c")

    def test_empty_junctions(self):
        assert compile_doc_filter(DocAnd([])).clause == "1=1"
        assert compile_doc_filter(DocOr([])).clause == "1=0"


class TestBuildWhereClause:
    """Combined WHERE assembly"""

    def test_nothing_given(self):
        where = build_where_clause()
        assert not where
        assert where.to_sql() == ""
        assert where.params == ()

    def test_ids_come_first(self):
        where = build_where_clause(["1", "2"], {"a": 1}, {"$contains": "x"})
        assert where.clause.startswith("_id IN (%s, %s)")
        assert where.clause == (
            "_id IN (%s, %s) AND JSON_EXTRACT(metadata, '$.a') = %s AND "
            "MATCH(document) AGAINST (%s IN NATURAL LANGUAGE MODE)"
        )
        assert where.params == ("1", "2", 1, "x")
        assert where.to_sql().startswith("WHERE _id IN")

    def test_ids_are_bound_as_strings(self):
        where = build_where_clause([1, 2])
        assert where.params == ("1", "2")

    def test_metadata_only(self):
        where = build_where_clause(where=Gt("n", 3))
        assert where.to_sql() == "WHERE JSON_EXTRACT(metadata, '$.n') > %s"
