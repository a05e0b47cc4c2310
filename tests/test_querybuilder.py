import pytest
from psycopg2 import sql

from conftest import render
from syntaxmap.errors import BadRequestError
from syntaxmap.querybuilder import QueryBuilder, bind_value, insert_statement, update_statement

BASE = sql.SQL("SELECT * FROM tense_table")


def test_no_criteria_leaves_statement_untouched():
    query, params = QueryBuilder(BASE).build()
    assert render(query) == "SELECT * FROM tense_table"
    assert params == []


def test_empty_values_are_ignored():
    builder = QueryBuilder(BASE).where("time_group", None).where("subcategory", "").where("id", [])
    query, params = builder.build()
    assert render(query) == "SELECT * FROM tense_table"
    assert params == []


def test_comma_list_is_or_joined_and_keys_are_and_joined():
    builder = QueryBuilder(BASE).where("time_group", "Present,Past").where("active", True, "b")
    query, params = builder.build()
    assert render(query) == (
        'SELECT * FROM tense_table WHERE ("time_group" = %s OR "time_group" = %s) AND ("active" = %s)'
    )
    assert params == ["Present", "Past", True]


def test_numeric_kind_converts_elements():
    query, params = QueryBuilder(BASE).where("difficulty_level", "2,3", "n").build()
    assert params == [2, 3]
    assert "OR" in render(query)


def test_numeric_kind_rejects_text():
    with pytest.raises(BadRequestError):
        QueryBuilder(BASE).where("difficulty_level", "hard", "n")


def test_boolean_kind_only_true_is_true():
    _, params = QueryBuilder(BASE).where("active", "false", "b").where("teacher_reviewed", "TRUE", "b").build()
    assert params == [False, True]


def test_hstore_membership():
    query, params = QueryBuilder(BASE).where("tags", "grammar", "h").build()
    assert render(query).endswith('WHERE (%s = ANY(avals("tags")))')
    assert params == ["grammar"]


def test_between_compare_and_in_list():
    builder = (QueryBuilder(BASE)
               .between("difficulty_level", 1, 3)
               .compare("id", "<>", "x")
               .in_list("sentence_type", ["negative", "interrogative"]))
    query, params = builder.build()
    assert render(query) == (
        'SELECT * FROM tense_table WHERE ("difficulty_level" BETWEEN %s AND %s) '
        'AND ("id" <> %s) AND ("sentence_type" IN %s)'
    )
    assert params == [1, 3, "x", ("negative", "interrogative")]


def test_compare_rejects_unknown_operator():
    with pytest.raises(ValueError):
        QueryBuilder(BASE).compare("id", "LIKE", "x")


def test_array_contains_whole_and_indexed():
    query, params = QueryBuilder(BASE).array_contains("online_exam_ids", 7).build()
    assert render(query).endswith('WHERE ("online_exam_ids" @> %s)')
    assert params == [[7]]
    query, params = QueryBuilder(BASE).array_contains("online_exam_ids", 7, index=1).build()
    assert render(query).endswith('WHERE ("online_exam_ids"[1] = %s)')


def test_order_limit_offset_bind_last():
    builder = QueryBuilder(BASE).where("active", True, "b").order_by([("tense_name", "desc")]).limit(10).offset(20)
    query, params = builder.build()
    assert render(query) == (
        'SELECT * FROM tense_table WHERE ("active" = %s) ORDER BY "tense_name" DESC LIMIT %s OFFSET %s'
    )
    assert params == [True, 10, 20]


def test_order_by_respects_allow_list():
    with pytest.raises(BadRequestError):
        QueryBuilder(BASE).order_by([("user_password", "ASC")], allowed={"tense_name"})
    with pytest.raises(BadRequestError):
        QueryBuilder(BASE).order_by([("tense_name", "sideways")])


def test_order_random():
    query, _ = QueryBuilder(BASE).order_random().limit(5).build()
    assert render(query) == "SELECT * FROM tense_table ORDER BY random() LIMIT %s"


def test_add_criteria_maps_wire_keys_to_columns():
    mapping = {"tense_id": ("id", None), "active": ("active", "b")}
    query, params = QueryBuilder(BASE).add_criteria({"tense_id": "t1", "ignored": "x"}, mapping).build()
    assert render(query) == 'SELECT * FROM tense_table WHERE ("id" = %s)'
    assert params == ["t1"]


def test_qualified_column_names():
    query, _ = QueryBuilder(BASE).where("t.id", "1").build()
    assert '"t"."id"' in render(query)


def test_bind_value():
    assert bind_value(float("nan")) is None
    assert bind_value((1, 2)) == [1, 2]
    assert bind_value({"a": 1}) == '{"a": 1}'
    assert bind_value("it's") == "it's"


def test_insert_binds_every_value():
    insert, params = insert_statement("tense_table", {"id": "t1", "tense_name": "Past Simple"})
    assert render(insert) == 'INSERT INTO "tense_table" ("id", "tense_name") VALUES (%s, %s) RETURNING *'
    assert params == ["t1", "Past Simple"]


def test_insert_keeps_keyword_like_text_as_data():
    insert, params = insert_statement("tense_table", {"tense_name": "X", "tense_description": "DEFAULT"},
                                      returning=False)
    assert "DEFAULT" not in render(insert)
    assert params == ["X", "DEFAULT"]


def test_update_statement():
    update = update_statement("tense_table", {"tense_name": "x", "active": False}, "id")
    assert render(update) == 'UPDATE "tense_table" SET "tense_name" = %s, "active" = %s WHERE "id" = %s RETURNING *'
