import pytest

from conftest import inserted, rows
from syntaxmap.dictionary import DictionaryService
from syntaxmap.errors import BadRequestError, ForbiddenError, NotFoundError
from syntaxmap.mistakes import MistakeService

WORD = {"word_id": 1, "word": "run", "user_id": "s1", "learned": False}


# ========== DICTIONARY ==========
def test_word_is_required(conn):
    with pytest.raises(BadRequestError) as info:
        DictionaryService(conn).add_word("s1", {"definition": "to move fast"})
    assert info.value.message == "Missing required field: word"


def test_add_word_fills_blank_text_columns(conn):
    conn.script(rows(WORD))
    entry = DictionaryService(conn).add_word("s1", {"word": "run", "session_name": "Lesson 1"})
    assert entry["word_id"] == 1
    assert conn.statements[0].startswith('INSERT INTO "user_dictionnary"')
    values = inserted(conn, 0)
    assert values["session_name"] == "Lesson 1"
    assert [values[c] for c in ("definition", "part_of_speech", "pronunciation")] == ["", "", ""]


def test_cannot_edit_someone_elses_word(conn):
    conn.script(rows(dict(WORD, user_id="s2")))
    with pytest.raises(ForbiddenError):
        DictionaryService(conn).update_word(1, "s1", {"definition": "x"})
    assert len(conn.statements) == 1


def test_update_with_nothing_to_change(conn):
    conn.script(rows(WORD))
    with pytest.raises(BadRequestError):
        DictionaryService(conn).update_word(1, "s1", {"definition": None, "word_id": 5})


def test_update_binds_values_then_key(conn):
    conn.script(rows(WORD), rows(dict(WORD, definition="to move fast")))
    entry = DictionaryService(conn).update_word(1, "s1", {"definition": "to move fast"})
    assert entry["definition"] == "to move fast"
    assert conn.executed[1][1] == ["to move fast", 1]


def test_missing_word(conn):
    with pytest.raises(NotFoundError):
        DictionaryService(conn).toggle_learned(9, "s1")


def test_toggle_learned(conn):
    conn.script(rows(WORD), rows(dict(WORD, learned=True)))
    assert DictionaryService(conn).toggle_learned(1, "s1")["learned"] is True


def test_learned_filter(conn):
    DictionaryService(conn).user_words("s1", learned=False)
    assert conn.executed[0][1] == ["s1", False]


# ========== MISTAKES ==========
def test_mistake_needs_a_question(conn):
    with pytest.raises(BadRequestError):
        MistakeService(conn).add("s1", {"user_answer": "goed"})


def test_mistake_belongs_to_the_caller(conn):
    conn.script(rows({"mistake_id": "m1", "user_id": "s1", "question_id": 4}))
    MistakeService(conn).add("s1", {"question_id": 4, "user_id": "s2", "right_answer": "went"})
    assert inserted(conn, 0)["user_id"] == "s1"


def test_delete_unknown_mistake(conn):
    with pytest.raises(NotFoundError):
        MistakeService(conn).delete("m1", "s1")


def test_delete_someone_elses_mistake(conn):
    conn.script(rows({"mistake_id": "m1", "user_id": "s2"}))
    with pytest.raises(ForbiddenError):
        MistakeService(conn).delete("m1", "s1")


def test_delete_own_mistake(conn):
    conn.script(rows({"mistake_id": "m1", "user_id": "s1"}), rows(rowcount=1))
    MistakeService(conn).delete("m1", "s1")
    assert conn.statements[1] == "DELETE FROM mistake_question WHERE mistake_id = %s"
