import logging
from typing import Any, Dict, List, Optional

from psycopg2 import sql

from syntaxmap.database import transaction
from syntaxmap.errors import BadRequestError, ForbiddenError, NotFoundError, not_found
from syntaxmap.querybuilder import QueryBuilder, insert_statement, update_statement
from syntaxmap.records import DictionaryEntry, dictionary_from_row

logger = logging.getLogger(__name__)

CRITERIA = {
    "word_id": ("word_id", "n"),
    "user_id": ("user_id", None),
    "word": ("word", None),
    "session_name": ("session_name", None),
    "learned": ("learned", "b"),
}

EDITABLE = ("word", "definition", "part_of_speech", "pronunciation", "session_name", "learned")


class DictionaryDao:

    def __init__(self, conn):
        self.conn = conn

    def insert(self, entry: DictionaryEntry) -> DictionaryEntry:
        row = entry.model_dump(exclude={"word_id", "created_at"})
        for column in ("definition", "part_of_speech", "pronunciation"):
            row[column] = row[column] or ""
        row = {k: v for k, v in row.items() if v is not None}
        with transaction(self.conn) as cursor:
            cursor.execute(*insert_statement("user_dictionnary", row))
            return dictionary_from_row(cursor.fetchone())

    def update(self, word_id: int, values: Dict[str, Any]) -> DictionaryEntry:
        if not values:
            raise BadRequestError("Nothing to update")
        query = update_statement("user_dictionnary", values, "word_id")
        with transaction(self.conn) as cursor:
            cursor.execute(query, list(values.values()) + [word_id])
            row = cursor.fetchone()
        if row is None:
            raise not_found(word_id)
        return dictionary_from_row(row)

    def select(self, criteria: Dict[str, Any]) -> List[DictionaryEntry]:
        builder = QueryBuilder(sql.SQL("SELECT * FROM user_dictionnary"))
        builder.add_criteria(criteria, CRITERIA)
        builder.order_by([("created_at", "DESC")])
        query, params = builder.build()
        with transaction(self.conn) as cursor:
            cursor.execute(query, params)
            return [dictionary_from_row(r) for r in cursor.fetchall()]

    def get(self, word_id: int) -> DictionaryEntry:
        found = self.select({"word_id": word_id})
        if not found:
            raise NotFoundError("Dictionary word not found")
        return found[0]

    def delete(self, word_id: int) -> None:
        with transaction(self.conn) as cursor:
            cursor.execute("DELETE FROM user_dictionnary WHERE word_id = %s", (word_id,))
            deleted = cursor.rowcount
        if deleted == 0:
            raise not_found(word_id)

    def toggle_learned(self, word_id: int) -> DictionaryEntry:
        with transaction(self.conn) as cursor:
            cursor.execute(
                "UPDATE user_dictionnary SET learned = NOT COALESCE(learned, false) "
                "WHERE word_id = %s RETURNING *",
                (word_id,),
            )
            row = cursor.fetchone()
        if row is None:
            raise NotFoundError("Dictionary word not found")
        return dictionary_from_row(row)


class DictionaryService:

    def __init__(self, conn):
        self.dao = DictionaryDao(conn)

    def all_words(self) -> List[Dict[str, Any]]:
        return [e.model_dump() for e in self.dao.select({})]

    def user_words(self, user_id: str, learned: Optional[bool] = None) -> List[Dict[str, Any]]:
        criteria: Dict[str, Any] = {"user_id": user_id}
        if learned is not None:
            criteria["learned"] = learned
        return [e.model_dump() for e in self.dao.select(criteria)]

    def add_word(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        if not data.get("word"):
            raise BadRequestError("Missing required field: word")
        entry = DictionaryEntry(user_id=user_id, **{k: v for k, v in data.items() if k in EDITABLE})
        created = self.dao.insert(entry)
        logger.info(f"Word {created.word_id} added to the dictionary of {user_id}")
        return created.model_dump()

    def _owned(self, word_id: int, user_id: str) -> DictionaryEntry:
        entry = self.dao.get(word_id)
        if entry.user_id != user_id:
            raise ForbiddenError("Permission denied. You can only change your own dictionary")
        return entry

    def update_word(self, word_id: int, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        self._owned(word_id, user_id)
        values = {k: v for k, v in data.items() if k in EDITABLE and v is not None}
        return self.dao.update(word_id, values).model_dump()

    def delete_word(self, word_id: int, user_id: str) -> None:
        self._owned(word_id, user_id)
        self.dao.delete(word_id)

    def toggle_learned(self, word_id: int, user_id: str) -> Dict[str, Any]:
        self._owned(word_id, user_id)
        return self.dao.toggle_learned(word_id).model_dump()
