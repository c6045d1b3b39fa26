import sqlite3
import aiosqlite
from contextlib import contextmanager, asynccontextmanager
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger


REQUIRED_FIELDS = ["name", "type", "muscle", "equipment", "difficulty", "instructions"]

# public record field -> column
FIELD_COLUMNS = {
    "name": "exercise_name",
    "type": "exercise_type",
    "muscle": "muscle",
    "equipment": "equipment",
    "difficulty": "difficulty",
    "instructions": "instructions",
    "is_favorited": "is_favorited",
}

_SELECT_COLUMNS = (
    "id, exercise_name, exercise_type, muscle, equipment, difficulty, "
    "instructions, is_favorited, last_updated, created_at"
)


class ExerciseExistsError(ValueError):
    """Raised when an exercise with the same name is already stored."""


class MissingFieldsError(ValueError):
    def __init__(self, fields: List[str]) -> None:
        super().__init__("missing required fields: " + ", ".join(fields))
        self.fields = fields


def row_to_record(row: Tuple) -> Dict[str, Any]:
    (
        ex_id,
        name,
        ex_type,
        muscle,
        equipment,
        difficulty,
        instructions,
        favorited,
        last_updated,
        created_at,
    ) = row
    return {
        "id": ex_id,
        "name": name,
        "type": ex_type,
        "muscle": muscle,
        "equipment": equipment,
        "difficulty": difficulty,
        "instructions": instructions,
        "is_favorited": bool(favorited),
        "last_updated": last_updated,
        "created_at": created_at,
    }


def check_required(
    values: Dict[str, Any], fields: Optional[List[str]] = None
) -> None:
    missing = [
        f
        for f in (REQUIRED_FIELDS if fields is None else fields)
        if values.get(f) is None or not str(values.get(f)).strip()
    ]
    if missing:
        raise MissingFieldsError(missing)


def favorite_flag(value: Any) -> int:
    if isinstance(value, bool) or (isinstance(value, int) and value in (0, 1)):
        return int(value)
    raise ValueError("is_favorited must be a boolean")


def build_filter_query(
    select: str,
    name: Optional[str] = None,
    muscle: Optional[str] = None,
    exercise_type: Optional[str] = None,
    difficulty: Optional[str] = None,
    is_favorited: Optional[bool] = None,
) -> Tuple[str, List[Any]]:
    query = f"SELECT {select} FROM exercises WHERE 1=1"
    params: List[Any] = []
    if name:
        query += " AND exercise_name LIKE ?"
        params.append(f"%{name}%")
    if muscle:
        query += " AND muscle = ?"
        params.append(muscle)
    if exercise_type:
        query += " AND exercise_type = ?"
        params.append(exercise_type)
    if difficulty:
        query += " AND difficulty = ?"
        params.append(difficulty)
    if is_favorited is not None:
        query += " AND is_favorited = ?"
        params.append(1 if is_favorited else 0)
    return query, params


def add_paging(
    query: str, params: List[Any], limit: Optional[int], offset: Optional[int]
) -> str:
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)
    if offset:
        if limit is None:
            query += " LIMIT -1"
        query += " OFFSET ?"
        params.append(offset)
    return query + ";"


def build_update(exercise_id: int, fields: Dict[str, Any]) -> Tuple[str, Tuple]:
    check_required(fields, [f for f in REQUIRED_FIELDS if f in fields])
    assignments: List[str] = []
    values: List[Any] = []
    for key, value in fields.items():
        column = FIELD_COLUMNS.get(key)
        if column is None:
            continue
        if key == "is_favorited":
            value = favorite_flag(value)
        assignments.append(f"{column} = ?")
        values.append(value)
    if not assignments:
        raise ValueError("no valid fields to update")
    assignments.append("last_updated = CURRENT_TIMESTAMP")
    values.append(exercise_id)
    return (
        f"UPDATE exercises SET {', '.join(assignments)} WHERE id = ?;",
        tuple(values),
    )


TOGGLE_FAVORITE_SQL = (
    "UPDATE exercises SET is_favorited = CASE WHEN is_favorited = 1 THEN 0 ELSE 1 END, "
    "last_updated = CURRENT_TIMESTAMP WHERE id = ?;"
)

INSERT_SQL = (
    "INSERT INTO exercises (exercise_name, exercise_type, muscle, equipment, difficulty, instructions, is_favorited) "
    "VALUES (?, ?, ?, ?, ?, ?, ?);"
)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_name TEXT NOT NULL,
                    exercise_type TEXT NOT NULL,
                    muscle TEXT NOT NULL,
                    equipment TEXT NOT NULL,
                    difficulty TEXT NOT NULL,
                    instructions TEXT NOT NULL,
                    is_favorited INTEGER DEFAULT 0,
                    last_updated TEXT DEFAULT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );""",
            [
                "id",
                "exercise_name",
                "exercise_type",
                "muscle",
                "equipment",
                "difficulty",
                "instructions",
                "is_favorited",
                "last_updated",
                "created_at",
            ],
        ),
    }

    _INDEXES = [
        "CREATE INDEX IF NOT EXISTS idx_exercises_name ON exercises(exercise_name);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_muscle ON exercises(muscle);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_type ON exercises(exercise_type);",
        "CREATE INDEX IF NOT EXISTS idx_exercises_favorited ON exercises(is_favorited);",
    ]

    def __init__(self, db_path: str = "exercises.db") -> None:
        self._db_path = db_path
        self._ensure_schema()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            for sql in self._INDEXES:
                cursor.execute(sql)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=? COLLATE NOCASE;",
            (table,),
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        logger.info("Rebuilding table {} for new columns", table)
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "is_favorited":
                        return "0"
                    if col == "created_at":
                        return "CURRENT_TIMESTAMP"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def execute_count(self, query: str, params: Tuple = ()) -> int:
        """Run a statement and return the number of changed rows."""
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.rowcount

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()


class AsyncDatabase(Database):
    """Provides asynchronous connection management."""

    @asynccontextmanager
    async def _async_connection(self):
        conn = await aiosqlite.connect(self._db_path)
        try:
            yield conn
            await conn.commit()
        finally:
            await conn.close()


class AsyncBaseRepository(AsyncDatabase):
    """Asynchronous variant of BaseRepository using aiosqlite."""

    async def execute(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.lastrowid

    async def execute_count(self, query: str, params: Tuple = ()) -> int:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            await conn.commit()
            return cursor.rowcount

    async def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        async with self._async_connection() as conn:
            cursor = await conn.execute(query, params)
            rows = await cursor.fetchall()
            return rows


class ExerciseRepository(BaseRepository):
    """Repository for exercise records."""

    def exists(self, name: str) -> bool:
        rows = self.fetch_all(
            "SELECT id FROM exercises WHERE exercise_name = ? LIMIT 1;", (name,)
        )
        return bool(rows)

    def create(
        self,
        name: str,
        exercise_type: str,
        muscle: str,
        equipment: str,
        difficulty: str,
        instructions: str,
        is_favorited: bool = False,
    ) -> int:
        check_required(
            {
                "name": name,
                "type": exercise_type,
                "muscle": muscle,
                "equipment": equipment,
                "difficulty": difficulty,
                "instructions": instructions,
            }
        )
        if self.exists(name):
            raise ExerciseExistsError("Exercise with this name already exists")
        return self.execute(
            INSERT_SQL,
            (
                name,
                exercise_type,
                muscle,
                equipment,
                difficulty,
                instructions,
                favorite_flag(is_favorited),
            ),
        )

    def fetch(self, exercise_id: int) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(
            f"SELECT {_SELECT_COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        return row_to_record(rows[0]) if rows else None

    def fetch_exercises(
        self,
        name: Optional[str] = None,
        muscle: Optional[str] = None,
        exercise_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        is_favorited: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query, params = build_filter_query(
            _SELECT_COLUMNS, name, muscle, exercise_type, difficulty, is_favorited
        )
        query = add_paging(query + " ORDER BY exercise_name ASC", params, limit, offset)
        return [row_to_record(r) for r in self.fetch_all(query, tuple(params))]

    def search(self, term: str, limit: int = 10) -> List[Dict[str, Any]]:
        return self.fetch_exercises(name=term, limit=limit)

    def fetch_favorites(self) -> List[Dict[str, Any]]:
        return self.fetch_exercises(is_favorited=True)

    def update(self, exercise_id: int, **fields: Any) -> bool:
        query, params = build_update(exercise_id, fields)
        return self.execute_count(query, params) > 0

    def toggle_favorite(self, exercise_id: int) -> Optional[Dict[str, Any]]:
        if self.execute_count(TOGGLE_FAVORITE_SQL, (exercise_id,)) == 0:
            return None
        return self.fetch(exercise_id)

    def delete(self, exercise_id: int) -> bool:
        return self.execute_count("DELETE FROM exercises WHERE id = ?;", (exercise_id,)) > 0

    def count(
        self,
        name: Optional[str] = None,
        muscle: Optional[str] = None,
        is_favorited: Optional[bool] = None,
    ) -> int:
        query, params = build_filter_query(
            "COUNT(*)", name=name, muscle=muscle, is_favorited=is_favorited
        )
        return self.fetch_all(query + ";", tuple(params))[0][0]


class AsyncExerciseRepository(AsyncBaseRepository):
    """Async repository for exercise records."""

    async def exists(self, name: str) -> bool:
        rows = await self.fetch_all(
            "SELECT id FROM exercises WHERE exercise_name = ? LIMIT 1;", (name,)
        )
        return bool(rows)

    async def create(
        self,
        name: str,
        exercise_type: str,
        muscle: str,
        equipment: str,
        difficulty: str,
        instructions: str,
        is_favorited: bool = False,
    ) -> int:
        check_required(
            {
                "name": name,
                "type": exercise_type,
                "muscle": muscle,
                "equipment": equipment,
                "difficulty": difficulty,
                "instructions": instructions,
            }
        )
        if await self.exists(name):
            raise ExerciseExistsError("Exercise with this name already exists")
        return await self.execute(
            INSERT_SQL,
            (
                name,
                exercise_type,
                muscle,
                equipment,
                difficulty,
                instructions,
                favorite_flag(is_favorited),
            ),
        )

    async def fetch(self, exercise_id: int) -> Optional[Dict[str, Any]]:
        rows = await self.fetch_all(
            f"SELECT {_SELECT_COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        return row_to_record(rows[0]) if rows else None

    async def fetch_exercises(
        self,
        name: Optional[str] = None,
        muscle: Optional[str] = None,
        exercise_type: Optional[str] = None,
        difficulty: Optional[str] = None,
        is_favorited: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query, params = build_filter_query(
            _SELECT_COLUMNS, name, muscle, exercise_type, difficulty, is_favorited
        )
        query = add_paging(query + " ORDER BY exercise_name ASC", params, limit, offset)
        rows = await self.fetch_all(query, tuple(params))
        return [row_to_record(r) for r in rows]

    async def search(self, term: str, limit: int = 10) -> List[Dict[str, Any]]:
        return await self.fetch_exercises(name=term, limit=limit)

    async def fetch_favorites(self) -> List[Dict[str, Any]]:
        return await self.fetch_exercises(is_favorited=True)

    async def update(self, exercise_id: int, **fields: Any) -> bool:
        query, params = build_update(exercise_id, fields)
        return await self.execute_count(query, params) > 0

    async def toggle_favorite(self, exercise_id: int) -> Optional[Dict[str, Any]]:
        if await self.execute_count(TOGGLE_FAVORITE_SQL, (exercise_id,)) == 0:
            return None
        return await self.fetch(exercise_id)

    async def delete(self, exercise_id: int) -> bool:
        changed = await self.execute_count(
            "DELETE FROM exercises WHERE id = ?;", (exercise_id,)
        )
        return changed > 0

    async def count(
        self,
        name: Optional[str] = None,
        muscle: Optional[str] = None,
        is_favorited: Optional[bool] = None,
    ) -> int:
        query, params = build_filter_query(
            "COUNT(*)", name=name, muscle=muscle, is_favorited=is_favorited
        )
        rows = await self.fetch_all(query + ";", tuple(params))
        return rows[0][0]
