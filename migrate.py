import sqlite3
import sys

from loguru import logger


def migrate(db_path='exercises.db'):
    """Bring a legacy exercises table up to the current column set."""
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        cur.execute("PRAGMA table_info(exercises);")
        cols = [r[1] for r in cur.fetchall()]
        if not cols:
            return
        if 'is_favorited' not in cols:
            cur.execute("ALTER TABLE exercises ADD COLUMN is_favorited INTEGER DEFAULT 0;")
            logger.info("Added is_favorited column")
        if 'last_updated' not in cols:
            cur.execute("ALTER TABLE exercises ADD COLUMN last_updated TEXT DEFAULT NULL;")
            logger.info("Added last_updated column")
        if 'created_at' not in cols:
            if 'created_timestamp' in cols:
                cur.execute("ALTER TABLE exercises RENAME COLUMN created_timestamp TO created_at;")
                logger.info("Renamed created_timestamp column to created_at")
            else:
                cur.execute("ALTER TABLE exercises ADD COLUMN created_at TEXT;")
                cur.execute("UPDATE exercises SET created_at = CURRENT_TIMESTAMP WHERE created_at IS NULL;")
                logger.info("Added created_at column")
        conn.commit()
    finally:
        conn.close()


if __name__ == '__main__':
    path = sys.argv[1] if len(sys.argv) > 1 else 'exercises.db'
    migrate(path)
