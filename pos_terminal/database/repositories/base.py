from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager

from ...utils.errors import NetworkError, ValidationError

_log = logging.getLogger(__name__)


class SqliteRepo:
    def __init__(self, conn: sqlite3.Connection):
        # ensure rows behave like dicts/tuples
        conn.row_factory = sqlite3.Row
        self.conn = conn

    @contextmanager
    def _immediate_tx(self):
        """
        Start an IMMEDIATE transaction (write lock once first write happens),
        commit on success, rollback on error.

        Constraint/trigger aborts surface as ValidationError (the store refused
        a stale or invalid write); any other sqlite error as NetworkError.
        Domain errors raised inside the block roll back and propagate as-is.
        """
        cur = self.conn.cursor()
        try:
            cur.execute("BEGIN IMMEDIATE")
            yield cur
            self.conn.commit()
        except sqlite3.IntegrityError as e:
            self.conn.rollback()
            raise ValidationError(f"The store rejected the change: {e}") from e
        except sqlite3.Error as e:
            self.conn.rollback()
            _log.exception("Store write failed")
            raise NetworkError(f"The store is unavailable: {e}") from e
        except Exception:
            self.conn.rollback()
            raise
        finally:
            cur.close()

    def _query(self, sql: str, params=()) -> list[sqlite3.Row]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            _log.exception("Store read failed")
            raise NetworkError(f"The store is unavailable: {e}") from e

    def _query_one(self, sql: str, params=()) -> sqlite3.Row | None:
        rows = self._query(sql, params)
        return rows[0] if rows else None
