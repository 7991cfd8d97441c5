import os
import re
import sqlite3
from datetime import datetime, date
from contextlib import asynccontextmanager

import asyncpg
import sqlparams

from .logger import get_logger

_logger = get_logger(__name__)

# Global Pool
_pool = None

sqlite3.register_adapter(datetime, lambda v: v.isoformat(' '))
sqlite3.register_adapter(date, lambda v: v.isoformat())


class AsyncDatabase:
    @staticmethod
    def _validate_identifier(name):
        if not re.match(r'^[a-z0-9_]+$', name):
            raise ValueError(f"Security Error: Invalid Identifier '{name}'. Only lowercase alphanumeric and underscores allowed.")
        return name

    @classmethod
    async def initialize(cls):
        global _pool
        if _pool is None:
            from dotenv import load_dotenv
            load_dotenv()

            host = os.getenv('DB_HOST', 'localhost')
            user = os.getenv('DB_USER', 'postgres')
            password = os.getenv('DB_PASSWORD')
            dbname = os.getenv('DB_NAME', 'translatable')
            port = os.getenv('DB_PORT', '5432')

            try:
                _pool = await asyncpg.create_pool(
                    user=user,
                    password=password,
                    database=dbname,
                    host=host,
                    port=port,
                    min_size=1,
                    max_size=20
                )
                _logger.info("AsyncDatabase: Pool Initialized", extra={'context': {'host': host, 'database': dbname}})
            except Exception as e:
                _logger.critical(f"Async Pool Init Failed: {e}")
                raise

    @classmethod
    async def close(cls):
        global _pool
        if _pool:
            await _pool.close()
            _pool = None
            _logger.info("AsyncDatabase: Pool Closed")

    @classmethod
    @asynccontextmanager
    async def acquire(cls):
        """
        Yields an AsyncCursor running inside a transaction.
        """
        if _pool is None:
            await cls.initialize()

        async with _pool.acquire() as conn:
            cursor = AsyncCursor(conn)
            async with conn.transaction():
                yield cursor

    @classmethod
    async def create_table(cls, cr, table_name, columns, constraints):
        cls._validate_identifier(table_name)

        safe_cols = []
        for col in columns:
            # SQLite "INTEGER PRIMARY KEY AUTOINCREMENT" -> Postgres "SERIAL PRIMARY KEY"
            if getattr(cr, 'dialect', 'postgresql') == 'postgresql' and "INTEGER PRIMARY KEY AUTOINCREMENT" in col:
                col = col.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
            safe_cols.append(col)

        cols_def = ", ".join(safe_cols)
        if constraints:
            cols_def += ", " + ", ".join(constraints)

        query = f'CREATE TABLE IF NOT EXISTS "{table_name}" ({cols_def})'
        try:
            await cr.execute(query)
        except Exception as e:
            _logger.error(f"Error creating table {table_name}: {e}")
            raise

    @classmethod
    async def create_index(cls, cr, table_name, column_name):
        cls._validate_identifier(table_name)
        cls._validate_identifier(column_name)

        index_name = f"{table_name}_{column_name}_index"
        query = f'CREATE INDEX IF NOT EXISTS "{index_name}" ON "{table_name}" ("{column_name}")'
        try:
            await cr.execute(query)
        except Exception as e:
            _logger.error(f"Error creating index {index_name}: {e}")
            raise


class AsyncCursor:
    """
    asyncpg connection wrapped to look like a DB-API cursor.
    """
    dialect = 'postgresql'

    def __init__(self, conn):
        self.conn = conn
        self._last_result = None
        self.rowcount = -1
        self.lastrowid = None
        self._params_converter = sqlparams.SQLParams('format', 'numeric_dollar')

    async def execute(self, query, args=None):
        """
        Executes query. If it's a SELECT/RETURNING, stores result for fetchall.
        """
        pg_query = query
        if args:
            pg_query, args = self._convert_sql_params(query, args)

        # Simple heuristic: SELECT or RETURNING implies fetch
        normalized = pg_query.strip().upper()
        is_fetch = normalized.startswith("SELECT") or "RETURNING" in normalized

        args = args or ()

        try:
            if is_fetch:
                self._last_result = await self.conn.fetch(pg_query, *args)
                self.rowcount = len(self._last_result)
            else:
                status = await self.conn.execute(pg_query, *args)
                self._last_result = []
                self.rowcount = self._parse_rowcount(status)
        except Exception as e:
            _logger.error(f"AsyncDB Error: {e}", extra={'context': {'query': pg_query}})
            raise

    @staticmethod
    def _parse_rowcount(status):
        # "UPDATE 3", "DELETE 0", "INSERT 0 1"
        try:
            return int(str(status).split()[-1])
        except (ValueError, IndexError):
            return -1

    def _convert_sql_params(self, query, args):
        """
        Convert %s style parameters to $1, $2 (asyncpg).
        """
        # Native $n SQL goes through untouched
        if '$' in query:
            return query, args
        return self._params_converter.format(query, args)

    def fetchall(self):
        if self._last_result is None:
            return []
        return self._last_result

    def fetchone(self):
        if self._last_result:
            return self._last_result[0]
        return None

    async def executemany(self, query, args_list):
        pg_query = query
        if args_list:
            pg_query, _ = self._convert_sql_params(query, args_list[0])

        try:
            await self.conn.executemany(pg_query, args_list)
        except Exception as e:
            _logger.error(f"AsyncDB Bulk Error: {e}", extra={'context': {'query': pg_query}})
            raise

    async def list_columns(self, table):
        await self.execute(
            "SELECT column_name FROM information_schema.columns WHERE table_name = $1 ORDER BY ordinal_position",
            (table,)
        )
        columns = [row['column_name'] for row in self.fetchall()]
        return columns or None

    def savepoint(self):
        """
        Returns an async context manager for a savepoint (nested transaction).
        Usage:
            async with cr.savepoint():
                ...
        """
        return self.conn.transaction()


class SqliteCursor:
    """
    Same contract as AsyncCursor over the stdlib sqlite3 driver.
    $n placeholders are converted to qmarks.
    """
    dialect = 'sqlite'

    def __init__(self, path=':memory:'):
        self.conn = sqlite3.connect(path)
        self.conn.row_factory = sqlite3.Row
        self._cursor = self.conn.cursor()
        self._last_result = None
        self._savepoints = 0
        self.rowcount = -1
        self.lastrowid = None
        self._params_converter = sqlparams.SQLParams('numeric_dollar', 'qmark')

    def _convert_sql_params(self, query, args):
        return self._params_converter.format(query, {i: v for i, v in enumerate(args, start=1)})

    async def execute(self, query, args=None):
        if args:
            query, args = self._convert_sql_params(query, args)

        try:
            self._cursor.execute(query, args or ())
        except Exception as e:
            _logger.error(f"SqliteDB Error: {e}", extra={'context': {'query': query}})
            raise

        self._last_result = self._cursor.fetchall() if self._cursor.description else []
        self.rowcount = self._cursor.rowcount
        self.lastrowid = self._cursor.lastrowid

    async def executemany(self, query, args_list):
        for args in args_list:
            await self.execute(query, args)

    def fetchall(self):
        return self._last_result or []

    def fetchone(self):
        if self._last_result:
            return self._last_result[0]
        return None

    async def list_columns(self, table):
        await self.execute(f'PRAGMA table_info("{table}")')
        columns = [row['name'] for row in self.fetchall()]
        return columns or None

    @asynccontextmanager
    async def savepoint(self):
        self._savepoints += 1
        name = f"sp_{self._savepoints}"
        self._cursor.execute(f'SAVEPOINT "{name}"')
        try:
            yield self
        except Exception:
            self._cursor.execute(f'ROLLBACK TO SAVEPOINT "{name}"')
            self._cursor.execute(f'RELEASE SAVEPOINT "{name}"')
            raise
        else:
            self._cursor.execute(f'RELEASE SAVEPOINT "{name}"')

    def close(self):
        self.conn.close()
