"""
SQL fragments that depend on the active grammar.

Everything the translation layer cannot express through pypika's own terms
(null-coalescing over two joined aliases, raw predicates with bound values) is
rendered here as text, quoted for the dialect of the cursor in use.
"""
from pypika import Query, MySQLQuery, PostgreSQLQuery, MSSQLQuery, SQLLiteQuery
from pypika.terms import Term, Criterion

from ..exceptions import UnsupportedDialectError

FALLBACK_ALIAS_SUFFIX = '_fallback'


class Dialect:
    name = None
    query_cls = Query
    quote_char = '"'
    if_null = None
    supports_returning = False

    def quote(self, identifier):
        q = self.quote_char
        return f"{q}{identifier.replace(q, q + q)}{q}"

    def wrap(self, value):
        """
        Quote a column reference: 'table.column' -> "table"."column".
        '*' stays bare and 'expr as alias' is split on the alias keyword.
        """
        lowered = value.lower()
        if ' as ' in lowered:
            idx = lowered.index(' as ')
            return f"{self.wrap(value[:idx].strip())} AS {self.quote(value[idx + 4:].strip())}"

        segments = []
        for segment in value.split('.'):
            segments.append(segment if segment == '*' else self.quote(segment))
        return '.'.join(segments)

    def compile_if_null(self, primary, fallback, alias=None):
        """
        IFNULL/ISNULL/COALESCE(primary, fallback) [AS alias]
        """
        if not self.if_null:
            raise UnsupportedDialectError(self.name)

        sql = f"{self.if_null}({self.wrap(primary)}, {self.wrap(fallback)})"
        if alias:
            sql += f" AS {self.quote(alias)}"
        return sql

    def __repr__(self):
        return f"<Dialect {self.name}>"


class MySQLDialect(Dialect):
    name = 'mysql'
    query_cls = MySQLQuery
    quote_char = '`'
    if_null = 'IFNULL'


class SQLiteDialect(Dialect):
    name = 'sqlite'
    query_cls = SQLLiteQuery
    if_null = 'IFNULL'


class PostgreSQLDialect(Dialect):
    name = 'postgresql'
    query_cls = PostgreSQLQuery
    if_null = 'COALESCE'
    supports_returning = True


class MSSQLDialect(Dialect):
    name = 'mssql'
    query_cls = MSSQLQuery
    if_null = 'ISNULL'


DIALECTS = {
    'mysql': MySQLDialect,
    'mariadb': MySQLDialect,
    'sqlite': SQLiteDialect,
    'sqlite3': SQLiteDialect,
    'postgresql': PostgreSQLDialect,
    'postgres': PostgreSQLDialect,
    'pgsql': PostgreSQLDialect,
    'mssql': MSSQLDialect,
    'sqlserver': MSSQLDialect,
    'sqlsrv': MSSQLDialect,
}


def get_dialect(name):
    if isinstance(name, Dialect):
        return name
    dialect_cls = DIALECTS.get((name or '').lower())
    if dialect_cls is None:
        raise UnsupportedDialectError(name)
    return dialect_cls()


def fallback_alias(i18n_table):
    return f"{i18n_table}{FALLBACK_ALIAS_SUFFIX}"


def qualify_translation_column(model, column, fallback=False):
    """
    Point a column at the translation table (or its fallback alias).

    'title'            -> 'tag_i18n.title'      / 'tag_i18n_fallback.title'
    'tag.title'        -> 'tag_i18n.title'      / 'tag_i18n_fallback.title'
    'tag_i18n.title'   -> 'tag_i18n.title'      / 'tag_i18n_fallback.title'
    """
    fallback_suffix = FALLBACK_ALIAS_SUFFIX if fallback else ''

    if '.' in column:
        table, field = column.rsplit('.', 1)
        suffix = model.get_translation_table_suffix()
        if table.endswith(suffix):
            return f"{table}{fallback_suffix}.{field}"
        return f"{table}{suffix}{fallback_suffix}.{field}"

    return f"{model.get_i18n_table()}{fallback_suffix}.{column}"


class RawTerm(Term):
    """Pre-rendered SQL expression usable in select lists and ORDER BY."""
    def __init__(self, sql, alias=None):
        super().__init__(alias=alias)
        self.sql = sql

    def get_sql(self, **kwargs):
        return self.sql


class RawCriterion(Criterion):
    """Pre-rendered SQL predicate usable in WHERE and JOIN ... ON."""
    def __init__(self, sql, wrap=False):
        super().__init__()
        self.sql = sql
        self.wrap = wrap

    def get_sql(self, **kwargs):
        if self.wrap:
            return f"({self.sql})"
        return self.sql
