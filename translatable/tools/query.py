from pypika import Table, Field, Order, JoinType
from pypika.terms import Term

from .dialects import get_dialect, RawTerm, RawCriterion
from .sql import SQLParams
from ..exceptions import InvalidOperatorCombination
from ..logger import get_logger

_logger = get_logger(__name__)

OPERATORS = ('=', '<', '>', '<=', '>=', '<>', '!=', 'like', 'not like', 'ilike', 'not ilike')


class _Missing:
    def __repr__(self):
        return '<MISSING>'


MISSING = _Missing()


def is_operator(token):
    return isinstance(token, str) and token.lower() in OPERATORS


def row_to_dict(row):
    """
    asyncpg Record / sqlite3.Row / DictRow -> dict.
    Duplicate column names keep the last value.
    """
    if isinstance(row, dict):
        return dict(row)
    return dict(zip(row.keys(), tuple(row)))


def column_name(column):
    """Name of the result key a column reference produces."""
    lowered = column.lower()
    if ' as ' in lowered:
        return column[lowered.index(' as ') + 4:].strip()
    return column.rsplit('.', 1)[-1]


class JoinClause:
    """
    Conditions of one JOIN ... ON. Column-to-column pairs go through on(),
    column-to-value pairs through where() (bound as parameters).
    """
    def __init__(self, table, alias=None, how='inner'):
        self.table = table
        self.alias = alias
        self.how = how
        self.conditions = []

    @property
    def name(self):
        return self.alias or self.table

    def on(self, first, operator, second):
        self.conditions.append({'type': 'column', 'first': first, 'operator': operator, 'second': second})
        return self

    def where(self, column, operator, value):
        self.conditions.append({'type': 'value', 'column': column, 'operator': operator, 'value': value})
        return self


class QueryBuilder:
    """
    Pypika based query builder bound to a cursor.

    Clause methods only record intent; SQL is produced by to_sql() with $n
    placeholders collected in a SQLParams instance.
    """

    def __init__(self, cr, table, dialect=None):
        self.cr = cr
        self.dialect = get_dialect(dialect if dialect is not None else getattr(cr, 'dialect', None))
        self.table = table
        self.columns = None
        self.joins = []
        self.wheres = []
        self.orders = []
        self.limit_value = None
        self.offset_value = None

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.table}>"

    def clone(self):
        query = self.__class__.__new__(self.__class__)
        query.__dict__.update(self.__dict__)
        query.columns = list(self.columns) if self.columns is not None else None
        query.joins = list(self.joins)
        query.wheres = [dict(w) for w in self.wheres]
        query.orders = [dict(o) for o in self.orders]
        return query

    def new_query(self, table=None):
        return QueryBuilder(self.cr, table or self.table, dialect=self.dialect)

    # Select list

    def select(self, *columns):
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            columns = columns[0]
        self.columns = list(columns) or ['*']
        return self

    def add_select(self, *columns):
        if len(columns) == 1 and isinstance(columns[0], (list, tuple)):
            columns = columns[0]
        self.columns = (self.columns or []) + list(columns)
        return self

    # Joins

    def join(self, table, clause, how='inner'):
        """
        join('tag_i18n', lambda j: j.on('tag_i18n.tag_id', '=', 'tag.id'))
        join('tag_i18n as tag_i18n_fallback', ...)
        """
        alias = None
        lowered = table.lower()
        if ' as ' in lowered:
            idx = lowered.index(' as ')
            table, alias = table[:idx].strip(), table[idx + 4:].strip()

        join = JoinClause(table, alias=alias, how=how)
        clause(join)
        self.joins.append(join)
        return self

    def left_join(self, table, clause):
        return self.join(table, clause, how='left')

    # Wheres

    def _invalid_operator_and_value(self, operator, value):
        return value is None and is_operator(operator) and operator not in ('=', '<>', '!=')

    def _prepare_value_and_operator(self, operator, value):
        """
        Returns (value, operator).
        where('col', 5) is shorthand for where('col', '=', 5); an unknown operator
        token is taken as the value of an equality.
        """
        if value is MISSING:
            if operator is MISSING:
                raise InvalidOperatorCombination('A where clause needs a value.')
            return operator, '='

        if self._invalid_operator_and_value(operator, value):
            raise InvalidOperatorCombination('Illegal operator and value combination.')

        if not is_operator(operator):
            _logger.debug(f"Unrecognised operator {operator!r} taken as an equality value")
            return operator, '='

        return value, operator

    def _basic_where(self, column, operator, value, boolean):
        if value is None:
            negate = operator in ('!=', '<>')
            return {'type': 'null', 'column': column, 'negate': negate, 'boolean': boolean}
        return {'type': 'basic', 'column': column, 'operator': operator, 'value': value, 'boolean': boolean}

    def where(self, column, operator=MISSING, value=MISSING, boolean='and'):
        if isinstance(column, dict):
            for key, val in column.items():
                self.where(key, '=', val, boolean)
            return self

        value, operator = self._prepare_value_and_operator(operator, value)
        self.wheres.append(self._basic_where(column, operator, value, boolean))
        return self

    def or_where(self, column, operator=MISSING, value=MISSING):
        return self.where(column, operator, value, 'or')

    def where_in(self, column, values, boolean='and', negate=False):
        self.wheres.append({'type': 'in', 'column': column, 'values': list(values), 'negate': negate, 'boolean': boolean})
        return self

    def where_not_in(self, column, values, boolean='and'):
        return self.where_in(column, values, boolean, negate=True)

    def where_null(self, column, boolean='and', negate=False):
        self.wheres.append({'type': 'null', 'column': column, 'negate': negate, 'boolean': boolean})
        return self

    def where_not_null(self, column, boolean='and'):
        return self.where_null(column, boolean, negate=True)

    def where_raw(self, sql, bindings=(), boolean='and'):
        self.wheres.append({'type': 'raw', 'sql': sql, 'bindings': list(bindings), 'boolean': boolean, 'wrap': True})
        return self

    # Ordering / paging

    def order_by(self, column, direction='asc'):
        direction = direction.lower()
        if direction not in ('asc', 'desc'):
            raise ValueError(f"Invalid Order Direction '{direction}'")
        self.orders.append({'type': 'column', 'column': column, 'direction': direction})
        return self

    def order_by_raw(self, sql, bindings=()):
        self.orders.append({'type': 'raw', 'sql': sql, 'bindings': list(bindings)})
        return self

    def limit(self, value):
        self.limit_value = value
        return self

    def offset(self, value):
        self.offset_value = value
        return self

    # Compilation

    def _prepared(self):
        """
        The query actually compiled. Subclasses return a rewritten clone.
        """
        return self

    def _tables(self):
        tables = {self.table: Table(self.table)}
        for join in self.joins:
            table = Table(join.table)
            if join.alias:
                table = table.as_(join.alias)
            tables[join.name] = table
        return tables

    def _qualify(self, column):
        lowered = column.lower()
        head = column[:lowered.index(' as ')] if ' as ' in lowered else column
        if '.' in head:
            return column
        return f"{self.table}.{column}"

    def _column_term(self, column, tables):
        if isinstance(column, Term):
            return column
        if '.' in column:
            table, name = column.rsplit('.', 1)
            return Field(name, table=tables.get(table) or Table(table))
        return Field(column, table=tables[self.table])

    def _select_term(self, column):
        if isinstance(column, Term):
            return column
        return RawTerm(self.dialect.wrap(self._qualify(column)))

    @staticmethod
    def _compare(term, operator, rhs):
        op = operator.lower()
        if op == '=':
            return term == rhs
        if op in ('!=', '<>'):
            return term != rhs
        if op == '<':
            return term < rhs
        if op == '>':
            return term > rhs
        if op == '<=':
            return term <= rhs
        if op == '>=':
            return term >= rhs
        if op == 'like':
            return term.like(rhs)
        if op == 'not like':
            return term.not_like(rhs)
        if op == 'ilike':
            return term.ilike(rhs)
        if op == 'not ilike':
            return term.not_ilike(rhs)
        raise InvalidOperatorCombination(f"Unsupported operator '{operator}'")

    def _compile_where(self, where, tables, params):
        kind = where['type']
        if kind == 'basic':
            term = self._column_term(where['column'], tables)
            return self._compare(term, where['operator'], params.parameter(where['value']))
        if kind == 'null':
            term = self._column_term(where['column'], tables)
            return term.notnull() if where['negate'] else term.isnull()
        if kind == 'in':
            if not where['values']:
                # Empty IN list matches nothing, empty NOT IN matches everything
                return RawCriterion('1=1' if where['negate'] else '0=1')
            term = self._column_term(where['column'], tables)
            placeholders = [params.parameter(v) for v in where['values']]
            return term.notin(placeholders) if where['negate'] else term.isin(placeholders)
        if kind == 'raw':
            return RawCriterion(params.bind(where['sql'], where['bindings']), wrap=where.get('wrap', True))
        raise ValueError(f"Cannot compile where clause of type '{kind}'")

    def _compile_wheres(self, wheres, tables, params):
        criterion = None
        for where in wheres:
            crit = self._compile_where(where, tables, params)
            if criterion is None:
                criterion = crit
            elif where['boolean'] == 'or':
                criterion = criterion | crit
            else:
                criterion = criterion & crit
        return criterion

    def _compile_joins(self, q, tables, params):
        for join in self.joins:
            criterion = None
            for cond in join.conditions:
                if cond['type'] == 'column':
                    crit = self._compare(self._column_term(cond['first'], tables), cond['operator'],
                                         self._column_term(cond['second'], tables))
                else:
                    crit = self._compare(self._column_term(cond['column'], tables), cond['operator'],
                                         params.parameter(cond['value']))
                criterion = crit if criterion is None else criterion & crit

            how = JoinType.left if join.how == 'left' else JoinType.inner
            q = q.join(tables[join.name], how=how).on(criterion)
        return q

    def _compile_select(self, columns=None, with_orders=True, with_paging=True):
        params = SQLParams()
        tables = self._tables()
        q = self.dialect.query_cls.from_(tables[self.table])

        q = self._compile_joins(q, tables, params)

        if columns is None:
            columns = self.columns or ['*']
        q = q.select(*[self._select_term(c) for c in columns])

        criterion = self._compile_wheres(self.wheres, tables, params)
        if criterion is not None:
            q = q.where(criterion)

        if with_orders:
            for order in self.orders:
                if order['type'] == 'raw':
                    q = q.orderby(RawTerm(params.bind(order['sql'], order['bindings'])))
                else:
                    direction = Order.desc if order['direction'] == 'desc' else Order.asc
                    q = q.orderby(self._column_term(order['column'], tables), order=direction)

        if with_paging:
            if self.limit_value is not None:
                q = q.limit(self.limit_value)
            if self.offset_value:
                q = q.offset(self.offset_value)

        return q.get_sql(), params.get_params()

    def to_sql(self):
        """
        (sql, params) of the SELECT this builder describes.
        """
        return self._prepared()._compile_select()

    # Execution

    async def prepare(self):
        """
        Hook awaited before any statement is compiled for execution.
        """

    async def _execute(self, sql, params=()):
        _logger.debug(sql, extra={'context': {'table': self.table, 'params': list(params)}})
        await self.cr.execute(sql, params)

    async def _fetch_rows(self, columns=None):
        await self.prepare()
        query = self._prepared()
        sql, params = query._compile_select(columns=columns)
        await self._execute(sql, params)
        return [row_to_dict(r) for r in self.cr.fetchall()]

    async def get(self):
        return await self._fetch_rows()

    async def first(self):
        rows = await self.clone().limit(1)._fetch_rows()
        return rows[0] if rows else None

    async def pluck(self, column):
        query = self.clone()
        query.columns = [column]
        rows = await query._fetch_rows()
        key = column_name(column)
        return [row[key] for row in rows]

    async def count(self):
        await self.prepare()
        query = self._prepared()
        count_term = RawTerm(f"COUNT(*) AS {self.dialect.quote('aggregate')}")
        sql, params = query._compile_select(columns=[count_term], with_orders=False, with_paging=False)
        await self._execute(sql, params)
        row = self.cr.fetchone()
        return int(row_to_dict(row)['aggregate']) if row else 0

    async def exists(self):
        await self.prepare()
        query = self._prepared().clone().limit(1)
        sql, params = query._compile_select(columns=[RawTerm('1')], with_orders=False)
        await self._execute(sql, params)
        return self.cr.fetchone() is not None

    async def insert(self, values):
        """
        Insert one row (dict) or several rows (list of dicts sharing the same keys).
        """
        await self.prepare()
        rows = [values] if isinstance(values, dict) else list(values)
        if not rows:
            return True

        columns = list(rows[0].keys())
        params = SQLParams()
        t = Table(self.table)
        q = self.dialect.query_cls.into(t).columns(*columns)
        for row in rows:
            q = q.insert(*[params.parameter(row.get(c)) for c in columns])

        await self._execute(q.get_sql(), params.get_params())
        return True

    async def insert_get_id(self, values, key='id'):
        await self.prepare()
        params = SQLParams()
        t = Table(self.table)
        columns = list(values.keys())
        if columns:
            sql = self.dialect.query_cls.into(t).columns(*columns).insert(
                *[params.parameter(values[c]) for c in columns]).get_sql()
        else:
            # Every column takes its default, the key included
            sql = f"INSERT INTO {self.dialect.quote(self.table)} DEFAULT VALUES"

        if self.dialect.supports_returning:
            sql += f" RETURNING {self.dialect.quote(key)}"
            await self._execute(sql, params.get_params())
            row = self.cr.fetchone()
            return row_to_dict(row)[key] if row else None

        await self._execute(sql, params.get_params())
        return self.cr.lastrowid

    async def update(self, values):
        """
        UPDATE using the recorded where clauses. Joins are not supported here.
        Returns the number of affected rows.
        """
        await self.prepare()
        if not values:
            return 0

        params = SQLParams()
        tables = {self.table: Table(self.table)}
        t = tables[self.table]
        q = self.dialect.query_cls.update(t)
        for k, v in values.items():
            q = q.set(t[k], params.parameter(v))

        criterion = self._compile_wheres(self.wheres, tables, params)
        if criterion is not None:
            q = q.where(criterion)

        await self._execute(q.get_sql(), params.get_params())
        return self.cr.rowcount

    async def increment(self, column, amount=1, extra=None):
        await self.prepare()
        params = SQLParams()
        tables = {self.table: Table(self.table)}
        t = tables[self.table]
        q = self.dialect.query_cls.update(t).set(t[column], t[column] + params.parameter(amount))
        for k, v in (extra or {}).items():
            q = q.set(t[k], params.parameter(v))

        criterion = self._compile_wheres(self.wheres, tables, params)
        if criterion is not None:
            q = q.where(criterion)

        await self._execute(q.get_sql(), params.get_params())
        return self.cr.rowcount

    async def decrement(self, column, amount=1, extra=None):
        return await self.increment(column, -amount, extra)

    async def delete(self):
        await self.prepare()
        params = SQLParams()
        tables = {self.table: Table(self.table)}
        q = self.dialect.query_cls.from_(tables[self.table]).delete()

        criterion = self._compile_wheres(self.wheres, tables, params)
        if criterion is not None:
            q = q.where(criterion)

        await self._execute(q.get_sql(), params.get_params())
        return self.cr.rowcount
