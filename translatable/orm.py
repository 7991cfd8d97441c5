from datetime import datetime

from .fields import Field, Integer, Datetime, Many2one
from .registry import Registry
from .db_async import AsyncDatabase
from .mutation import WriteResult
from .tools.query import QueryBuilder
from .logger import get_logger

_logger = get_logger(__name__)


class MetaModel(type):
    def __new__(mcs, name, bases, attrs):
        cls = super().__new__(mcs, name, bases, attrs)
        _name = attrs.get('_name')

        fields = {}
        for base in reversed(bases):
            fields.update(getattr(base, '_fields', {}))
        for key, val in attrs.items():
            if isinstance(val, Field):
                val.name = key
                fields[key] = val

        if _name:
            if 'id' not in fields:
                f = Integer(string='ID', readonly=True); f.name = 'id'; fields['id'] = f; setattr(cls, 'id', f)
            if cls._timestamps:
                if 'create_date' not in fields:
                    f = Datetime(string='Created', readonly=True); f.name = 'create_date'; fields['create_date'] = f; setattr(cls, 'create_date', f)
                if 'write_date' not in fields:
                    f = Datetime(string='Updated', readonly=True); f.name = 'write_date'; fields['write_date'] = f; setattr(cls, 'write_date', f)

        cls._fields = fields
        if _name:
            cls._table = attrs.get('_table') or _name.replace('.', '_')
            Registry.register(_name, cls)
        return cls


class ModelQuery(QueryBuilder):
    """
    Query bound to a model instance: rows come back hydrated and writes
    report a WriteResult.
    """

    def __init__(self, model):
        super().__init__(model.env.cr, model._table)
        self.model = model

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.model._name or self.table}>"

    async def get(self):
        rows = await self._fetch_rows()
        return [self.model.hydrate(row) for row in rows]

    async def first(self):
        records = await self.clone().limit(1).get()
        return records[0] if records else None

    async def find(self, id):
        return await self.clone().where(self.model._key, id).first()

    async def insert(self, values):
        await super().insert(values)
        if isinstance(values, dict):
            return WriteResult.success(1, id=values.get(self.model._key), table=self.table)
        return WriteResult.success(len(values), table=self.table)

    async def insert_get_id(self, values, key=None):
        id = await super().insert_get_id(values, key or self.model._key)
        if not id:
            return WriteResult.failed(table=self.table)
        return WriteResult.success(1, id=id, table=self.table)

    async def update(self, values):
        return WriteResult.success(await super().update(values), table=self.table)

    async def delete(self):
        return WriteResult.success(await super().delete(), table=self.table)


class Model(metaclass=MetaModel):
    """
    One row of a table. Attribute values live in `_values`, the last state
    known to match the database in `_origin`.
    """
    _name = None
    _description = None
    _table = None
    _key = 'id'
    _incrementing = True
    _timestamps = False

    def __init__(self, env, values=None):
        self.env = env
        self._values = {}
        self._origin = {}
        self._relations = {}
        self.exists = False
        if values:
            self.fill(values)

    def __repr__(self):
        return f"{self._name or self._table}({self.key})"

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        values = self.__dict__.get('_values')
        if values is not None and name in values:
            return values[name]
        raise AttributeError(f"'{self.__class__.__name__}' has no attribute '{name}'")

    def __getitem__(self, name):
        return self._values.get(name)

    def __setitem__(self, name, value):
        self._values[name] = value

    @property
    def key(self):
        return self._values.get(self._key)

    @property
    def foreign_key(self):
        """Column referencing this model from other tables: blog.tag -> tag_id."""
        base = (self._name or self._table).split('.')[-1]
        return f"{base}_{self._key}"

    # Attributes

    def fill(self, values):
        for k, v in values.items():
            self._values[k] = v
        return self

    def get_attributes(self):
        return dict(self._values)

    def get_dirty(self):
        return {
            k: v for k, v in self._values.items()
            if k not in self._origin or self._origin[k] != v
        }

    def is_dirty(self):
        return bool(self.get_dirty())

    def sync_original(self):
        self._origin = dict(self._values)
        return self

    def set_relation(self, name, value):
        self._relations[name] = value
        return self

    # Instances

    def new_instance(self, values=None):
        return self.__class__(self.env, values)

    def hydrate(self, row):
        record = self.new_instance()
        record._values = dict(row)
        record.exists = True
        record.sync_original()
        return record

    def copy(self):
        record = self.new_instance()
        record._values = dict(self._values)
        record._origin = dict(self._origin)
        record.exists = self.exists
        return record

    # Queries

    def new_query(self):
        return ModelQuery(self)

    def new_query_without_scopes(self):
        return self.new_query()

    def query(self):
        return self.new_query()

    def _set_keys_for_save_query(self, query):
        return query.where(self._key, self.key)

    async def find(self, id):
        return await self.new_query().find(id)

    async def all(self):
        return await self.new_query().get()

    async def fresh(self):
        """Re-read this record from the database, None if it was never saved."""
        if not self.exists:
            return None
        return await self._set_keys_for_save_query(self.new_query_without_scopes()).first()

    # Persistence

    async def create(self, values):
        record = self.new_instance(values)
        await record.save()
        return record

    def _insert_values(self):
        values = dict(self._values)
        for name, field in self._fields.items():
            if name not in values and field.default is not None:
                values[name] = field.get_default()

        if self._timestamps:
            now = datetime.now()
            values.setdefault('create_date', now)
            values.setdefault('write_date', now)
        self._values.update(values)
        return values

    async def _perform_insert(self, query):
        values = self._insert_values()

        if self._incrementing and values.get(self._key) is None:
            values.pop(self._key, None)
            result = await query.insert_get_id(values, self._key)
        else:
            result = await query.insert(values)

        if result.id is not None:
            self._values[self._key] = result.id
            self.exists = True
        return result

    async def _perform_update(self, query):
        dirty = self.get_dirty()
        if not dirty:
            return WriteResult.success(0, id=self.key, table=self._table)

        if self._timestamps:
            dirty['write_date'] = self._values['write_date'] = datetime.now()

        result = await self._set_keys_for_save_query(query).update(dirty)
        return WriteResult.wrap(result, table=self._table)

    async def save(self):
        query = self.new_query_without_scopes()
        if self.exists:
            result = await self._perform_update(query)
        else:
            result = await self._perform_insert(query)

        if result:
            self.exists = True
            self.sync_original()
        else:
            _logger.warning(f"Save of {self!r} did not complete: {result.status}", extra={'context': {'table': self._table}})
        return result

    async def delete(self):
        if not self.exists:
            return WriteResult.success(0, table=self._table)

        result = WriteResult.wrap(
            await self._set_keys_for_save_query(self.new_query_without_scopes()).delete(), table=self._table
        )
        if result:
            self.exists = False
        return result

    # Schema

    @classmethod
    def _stored_fields(cls):
        return {name: field for name, field in cls._fields.items() if field._sql_type}

    @classmethod
    async def _auto_init(cls, cr, config=None):
        cols = []
        constraints = []

        for name, field in cls._stored_fields().items():
            if name == cls._key and cls._incrementing:
                col_def = f'"{name}" INTEGER PRIMARY KEY AUTOINCREMENT'
            else:
                col_def = f'"{name}" {field._sql_type}'
                if field.required:
                    col_def += ' NOT NULL'

            if isinstance(field, Many2one):
                ref = field.comodel_name.replace('.', '_')
                constraints.append(f'FOREIGN KEY ("{name}") REFERENCES "{ref}" (id) ON DELETE {field.ondelete.upper()}')
            cols.append(col_def)

        await AsyncDatabase.create_table(cr, cls._table, cols, constraints)

        for name, field in cls._stored_fields().items():
            if field.index:
                await AsyncDatabase.create_index(cr, cls._table, name)
