"""
Write path for translatable models.

Every write is split by attribute classification: base-table values go to the
model table, translated values to the translation table keyed by
(foreign key, locale). The two statements are not atomic; callers that need
atomicity wrap the call in a transaction (AsyncDatabase.acquire) or a
savepoint.
"""
from datetime import datetime

from .exceptions import TranslatableError, PartialWriteFailure, UnsupportedTranslatedOperation
from .tools.query import row_to_dict
from .logger import get_logger

_logger = get_logger(__name__)


class WriteResult:
    """
    Outcome of a two-phase write.

    SUCCESS  both phases went through (or had nothing to do)
    PARTIAL  one table was written, the other was not (translation rows of an
             insert or update, base rows of a delete)
    FAILED   nothing usable was written
    """
    SUCCESS = 'success'
    PARTIAL = 'partial'
    FAILED = 'failed'

    def __init__(self, status, affected=0, id=None, error=None, table=None):
        self.status = status
        self.affected = affected
        self.id = id
        self.error = error
        self.table = table

    @classmethod
    def success(cls, affected=0, id=None, table=None):
        return cls(cls.SUCCESS, affected=affected, id=id, table=table)

    @classmethod
    def failed(cls, error=None, table=None):
        return cls(cls.FAILED, error=error, table=table)

    @classmethod
    def wrap(cls, value, table=None):
        if isinstance(value, cls):
            return value
        return cls.success(affected=int(value or 0), table=table)

    @property
    def ok(self):
        return self.status == self.SUCCESS

    def __bool__(self):
        return self.ok

    def __repr__(self):
        return f"<WriteResult {self.status} table={self.table} affected={self.affected} id={self.id}>"

    def raise_for_status(self):
        if self.status == self.PARTIAL:
            raise PartialWriteFailure(self) from self.error
        if self.status == self.FAILED:
            if self.error is not None:
                raise self.error
            raise TranslatableError(f"Write on '{self.table}' failed")
        return self


class TranslationMutations:
    """
    Mixed into TranslatableQuery; expects `model`, `table`, `cr` and the
    QueryBuilder plumbing (new_query, _prepared, _compile_select).
    """

    def filter_values(self, values):
        """
        Split values into (base, translated), keeping the caller's key order.
        """
        attributes = self.model.translatable_attributes()
        base, translated = {}, {}
        for key, value in values.items():
            if key in attributes:
                translated[key] = value
            else:
                base[key] = value
        return base, translated

    def i18n_query(self):
        """Raw query on the translation table, no scope, no rewriting."""
        return self.new_query(self.model.get_i18n_table())

    async def scoped_keys(self, restrict=True):
        """
        Primary keys matched by this query with the translation scope applied.
        restrict=False drops the only-translated restriction.
        """
        await self.prepare()
        query = self.clone()
        query.restrict_translated = restrict
        key = self.model._key
        sql, params = query._prepared()._compile_select(columns=[f"{self.table}.{key}"])
        await self._execute(sql, params)
        return [row_to_dict(r)[key] for r in self.cr.fetchall()]

    async def i18n_delete_query(self, with_scopes=True):
        ids = await self.scoped_keys(restrict=with_scopes)
        return self.i18n_query().where_in(self.model.foreign_key, ids)

    def _add_updated_at(self, values):
        if getattr(self.model, '_timestamps', False) and 'write_date' not in values:
            values = {**values, 'write_date': datetime.now()}
        return values

    def _translation_failed(self, error, affected, id=None):
        status = WriteResult.PARTIAL if affected else WriteResult.FAILED
        result = WriteResult(status, affected=affected, id=id, error=error, table=self.table)
        _logger.error(
            f"Translatable: write on '{self.model.get_i18n_table()}' failed: {error}",
            extra={'context': {'table': self.table, 'status': status, 'affected': affected, 'id': id}}
        )
        return result

    # Insert

    async def _insert_i18n(self, values, id):
        if not values:
            return 0

        row = dict(values)
        row[self.model.foreign_key] = id
        row[self.model.get_locale_key()] = self.model.get_locale()
        await self.i18n_query().insert(row)
        return 1

    async def _finish_insert(self, translated, id):
        try:
            await self._insert_i18n(translated, id)
        except Exception as e:
            return self._translation_failed(e, 1, id=id)
        return WriteResult.success(1, id=id, table=self.table)

    async def insert(self, values):
        """
        Insert one row whose primary key is supplied by the caller.
        Without a key the database generates one (see insert_get_id).
        """
        await self.prepare()
        key = self.model._key
        if values.get(key) is None:
            return await self.insert_get_id(values, key)

        base, translated = self.filter_values(values)
        await self.new_query().insert(base)
        return await self._finish_insert(translated, base[key])

    async def insert_get_id(self, values, key=None):
        await self.prepare()
        key = key or self.model._key
        base, translated = self.filter_values(values)
        if base.get(key, 0) is None:
            del base[key]

        id = await self.new_query().insert_get_id(base, key)
        if not id:
            _logger.error(f"Translatable: insert on '{self.table}' returned no key", extra={'context': {'table': self.table}})
            return WriteResult.failed(table=self.table)

        return await self._finish_insert(translated, id)

    # Update

    async def update(self, values):
        await self.prepare()
        values = self._add_updated_at(values)
        base, translated = self.filter_values(values)

        key = self.model._key
        ids = [self.model.key] if self.model.key is not None else await self.scoped_keys()

        updated = 0
        if base and ids:
            updated += await self.new_query().where_in(key, ids).update(base)

        if not translated:
            return WriteResult.success(updated, table=self.table)

        foreign_key = self.model.foreign_key
        locale_key = self.model.get_locale_key()
        locale = self.model.get_locale()
        try:
            for id in ids:
                query = self.i18n_query().where(foreign_key, id).where(locale_key, locale)
                if await query.exists():
                    row = {k: v for k, v in translated.items() if k != locale_key}
                    updated += await query.update(row)
                else:
                    updated += await self._insert_i18n(translated, id)
        except Exception as e:
            return self._translation_failed(e, updated)

        return WriteResult.success(updated, table=self.table)

    # Increment / decrement

    async def increment(self, column, amount=1, extra=None):
        await self.prepare()
        extra = self._add_updated_at(dict(extra or {}))
        attributes = self.model.translatable_attributes()
        rejected = [c for c in [column, *extra] if c in attributes]
        if rejected:
            _logger.error(f"Translatable: increment on translated column(s) {rejected} of '{self.table}'")
            raise UnsupportedTranslatedOperation(
                f"Cannot increment or decrement translated column(s) {', '.join(rejected)} of '{self.table}'"
            )

        ids = [self.model.key] if self.model.key is not None else await self.scoped_keys()
        if not ids:
            return WriteResult.success(0, table=self.table)

        affected = await self.new_query().where_in(self.model._key, ids).increment(column, amount, extra)
        return WriteResult.success(affected, table=self.table)

    async def decrement(self, column, amount=1, extra=None):
        return await self.increment(column, -amount, extra)

    # Delete

    async def _delete_keys(self, ids):
        if not ids:
            return WriteResult.success(0, table=self.table)

        removed = 0
        if self.model.translatable_attributes():
            try:
                removed = await self.i18n_query().where_in(self.model.foreign_key, ids).delete()
            except Exception as e:
                return self._translation_failed(e, 0)

        try:
            affected = await self.new_query().where_in(self.model._key, ids).delete()
        except Exception as e:
            # Translation rows are already gone
            _logger.error(
                f"Translatable: delete on '{self.table}' failed after removing {removed} translation row(s): {e}",
                extra={'context': {'table': self.table, 'status': WriteResult.PARTIAL, 'affected': removed}}
            )
            return WriteResult(WriteResult.PARTIAL, affected=removed, error=e, table=self.table)
        return WriteResult.success(affected, table=self.table)

    async def delete(self):
        """
        Delete translation rows then base rows of every entity this query
        matches (translation scope applied).
        """
        return await self._delete_keys(await self.scoped_keys(restrict=True))

    async def force_delete(self):
        return await self._delete_keys(await self.scoped_keys(restrict=False))
