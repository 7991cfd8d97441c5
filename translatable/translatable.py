"""
Translatable models.

    class Tag(Translatable, Model):
        _name = 'tag'
        title = fields.Char(translate=True)

`title` lives in `tag_i18n` (tag_id, locale, title); reads join it for the
current locale (and the fallback locale), writes are split between both tables.
"""
from .orm import Model
from .builder import TranslatableQuery
from .locale import LocaleContext
from .scope import RESERVED_PREFIX
from .db_async import AsyncDatabase
from .logger import get_logger

_logger = get_logger(__name__)


class Translatable:
    """
    Mixin placed before Model. Class level defaults may be declared:

        _translatable = ['title']     explicit translated attributes
        _locale = 'en'                instead of the configured current locale
        _fallback_locale = 'en'
        _only_translated = False
        _with_fallback = True
    """
    _translatable = None
    _locale = None
    _fallback_locale = None
    _only_translated = None
    _with_fallback = None

    def __init__(self, env, values=None):
        self._locale_context = LocaleContext(self)
        super().__init__(env, values)

    # Locale context

    def set_locale(self, locale):
        self._locale_context.set_locale(locale)
        return self

    def get_locale(self):
        return self._locale_context.resolve_locale()

    def set_fallback_locale(self, locale):
        self._locale_context.set_fallback_locale(locale)
        return self

    def get_fallback_locale(self):
        return self._locale_context.resolve_fallback()

    def set_only_translated(self, only_translated):
        self._locale_context.set_only_translated(only_translated)
        return self

    def get_only_translated(self):
        return self._locale_context.only_translated()

    def set_with_fallback(self, with_fallback):
        self._locale_context.set_with_fallback(with_fallback)
        return self

    def get_with_fallback(self):
        return self._locale_context.with_fallback()

    def should_fallback(self, locale=None):
        return self._locale_context.should_fallback(locale)

    def get_locale_key(self):
        return self.env.config.db_key()

    def get_translation_table_suffix(self):
        return self.env.config.db_suffix()

    def get_i18n_table(self):
        return f"{self._table}{self.get_translation_table_suffix()}"

    # Attribute classification

    def translatable_attributes(self):
        return self.env.config.attributes.get(self)

    async def boot_translatable(self):
        return await self.env.config.attributes.resolve(self, self.env.cr)

    def qualify_column(self, column):
        if column in self.translatable_attributes():
            return f"{self.get_i18n_table()}.{column}"
        return f"{self._table}.{column}"

    def get_dirty(self):
        dirty = super().get_dirty()
        if not self._locale_context.changed:
            return dirty

        # A locale switch makes every loaded translated value a write in the new locale
        for key in self.translatable_attributes():
            if self._values.get(key) is not None:
                dirty[key] = self._values[key]
        return dirty

    def sync_original(self):
        self._locale_context.changed = False
        self._relations.pop('translations', None)
        return super().sync_original()

    # Instances / queries

    def new_instance(self, values=None):
        record = super().new_instance(values)
        record._locale_context.copy_from(self._locale_context)
        return record

    def copy(self):
        record = super().copy()
        record._locale_context.changed = self._locale_context.changed
        return record

    def new_query(self):
        return TranslatableQuery(self)

    def new_query_without_scopes(self):
        return TranslatableQuery(self, with_scope=False)

    async def fresh(self):
        """
        Re-read this record through the translation scope, using this
        instance's own locale settings.
        """
        if not self.exists:
            return None
        return await self.new_query().where(self._key, self.key).first()

    # Creation

    async def create(self, values, translations=None):
        record = self.new_instance(values)
        if await record.save() and translations:
            await record.save_translations(translations)
        return record

    async def create_in_locale(self, locale, values, translations=None):
        record = self.new_instance(values).set_locale(locale)
        if await record.save() and translations:
            await record.save_translations(translations)
        return record

    async def save(self):
        await self.boot_translatable()
        return await super().save()

    async def save_translations(self, translations):
        """
        translations: {locale: {attribute: value}}. Each locale is written on
        its own copy of the stored row. Stops at the first failed locale.
        """
        fresh = await Model.fresh(self)
        if fresh is None:
            return False

        success = True
        for locale, values in translations.items():
            record = fresh.copy()
            record.set_locale(locale)
            record.fill(values)
            success = success and bool(await record.save())

        self._relations.pop('translations', None)
        return success

    async def save_translation(self, locale, values):
        return await self.save_translations({locale: values})

    # Translation rows

    def translation_model(self):
        return TranslationModel.for_model(self)

    async def translations(self):
        if 'translations' not in self._relations:
            rows = await self.translation_model().new_query().where(self.foreign_key, self.key).get()
            self._relations['translations'] = rows
        return self._relations['translations']

    async def translate(self, locale):
        """
        The translated attributes in `locale`: this instance itself when it is
        already in that locale, else its translation row, else the fallback
        locale's row when falling back applies.
        """
        if self.get_locale() == locale:
            found = self
        else:
            locale_key = self.get_locale_key()
            found = next((t for t in await self.translations() if t[locale_key] == locale), None)

        if found is None and self.should_fallback(locale):
            return await self.translate(self.get_fallback_locale())
        return found

    async def translate_or_new(self, locale):
        found = await self.translate(locale)
        if found is None:
            return self.translation_model().new_instance({
                self.foreign_key: self.key,
                self.get_locale_key(): locale,
            })
        return found

    # Schema

    @classmethod
    def _stored_fields(cls):
        declared = set(cls._translatable or ())
        return {
            name: field for name, field in super()._stored_fields().items()
            if not field.translate and name not in declared
        }

    @classmethod
    async def _auto_init(cls, cr, config=None):
        """
        Creates the model table, then the translation table from the fields
        declared with translate=True.
        """
        await super()._auto_init(cr, config)

        declared = set(cls._translatable or ())
        translated = [(name, field) for name, field in cls._fields.items()
                      if field._sql_type and (field.translate or name in declared)]
        if not translated or cls._table.startswith(RESERVED_PREFIX):
            return

        suffix = config.db_suffix() if config else '_i18n'
        locale_key = config.db_key() if config else 'locale'
        i18n_table = f"{cls._table}{suffix}"
        foreign_key = f"{(cls._name or cls._table).split('.')[-1]}_{cls._key}"

        cols = [f'"{foreign_key}" INTEGER NOT NULL', f'"{locale_key}" VARCHAR NOT NULL']
        cols += [f'"{name}" {field._sql_type}' for name, field in translated]
        constraints = [f'UNIQUE ("{foreign_key}", "{locale_key}")']

        await AsyncDatabase.create_table(cr, i18n_table, cols, constraints)
        _logger.debug(f"Translatable: created '{i18n_table}'", extra={'context': {'columns': [n for n, _ in translated]}})


class TranslationModel(Model):
    """
    One row of a translation table. Its key is the owner's foreign key and
    saves are matched on (foreign key, locale).
    """
    _incrementing = False
    _timestamps = False
    _locale_key = 'locale'

    @classmethod
    def for_model(cls, model):
        translation = cls(model.env)
        translation._table = model.get_i18n_table()
        translation._key = model.foreign_key
        translation._locale_key = model.get_locale_key()
        return translation

    def __repr__(self):
        return f"{self._table}({self.key}, {self._values.get(self._locale_key)})"

    def new_instance(self, values=None):
        record = super().new_instance(values)
        record._table = self._table
        record._key = self._key
        record._locale_key = self._locale_key
        return record

    def _set_keys_for_save_query(self, query):
        return query.where(self._key, self.key).where(self._locale_key, self._values.get(self._locale_key))
