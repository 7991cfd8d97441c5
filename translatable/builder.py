from pypika.terms import Term

from .orm import ModelQuery
from .mutation import TranslationMutations
from .scope import TranslatableScope
from .tools.query import QueryBuilder, MISSING
from .tools.dialects import RawTerm, qualify_translation_column


class TranslatableQuery(TranslationMutations, ModelQuery):
    """
    Query on a translatable model.

    Where, order and select clauses naming a translated attribute are pointed at
    the translation table when the query is compiled, through the coalesced
    primary/fallback expression when a fallback locale applies. Locale
    capabilities (translate_into, only_translated...) act on the bound model's
    locale context.
    """

    def __init__(self, model, with_scope=True):
        super().__init__(model)
        self.with_scope = with_scope
        self.restrict_translated = True
        self.eager_translations = False

    async def prepare(self):
        await self.model.boot_translatable()

    # Per-query capabilities

    def only_translated(self, locale=None):
        self.model.set_only_translated(True)
        if locale:
            self.model.set_locale(locale)
        return self

    def with_untranslated(self):
        self.model.set_only_translated(False)
        return self

    def with_fallback(self, fallback_locale=None):
        self.model.set_with_fallback(True)
        if fallback_locale:
            self.model.set_fallback_locale(fallback_locale)
        return self

    def without_fallback(self):
        self.model.set_with_fallback(False)
        return self

    def translate_into(self, locale):
        if locale:
            self.model.set_locale(locale)
        return self

    def without_translations(self):
        self.with_scope = False
        return self

    def with_all_translations(self):
        self.with_scope = False
        self.eager_translations = True
        return self

    # Wheres

    def where(self, column, operator=MISSING, value=MISSING, boolean='and'):
        if isinstance(column, dict):
            for key, val in column.items():
                self.where(key, '=', val, boolean)
            return self

        value, operator = self._prepare_value_and_operator(operator, value)
        self.wheres.append({'type': 'pending', 'column': column, 'operator': operator, 'value': value, 'boolean': boolean})
        return self

    def where_original(self, column, operator=MISSING, value=MISSING, boolean='and'):
        """where() that never points the column at the translation table."""
        if isinstance(column, dict):
            for key, val in column.items():
                QueryBuilder.where(self, key, '=', val, boolean)
            return self
        return QueryBuilder.where(self, column, operator, value, boolean)

    def where_translated(self, column, operator=MISSING, value=MISSING, boolean='and'):
        value, operator = self._prepare_value_and_operator(operator, value)
        self.wheres.append({'type': 'translated', 'column': column, 'operator': operator, 'value': value, 'boolean': boolean})
        return self

    def or_where_translated(self, column, operator=MISSING, value=MISSING):
        return self.where_translated(column, operator, value, 'or')

    # Ordering

    def order_by(self, column, direction='asc'):
        super().order_by(column, direction)
        self.orders[-1]['type'] = 'pending'
        return self

    def order_by_translated(self, column, direction='asc'):
        super().order_by(column, direction)
        self.orders[-1]['type'] = 'translated'
        return self

    # Compilation

    def _translated(self, column, attributes):
        return isinstance(column, str) and column in attributes

    def _translated_where(self, where):
        column = where['column']
        operator, value, boolean = where['operator'], where['value'], where['boolean']

        # Computed expressions are applied as given
        if isinstance(column, Term):
            return self._basic_where(column, operator, value, boolean)

        primary = qualify_translation_column(self.model, column)
        if not self.model.should_fallback():
            return self._basic_where(primary, operator, value, boolean)

        condition = self.dialect.compile_if_null(primary, qualify_translation_column(self.model, column, True))
        if value is None:
            null = 'IS NOT NULL' if operator in ('!=', '<>') else 'IS NULL'
            return {'type': 'raw', 'sql': f"{condition} {null}", 'bindings': [], 'boolean': boolean, 'wrap': False}

        return {'type': 'raw', 'sql': f"{condition} {operator.upper()} ?", 'bindings': [value], 'boolean': boolean, 'wrap': False}

    def _resolve_where(self, where, attributes):
        kind = where['type']
        if kind == 'translated' or (kind == 'pending' and self._translated(where['column'], attributes)):
            return self._translated_where(where)
        if kind == 'pending':
            return self._basic_where(where['column'], where['operator'], where['value'], where['boolean'])
        return where

    def _resolve_order(self, order, attributes):
        kind = order['type']
        if kind not in ('pending', 'translated'):
            return order

        column, direction = order['column'], order['direction']
        if kind == 'pending' and not self._translated(column, attributes):
            return {'type': 'column', 'column': column, 'direction': direction}

        primary = qualify_translation_column(self.model, column)
        if not self.model.should_fallback():
            return {'type': 'column', 'column': primary, 'direction': direction}

        condition = self.dialect.compile_if_null(primary, qualify_translation_column(self.model, column, True))
        return {'type': 'raw', 'sql': f"{condition} {direction.upper()}", 'bindings': []}

    def _qualify_select(self, column, attributes):
        if not self._translated(column, attributes):
            return column

        primary = qualify_translation_column(self.model, column)
        if not self.model.should_fallback():
            return primary
        fallback = qualify_translation_column(self.model, column, True)
        return RawTerm(self.dialect.compile_if_null(primary, fallback, alias=column))

    def _prepared(self):
        query = self.clone()
        attributes = self.model.translatable_attributes()

        query.wheres = [self._resolve_where(w, attributes) for w in self.wheres]
        query.orders = [self._resolve_order(o, attributes) for o in self.orders]
        if query.columns:
            query.columns = [self._qualify_select(c, attributes) for c in query.columns]

        if self.with_scope:
            only_translated = None if self.restrict_translated else False
            TranslatableScope().apply(query, self.model, only_translated=only_translated)
        return query

    # Results

    async def get(self):
        records = await super().get()
        if self.eager_translations and records:
            await self._load_translations(records)
        return records

    async def _load_translations(self, records):
        foreign_key = self.model.foreign_key
        rows = await self.i18n_query().where_in(foreign_key, [r.key for r in records]).get()

        grouped = {}
        for row in rows:
            grouped.setdefault(row[foreign_key], []).append(row)

        translation = self.model.translation_model()
        for record in records:
            record.set_relation('translations', [translation.hydrate(row) for row in grouped.get(record.key, [])])
