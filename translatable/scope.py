from .tools.dialects import RawTerm, fallback_alias

RESERVED_PREFIX = 'translatable_reserved_'


class TranslatableScope:
    """
    Joins a model's translation table into a query.

    SELECT tag.*, IFNULL(tag_i18n.title, tag_i18n_fallback.title) AS title
    FROM tag
    LEFT JOIN tag_i18n ON tag_i18n.tag_id = tag.id AND tag_i18n.locale = $1
    LEFT JOIN tag_i18n AS tag_i18n_fallback ON ... AND tag_i18n_fallback.locale = $2
    """

    def apply(self, query, model=None, only_translated=None):
        model = model if model is not None else query.model
        table = model._table
        if table.startswith(RESERVED_PREFIX):
            return query

        # Nothing classified as translated: the translation table may not exist
        if not model.translatable_attributes():
            return query

        if only_translated is None:
            only_translated = model.get_only_translated()
        should_fallback = model.should_fallback()
        i18n_table = model.get_i18n_table()

        self._create_join(query, model, i18n_table, only_translated, should_fallback)
        self._create_where(query, model, i18n_table, only_translated, should_fallback)
        self._create_select(query, model, i18n_table, should_fallback)
        return query

    def _join_clause(self, model, locale, alias):
        table = model._table

        def clause(join):
            join.on(f"{alias}.{model.foreign_key}", '=', f"{table}.{model._key}") \
                .where(f"{alias}.{model.get_locale_key()}", '=', locale)
        return clause

    def _create_join(self, query, model, i18n_table, only_translated, should_fallback):
        how = 'inner' if (only_translated and not should_fallback) else 'left'
        query.join(i18n_table, self._join_clause(model, model.get_locale(), i18n_table), how=how)

        if should_fallback:
            alias = fallback_alias(i18n_table)
            query.join(f"{i18n_table} as {alias}",
                       self._join_clause(model, model.get_fallback_locale(), alias), how=how)

    def _create_where(self, query, model, i18n_table, only_translated, should_fallback):
        if not (only_translated and should_fallback):
            return

        key = model.foreign_key
        if_null = query.dialect.compile_if_null(f"{i18n_table}.{key}", f"{fallback_alias(i18n_table)}.{key}")
        query.where_raw(f"{if_null} IS NOT NULL")

    def _create_select(self, query, model, i18n_table, should_fallback):
        select = []
        for field in model.translatable_attributes():
            primary = f"{i18n_table}.{field}"
            if not should_fallback:
                select.append(primary)
            else:
                fallback = f"{fallback_alias(i18n_table)}.{field}"
                select.append(RawTerm(query.dialect.compile_if_null(primary, fallback, alias=field)))

        if not select:
            return

        if not query.columns:
            query.columns = [f"{model._table}.*"] + select
        else:
            query.columns = query.columns + select
