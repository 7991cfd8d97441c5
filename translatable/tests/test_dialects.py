import unittest
from types import SimpleNamespace

from translatable.exceptions import UnsupportedDialectError
from translatable.tools.dialects import (
    Dialect, get_dialect, qualify_translation_column, RawCriterion, RawTerm,
    MySQLDialect, SQLiteDialect, PostgreSQLDialect, MSSQLDialect,
)
from translatable.tools.sql import SQLParams


class TestCompileIfNull(unittest.TestCase):

    def test_function_per_grammar(self):
        self.assertEqual(
            MySQLDialect().compile_if_null('tag_i18n.title', 'tag_i18n_fallback.title'),
            'IFNULL(`tag_i18n`.`title`, `tag_i18n_fallback`.`title`)'
        )
        self.assertEqual(
            SQLiteDialect().compile_if_null('tag_i18n.title', 'tag_i18n_fallback.title'),
            'IFNULL("tag_i18n"."title", "tag_i18n_fallback"."title")'
        )
        self.assertEqual(
            PostgreSQLDialect().compile_if_null('tag_i18n.title', 'tag_i18n_fallback.title'),
            'COALESCE("tag_i18n"."title", "tag_i18n_fallback"."title")'
        )
        self.assertEqual(
            MSSQLDialect().compile_if_null('tag_i18n.title', 'tag_i18n_fallback.title'),
            'ISNULL("tag_i18n"."title", "tag_i18n_fallback"."title")'
        )

    def test_alias(self):
        sql = SQLiteDialect().compile_if_null('tag_i18n.title', 'tag_i18n_fallback.title', alias='title')
        self.assertTrue(sql.endswith(' AS "title"'))

    def test_unknown_grammar(self):
        with self.assertRaises(UnsupportedDialectError):
            Dialect().compile_if_null('a.b', 'c.b')
        with self.assertRaises(UnsupportedDialectError):
            get_dialect('oracle')
        with self.assertRaises(UnsupportedDialectError):
            get_dialect(None)

    def test_get_dialect_aliases(self):
        self.assertIsInstance(get_dialect('postgres'), PostgreSQLDialect)
        self.assertIsInstance(get_dialect('SQLite'), SQLiteDialect)
        self.assertIsInstance(get_dialect('sqlsrv'), MSSQLDialect)
        dialect = MySQLDialect()
        self.assertIs(get_dialect(dialect), dialect)


class TestWrap(unittest.TestCase):

    def test_wrap(self):
        d = SQLiteDialect()
        self.assertEqual(d.wrap('title'), '"title"')
        self.assertEqual(d.wrap('tag.title'), '"tag"."title"')
        self.assertEqual(d.wrap('tag.*'), '"tag".*')
        self.assertEqual(d.wrap('tag.id as tag_id'), '"tag"."id" AS "tag_id"')

    def test_quote_escapes_quote_char(self):
        self.assertEqual(SQLiteDialect().quote('we"ird'), '"we""ird"')
        self.assertEqual(MySQLDialect().quote('we`ird'), '`we``ird`')


class TestQualifyTranslationColumn(unittest.TestCase):

    def setUp(self):
        self.model = SimpleNamespace(
            get_i18n_table=lambda: 'tag_i18n',
            get_translation_table_suffix=lambda: '_i18n',
        )

    def test_unqualified(self):
        self.assertEqual(qualify_translation_column(self.model, 'title'), 'tag_i18n.title')
        self.assertEqual(qualify_translation_column(self.model, 'title', True), 'tag_i18n_fallback.title')

    def test_base_table_qualifier(self):
        self.assertEqual(qualify_translation_column(self.model, 'tag.title'), 'tag_i18n.title')
        self.assertEqual(qualify_translation_column(self.model, 'tag.title', True), 'tag_i18n_fallback.title')

    def test_translation_table_qualifier_not_suffixed_twice(self):
        self.assertEqual(qualify_translation_column(self.model, 'tag_i18n.title'), 'tag_i18n.title')
        self.assertEqual(qualify_translation_column(self.model, 'tag_i18n.title', True), 'tag_i18n_fallback.title')


class TestRawFragments(unittest.TestCase):

    def test_raw_terms(self):
        self.assertEqual(RawTerm('COUNT(*)').get_sql(quote_char='"'), 'COUNT(*)')
        self.assertEqual(RawCriterion('a OR b', wrap=True).get_sql(), '(a OR b)')
        self.assertEqual(RawCriterion('x IS NULL').get_sql(), 'x IS NULL')

    def test_bind_numbers_placeholders(self):
        params = SQLParams()
        params.add('first')
        sql = params.bind('IFNULL(a, b) = ? AND c > ?', ['Hello', 3])
        self.assertEqual(sql, 'IFNULL(a, b) = $2 AND c > $3')
        self.assertEqual(params.get_params(), ('first', 'Hello', 3))

    def test_bind_count_mismatch(self):
        with self.assertRaises(ValueError):
            SQLParams().bind('a = ? AND b = ?', [1])
