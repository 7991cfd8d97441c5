import unittest
from unittest.mock import MagicMock

from translatable.exceptions import InvalidOperatorCombination
from translatable.tools.query import QueryBuilder, column_name, row_to_dict
from translatable.tests.common import TransactionCase


class TestQueryCompile(unittest.TestCase):

    def setUp(self):
        self.cr = MagicMock()
        self.cr.dialect = 'postgresql'

    def test_where_uses_numbered_parameters(self):
        sql, params = QueryBuilder(self.cr, 'tag').where('name', 'php').where('parent_id', '>', 3).to_sql()
        self.assertTrue(sql.startswith('SELECT "tag".* FROM "tag" WHERE'))
        self.assertIn('$1', sql)
        self.assertIn('$2', sql)
        self.assertNotIn('php', sql)
        self.assertEqual(params, ('php', 3))

    def test_none_value_becomes_null_check(self):
        sql, params = QueryBuilder(self.cr, 'tag').where('parent_id', None).to_sql()
        self.assertIn('IS NULL', sql)
        self.assertEqual(params, ())

        sql, _ = QueryBuilder(self.cr, 'tag').where('parent_id', '!=', None).to_sql()
        self.assertIn('NOT', sql)
        self.assertIn('IS NULL', sql)

    def test_shorthand_and_invalid_combinations(self):
        query = QueryBuilder(self.cr, 'tag')
        query.where('name', 'php')
        self.assertEqual(query.wheres[-1]['operator'], '=')
        self.assertEqual(query.wheres[-1]['value'], 'php')

        # Unknown operator token is taken as the value
        query.where('name', 'bogus', 'ignored')
        self.assertEqual(query.wheres[-1]['operator'], '=')
        self.assertEqual(query.wheres[-1]['value'], 'bogus')

        with self.assertRaises(InvalidOperatorCombination):
            query.where('parent_id', '>', None)
        with self.assertRaises(InvalidOperatorCombination):
            query.where('parent_id')
        # Still a ValueError for callers catching the builtin
        with self.assertRaises(ValueError):
            query.where('parent_id', 'like', None)

    def test_dict_where(self):
        query = QueryBuilder(self.cr, 'tag').where({'name': 'php', 'parent_id': 1})
        self.assertEqual([w['column'] for w in query.wheres], ['name', 'parent_id'])

    def test_invalid_order_direction(self):
        with self.assertRaises(ValueError):
            QueryBuilder(self.cr, 'tag').order_by('name', 'sideways')

    def test_join_with_alias(self):
        query = QueryBuilder(self.cr, 'tag').join(
            'tag_i18n as tag_i18n_fallback',
            lambda j: j.on('tag_i18n_fallback.tag_id', '=', 'tag.id').where('tag_i18n_fallback.locale', '=', 'en'),
            how='left'
        )
        sql, params = query.to_sql()
        self.assertIn('LEFT JOIN "tag_i18n" "tag_i18n_fallback"', sql)
        self.assertEqual(params, ('en',))

    def test_mysql_quotes(self):
        self.cr.dialect = 'mysql'
        sql, _ = QueryBuilder(self.cr, 'tag').select('name').to_sql()
        self.assertEqual(sql, 'SELECT `tag`.`name` FROM `tag`')

    def test_clone_is_independent(self):
        query = QueryBuilder(self.cr, 'tag').where('name', 'a')
        clone = query.clone().where('name', 'b')
        self.assertEqual(len(query.wheres), 1)
        self.assertEqual(len(clone.wheres), 2)

    def test_helpers(self):
        self.assertEqual(column_name('tag.id'), 'id')
        self.assertEqual(column_name('tag.id as tag_id'), 'tag_id')
        self.assertEqual(row_to_dict({'a': 1}), {'a': 1})


class TestQueryExecution(TransactionCase):

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.q = lambda: QueryBuilder(self.cr, 'res_partner')
        await self.q().insert([
            {'name': 'Ana', 'age': 30},
            {'name': 'Bob', 'age': 20},
            {'name': 'Cid', 'age': None},
        ])

    async def test_get_and_order(self):
        rows = await self.q().order_by('name', 'desc').get()
        self.assertEqual([r['name'] for r in rows], ['Cid', 'Bob', 'Ana'])

    async def test_limit_offset(self):
        rows = await self.q().order_by('name').limit(1).offset(1).get()
        self.assertEqual([r['name'] for r in rows], ['Bob'])

    async def test_first_count_exists(self):
        self.assertEqual((await self.q().where('age', '>', 25).first())['name'], 'Ana')
        self.assertIsNone(await self.q().where('name', 'Zed').first())
        self.assertEqual(await self.q().count(), 3)
        self.assertEqual(await self.q().where_null('age').count(), 1)
        self.assertTrue(await self.q().where('name', 'Bob').exists())
        self.assertFalse(await self.q().where('name', 'Zed').exists())

    async def test_or_where_and_in(self):
        names = await self.q().where('name', 'Ana').or_where('age', '<', 25).order_by('name').pluck('name')
        self.assertEqual(names, ['Ana', 'Bob'])
        self.assertEqual(await self.q().where_in('name', []).count(), 0)
        self.assertEqual(await self.q().where_not_in('name', []).count(), 3)
        self.assertEqual(await self.q().where_in('name', ['Ana', 'Cid']).count(), 2)

    async def test_where_raw(self):
        names = await self.q().where_raw('"age" >= ? OR "age" IS NULL', [30]).order_by('name').pluck('name')
        self.assertEqual(names, ['Ana', 'Cid'])

    async def test_insert_get_id(self):
        id = await self.q().insert_get_id({'name': 'Dan', 'age': 5})
        row = await self.q().where('id', id).first()
        self.assertEqual(row['name'], 'Dan')

    async def test_update_delete_increment(self):
        self.assertEqual(await self.q().where('name', 'Bob').update({'age': 21}), 1)
        self.assertEqual(await self.q().where('name', 'Bob').increment('age', 4), 1)
        self.assertEqual((await self.q().where('name', 'Bob').first())['age'], 25)
        await self.q().where('name', 'Bob').decrement('age')
        self.assertEqual((await self.q().where('name', 'Bob').first())['age'], 24)

        self.assertEqual(await self.q().where('age', '<', 100).delete(), 2)
        self.assertEqual(await self.q().pluck('name'), ['Cid'])
