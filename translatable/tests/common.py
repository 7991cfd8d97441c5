import unittest

from translatable import fields
from translatable.config import TranslatableConfig
from translatable.db_async import SqliteCursor
from translatable.env import Environment
from translatable.orm import Model
from translatable.registry import Registry
from translatable.translatable import Translatable


class Tag(Translatable, Model):
    _name = 'tag'
    _description = 'Tag'

    name = fields.Char(string="Name")
    title = fields.Char(string="Title", translate=True)
    parent_id = fields.Integer(string="Parent")


class Product(Translatable, Model):
    _name = 'catalog.product'
    _description = 'Product'
    _timestamps = True

    code = fields.Char(string="Code", required=True)
    stock = fields.Integer(string="Stock", default=0)
    label = fields.Char(string="Label", translate=True)
    description = fields.Text(string="Description", translate=True)


class Article(Translatable, Model):
    """Translated columns are discovered from article_i18n."""
    _name = 'article'
    _description = 'Article'

    slug = fields.Char(string="Slug")


class Partner(Model):
    _name = 'res.partner'
    _description = 'Partner'

    name = fields.Char(string="Name", required=True)
    age = fields.Integer(string="Age")


MODELS = ['tag', 'catalog.product', 'article', 'res.partner']


class TransactionCase(unittest.IsolatedAsyncioTestCase):
    """
    TestCase running against a fresh in-memory SQLite database.
    Current locale 'en', fallback locale 'en' unless a test changes them.
    """

    locale = 'en'
    fallback_locale = 'en'

    async def asyncSetUp(self):
        await super().asyncSetUp()
        self.cr = SqliteCursor()

        self.cache = {}
        self.config = TranslatableConfig()
        self.config.current_locale_getter(lambda: self.locale)
        self.config.fallback_locale_getter(lambda: self.fallback_locale)
        self.config.cache_getter(lambda table: self.cache.get(table))
        self.config.cache_setter(lambda table, columns: self.cache.__setitem__(table, columns))

        self.env = Environment(self.cr, self.config)
        await Registry.setup_models(self.cr, self.config, names=MODELS)
        await self.cr.execute(
            'CREATE TABLE IF NOT EXISTS "article_i18n" ("article_id" INTEGER NOT NULL, "locale" VARCHAR NOT NULL, "headline" VARCHAR)'
        )

    async def asyncTearDown(self):
        self.cr.close()
        await super().asyncTearDown()

    async def fetch(self, sql, args=None):
        await self.cr.execute(sql, args)
        return [dict(zip(row.keys(), tuple(row))) for row in self.cr.fetchall()]

    async def create_tag(self, name, translations):
        """
        Insert a tag row and one translation row per locale, bypassing the ORM.
        """
        await self.cr.execute('INSERT INTO "tag" ("name") VALUES ($1)', (name,))
        tag_id = self.cr.lastrowid
        for locale, title in translations.items():
            await self.cr.execute(
                'INSERT INTO "tag_i18n" ("tag_id", "locale", "title") VALUES ($1, $2, $3)',
                (tag_id, locale, title)
            )
        return tag_id
