import json
import logging
import os
import unittest
from unittest.mock import AsyncMock, patch

from translatable.config import TranslatableConfig
from translatable.exceptions import ConfigurationError
from translatable.logger import JsonFormatter, get_logger


class TestConfig(unittest.IsolatedAsyncioTestCase):

    def test_defaults(self):
        config = TranslatableConfig()
        self.assertEqual(config.db_suffix(), '_i18n')
        self.assertEqual(config.db_key(), 'locale')
        self.assertFalse(config.only_translated())
        self.assertTrue(config.with_fallback())

    def test_settings_are_merged(self):
        config = TranslatableConfig(db_settings={'table_suffix': '_translations'}, defaults={'only_translated': True})
        self.assertEqual(config.db_suffix(), '_translations')
        self.assertEqual(config.db_key(), 'locale')
        self.assertTrue(config.only_translated())
        self.assertTrue(config.with_fallback())

    def test_missing_capability(self):
        config = TranslatableConfig()
        with self.assertLogs('translatable.config', 'ERROR'):
            with self.assertRaises(ConfigurationError) as cm:
                config.current_locale()
        self.assertEqual((cm.exception.section, cm.exception.key), ('locale', 'current_getter'))
        self.assertEqual(
            str(cm.exception),
            "Translatable is not configured correctly. Config for [locale.current_getter] is missing."
        )

    def test_getters_are_called_on_every_lookup(self):
        locales = iter(['en', 'fr'])
        config = TranslatableConfig().current_locale_getter(lambda: next(locales))
        self.assertEqual(config.current_locale(), 'en')
        self.assertEqual(config.current_locale(), 'fr')

    async def test_sync_and_async_cache_capabilities(self):
        store = {}
        config = TranslatableConfig()
        config.cache_getter(store.get).cache_setter(store.__setitem__)
        await config.cache_set('tag_i18n', ('title',))
        self.assertEqual(await config.cache_get('tag_i18n'), ['title'])

        config.cache_getter(AsyncMock(return_value=['body']))
        self.assertEqual(await config.cache_get('page_i18n'), ['body'])

    async def test_cache_delete_is_optional(self):
        store = {'tag_i18n': ['title']}
        config = TranslatableConfig().cache_getter(store.get)
        self.assertIsNone(await config.cache_delete('tag_i18n'))
        self.assertIn('tag_i18n', store)

        config.cache_deleter(store.pop)
        await config.cache_delete('tag_i18n')
        self.assertNotIn('tag_i18n', store)

    def test_from_env(self):
        env = {
            'TRANSLATABLE_TABLE_SUFFIX': '_tr',
            'TRANSLATABLE_LOCALE_FIELD': 'lang',
            'TRANSLATABLE_ONLY_TRANSLATED': 'true',
            'TRANSLATABLE_WITH_FALLBACK': '0',
            'TRANSLATABLE_LOCALE': 'fr',
            'TRANSLATABLE_FALLBACK_LOCALE': 'en',
        }
        with patch.dict(os.environ, env), patch('dotenv.load_dotenv'):
            config = TranslatableConfig.from_env()

        self.assertEqual(config.db_suffix(), '_tr')
        self.assertEqual(config.db_key(), 'lang')
        self.assertTrue(config.only_translated())
        self.assertFalse(config.with_fallback())
        self.assertEqual(config.current_locale(), 'fr')
        self.assertEqual(config.fallback_locale(), 'en')

    def test_from_env_without_locales(self):
        with patch.dict(os.environ, {}, clear=True), patch('dotenv.load_dotenv'):
            config = TranslatableConfig.from_env()
        with self.assertRaises(ConfigurationError):
            config.fallback_locale()


class TestLogger(unittest.TestCase):

    def test_child_loggers(self):
        self.assertEqual(get_logger('scope').name, 'translatable.scope')
        self.assertEqual(get_logger('translatable.scope').name, 'translatable.scope')
        self.assertEqual(get_logger().name, 'translatable')

    def test_json_formatter_merges_context(self):
        record = logging.LogRecord('translatable.mutation', logging.ERROR, __file__, 1, 'write failed', None, None)
        record.context = {'table': 'tag', 'affected': 1}
        data = json.loads(JsonFormatter().format(record))
        self.assertEqual(data['level'], 'ERROR')
        self.assertEqual(data['message'], 'write failed')
        self.assertEqual(data['table'], 'tag')
        self.assertEqual(data['affected'], 1)
