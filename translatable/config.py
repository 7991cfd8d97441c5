import os
import inspect
import threading

from .classifier import AttributeClassifier
from .exceptions import ConfigurationError
from .logger import get_logger

_logger = get_logger(__name__)

_TRUE = ('1', 'true', 'yes', 'on')


def _env_flag(name, default):
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    return raw.strip().lower() in _TRUE


class TranslatableConfig:
    """
    Process-wide translation policy.

    Built once at start-up and handed to every Environment; per-instance overrides
    live on the entities themselves (see LocaleContext).
    """

    def __init__(self, db_settings=None, defaults=None):
        self._lock = threading.RLock()
        self._config = {
            'locale': {
                'current_getter': None,
                'fallback_getter': None,
            },
            'cache': {
                'getter': None,
                'setter': None,
                'deleter': None,
            },
            'db_settings': {
                'table_suffix': '_i18n',
                'locale_field': 'locale',
            },
            'defaults': {
                'only_translated': False,
                'with_fallback': True,
            },
        }
        if db_settings:
            self.set_db_settings(db_settings)
        if defaults:
            self.set_defaults(defaults)

        self.attributes = AttributeClassifier(self)

    @classmethod
    def from_env(cls):
        """
        Build a configuration from the process environment (.env honoured).
        Locale getters are registered only when the matching variable is set.
        """
        from dotenv import load_dotenv
        load_dotenv()

        config = cls(
            db_settings={
                'table_suffix': os.getenv('TRANSLATABLE_TABLE_SUFFIX', '_i18n'),
                'locale_field': os.getenv('TRANSLATABLE_LOCALE_FIELD', 'locale'),
            },
            defaults={
                'only_translated': _env_flag('TRANSLATABLE_ONLY_TRANSLATED', False),
                'with_fallback': _env_flag('TRANSLATABLE_WITH_FALLBACK', True),
            },
        )

        locale = os.getenv('TRANSLATABLE_LOCALE')
        if locale:
            config.current_locale_getter(lambda: locale)
        fallback = os.getenv('TRANSLATABLE_FALLBACK_LOCALE')
        if fallback:
            config.fallback_locale_getter(lambda: fallback)

        _logger.info("Translatable: configuration loaded from environment", extra={'context': {
            'table_suffix': config.db_suffix(),
            'locale_field': config.db_key(),
        }})
        return config

    # Capability registration

    def current_locale_getter(self, getter):
        with self._lock:
            self._config['locale']['current_getter'] = getter
        return self

    def fallback_locale_getter(self, getter):
        with self._lock:
            self._config['locale']['fallback_getter'] = getter
        return self

    def cache_getter(self, getter):
        with self._lock:
            self._config['cache']['getter'] = getter
        return self

    def cache_setter(self, setter):
        with self._lock:
            self._config['cache']['setter'] = setter
        return self

    def cache_deleter(self, deleter):
        with self._lock:
            self._config['cache']['deleter'] = deleter
        return self

    def use_cache(self, cache, prefix='translatable.'):
        """
        Route attribute classification through a cache object exposing
        get/set/delete (RedisCache or anything with the same shape).
        """
        self.cache_getter(lambda table: cache.get(f"{prefix}{table}"))
        self.cache_setter(lambda table, fields: cache.set(f"{prefix}{table}", fields))
        self.cache_deleter(lambda table: cache.delete(f"{prefix}{table}"))
        return self

    def set_db_settings(self, settings):
        with self._lock:
            self._config['db_settings'] = {**self._config['db_settings'], **settings}
        return self

    def set_defaults(self, defaults):
        with self._lock:
            self._config['defaults'] = {**self._config['defaults'], **defaults}
        return self

    # Lookups

    def current_locale(self):
        self._check_if_set('locale', 'current_getter')
        return self._config['locale']['current_getter']()

    def fallback_locale(self):
        self._check_if_set('locale', 'fallback_getter')
        return self._config['locale']['fallback_getter']()

    def only_translated(self):
        return bool(self._config['defaults']['only_translated'])

    def with_fallback(self):
        return bool(self._config['defaults']['with_fallback'])

    def db_suffix(self):
        return self._config['db_settings']['table_suffix']

    def db_key(self):
        return self._config['db_settings']['locale_field']

    async def cache_get(self, table):
        self._check_if_set('cache', 'getter')
        value = self._config['cache']['getter'](table)
        if inspect.isawaitable(value):
            value = await value
        return value

    async def cache_set(self, table, fields):
        self._check_if_set('cache', 'setter')
        value = self._config['cache']['setter'](table, list(fields))
        if inspect.isawaitable(value):
            value = await value
        return value

    async def cache_delete(self, table):
        """
        Drop a cached classification. Optional capability: without a
        registered deleter this is a no-op.
        """
        deleter = self._config['cache']['deleter']
        if not deleter:
            _logger.debug(f"Translatable: no cache deleter registered, '{table}' kept")
            return None
        value = deleter(table)
        if inspect.isawaitable(value):
            value = await value
        return value

    def _check_if_set(self, section, key):
        if not self._config[section][key]:
            _logger.error(f"Translatable: capability {section}.{key} used before registration")
            raise ConfigurationError(section, key)
