import threading

from .logger import get_logger

_logger = get_logger(__name__)


class AttributeClassifier:
    """
    Decides which attributes of a model live in its translation table.

    Declared attributes (_translatable, or fields with translate=True) win.
    Otherwise the translation table is introspected once per table name
    (through the configured external cache) and memoized for the process.
    """

    def __init__(self, config):
        self.config = config
        self._lock = threading.RLock()
        self._attributes = {}

    @staticmethod
    def declared(model_cls):
        declared = getattr(model_cls, '_translatable', None)
        if declared is not None:
            return tuple(declared)

        fields = tuple(name for name, field in getattr(model_cls, '_fields', {}).items() if field.translate)
        return fields or None

    def get(self, model):
        """
        Sync lookup used while compiling SQL. Introspected tables that were never
        resolved classify as nothing.
        """
        declared = self.declared(type(model))
        if declared is not None:
            return declared

        with self._lock:
            return self._attributes.get(model._table, ())

    async def resolve(self, model, cr=None):
        declared = self.declared(type(model))
        if declared is not None:
            return declared

        table = model._table
        with self._lock:
            if table in self._attributes:
                return self._attributes[table]

        if cr is None:
            cr = model.env.cr
        attributes = await self._from_schema(model, cr)
        if attributes is None:
            return ()

        with self._lock:
            self._attributes[table] = attributes
        return attributes

    async def _from_schema(self, model, cr):
        if cr is None or not hasattr(cr, 'list_columns'):
            return None

        i18n_table = model.get_i18n_table()

        cached = await self.config.cache_get(i18n_table)
        if cached:
            return tuple(cached)

        try:
            columns = await cr.list_columns(i18n_table)
        except Exception as e:
            _logger.warning(f"Translatable: cannot introspect '{i18n_table}': {e}", extra={'context': {'table': i18n_table}})
            return None

        if not columns:
            _logger.warning(f"Translatable: translation table '{i18n_table}' has no columns", extra={'context': {'table': i18n_table}})
            return None

        foreign_key = model.foreign_key
        attributes = tuple(c for c in columns if c != foreign_key)

        await self.config.cache_set(i18n_table, attributes)
        _logger.debug(f"Translatable: '{model._table}' translates {list(attributes)}")
        return attributes

    async def invalidate(self, model):
        """
        Forget a model's classification here and in the external cache, so the
        next resolve() introspects the translation table again.
        """
        self.forget(model._table)
        await self.config.cache_delete(model.get_i18n_table())

    def forget(self, table=None):
        """
        Drop the in-process memo only. The external cache still holds the
        entry and resolve() reads it back; use invalidate() after a schema change.
        """
        with self._lock:
            if table is None:
                self._attributes.clear()
            else:
                self._attributes.pop(table, None)
