class LocaleContext:
    """
    Locale settings of one entity instance.

    Every value resolves per-instance override -> class default declared on the
    model (_locale, _fallback_locale, _only_translated, _with_fallback) ->
    process configuration.
    """

    def __init__(self, model):
        self.model = model
        self.overrides = {
            'locale': None,
            'fallback_locale': None,
            'only_translated': None,
            'with_fallback': None,
        }
        # Set by set_locale(), cleared when the instance is saved
        self.changed = False

    def __repr__(self):
        return f"<LocaleContext {self.overrides} changed={self.changed}>"

    @property
    def config(self):
        return self.model.env.config

    def copy_from(self, other):
        self.overrides = dict(other.overrides)
        return self

    # Setters

    def set_locale(self, locale):
        self.overrides['locale'] = locale
        self.changed = True

    def set_fallback_locale(self, locale):
        self.overrides['fallback_locale'] = locale

    def set_only_translated(self, only_translated):
        self.overrides['only_translated'] = bool(only_translated)

    def set_with_fallback(self, with_fallback):
        self.overrides['with_fallback'] = bool(with_fallback)

    # Resolution

    def resolve_locale(self):
        if self.overrides['locale']:
            return self.overrides['locale']
        if getattr(self.model, '_locale', None):
            return self.model._locale
        return self.config.current_locale()

    def resolve_fallback(self):
        if self.overrides['fallback_locale']:
            return self.overrides['fallback_locale']
        if getattr(self.model, '_fallback_locale', None):
            return self.model._fallback_locale
        return self.config.fallback_locale()

    def only_translated(self):
        if self.overrides['only_translated'] is not None:
            return self.overrides['only_translated']
        if getattr(self.model, '_only_translated', None) is not None:
            return bool(self.model._only_translated)
        return self.config.only_translated()

    def with_fallback(self):
        if self.overrides['with_fallback'] is not None:
            return self.overrides['with_fallback']
        if getattr(self.model, '_with_fallback', None) is not None:
            return bool(self.model._with_fallback)
        return self.config.with_fallback()

    def should_fallback(self, locale=None):
        if not self.with_fallback():
            return False

        fallback = self.resolve_fallback()
        if not fallback:
            return False

        locale = locale or self.resolve_locale()
        return locale != fallback
