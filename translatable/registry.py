class Registry:
    """
    The Model Registry (Singleton).
    """
    _models = {}

    @classmethod
    def register(cls, name, model_cls):
        cls._models[name] = model_cls

    @classmethod
    def get(cls, name):
        return cls._models.get(name)

    @classmethod
    def keys(cls):
        return cls._models.keys()

    @classmethod
    def unregister(cls, name):
        cls._models.pop(name, None)

    @classmethod
    async def setup_models(cls, cr, config=None, names=None):
        """
        Create tables (and translation tables) for registered models.
        """
        for name, model_cls in cls._models.items():
            if names is not None and name not in names:
                continue
            await model_cls._auto_init(cr, config)
