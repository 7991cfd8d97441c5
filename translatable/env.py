from .registry import Registry


class Environment:
    """
    The environment stores the context of the current transaction:
    the database cursor, the translation configuration and a free-form context.
    """
    def __init__(self, cr, config, context=None):
        self.cr = cr
        self.config = config
        self.context = context or {}

    @property
    def registry(self):
        return Registry

    def __getitem__(self, model_name):
        """
        env['blog.tag'] returns an unsaved instance of that model.
        """
        return self.get(model_name)

    def get(self, model_name):
        model_cls = Registry.get(model_name)
        if not model_cls:
            raise KeyError(f"Model {model_name} not found in Registry.")
        return model_cls(self)
