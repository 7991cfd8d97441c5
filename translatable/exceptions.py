class TranslatableError(Exception):
    """Base class for every error raised by the translation layer."""


class ConfigurationError(TranslatableError):
    """
    A capability (locale getter, cache getter/setter) was used before it was registered.
    """
    def __init__(self, section, key):
        self.section = section
        self.key = key
        super().__init__(
            f"Translatable is not configured correctly. Config for [{section}.{key}] is missing."
        )


class UnsupportedDialectError(TranslatableError):
    """The active SQL grammar has no known null-coalescing function."""
    def __init__(self, dialect):
        self.dialect = dialect
        super().__init__(f"Cannot compile IFNULL statement for grammar '{dialect}'")


class InvalidOperatorCombination(TranslatableError, ValueError):
    """Malformed operator/value arguments passed to a where call."""


class UnsupportedTranslatedOperation(TranslatableError):
    """The operation cannot target a column stored in the translation table."""


class PartialWriteFailure(TranslatableError):
    """
    One table of a two-phase write was written and the other was not (base
    before translations on insert and update, translations before base on
    delete). The first phase is NOT undone; `result` carries what happened.
    """
    def __init__(self, result):
        self.result = result
        cause = result.error
        msg = f"Partial write on '{result.table}': first phase wrote {result.affected} row(s), second phase failed"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)
