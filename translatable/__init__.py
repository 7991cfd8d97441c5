from .config import TranslatableConfig
from .env import Environment
from .registry import Registry
from .orm import Model
from .translatable import Translatable, TranslationModel
from .builder import TranslatableQuery
from .mutation import WriteResult
from .exceptions import (
    TranslatableError,
    ConfigurationError,
    UnsupportedDialectError,
    InvalidOperatorCombination,
    UnsupportedTranslatedOperation,
    PartialWriteFailure,
)
from . import fields
