from typing import TypeVar, Generic, TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .orm import Model

T = TypeVar('T')


class Field(Generic[T]):
    """
    Base class for all fields.

    A field declared with translate=True is stored in the model's translation
    table instead of the model table.
    """
    _type = None
    _sql_type = None

    def __init__(self, string=None, required=False, help=None, readonly=False, default=None, translate=False, index=None):
        self.string = string
        self.required = required
        self.help = help
        self.readonly = readonly
        self.name = None
        self.default = default
        self.translate = translate
        self.index = index

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.name}>"

    def __set_name__(self, owner, name):
        self.name = name

    def __get__(self, record, owner) -> T:
        if record is None: return self # type: ignore
        return record._values.get(self.name)

    def __set__(self, record, value):
        record._values[self.name] = value

    def get_default(self):
        if callable(self.default):
            return self.default()
        return self.default


class Char(Field[str]):
    _type = 'char'
    _sql_type = 'VARCHAR'


class Text(Field[str]):
    _type = 'text'
    _sql_type = 'TEXT'


class Integer(Field[int]):
    _type = 'integer'
    _sql_type = 'INTEGER'


class Boolean(Field[bool]):
    _type = 'boolean'
    _sql_type = 'BOOLEAN'


class Float(Field[float]):
    _type = 'float'
    _sql_type = 'FLOAT'


class Datetime(Field[Any]):
    _type = 'datetime'
    _sql_type = 'TIMESTAMP'


class Many2one(Field[int]):
    """
    Stored as <name> INTEGER referencing the comodel table.
    """
    _type = 'many2one'
    _sql_type = 'INTEGER'

    def __init__(self, comodel_name, string=None, ondelete='set null', **kwargs):
        super().__init__(string=string, **kwargs)
        self.comodel_name = comodel_name
        self.ondelete = ondelete
