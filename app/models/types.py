"""
Custom SQLAlchemy column types shared by the models.
"""

from sqlalchemy import Integer
from sqlalchemy.types import TypeDecorator


class IntEnumType(TypeDecorator):
    """
    Store an ``enum.IntEnum`` as its integer value and load it back as the enum.

    Keeps the persisted 0/1 status codes while the Python side only ever
    sees named lifecycle states.
    """
    impl = Integer
    cache_ok = True

    def __init__(self, enum_class, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_class = enum_class

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self.enum_class(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self.enum_class(value)
