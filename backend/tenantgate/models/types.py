# Overview: Column types shared across models.

from __future__ import annotations

from enum import IntEnum

from sqlalchemy.types import Integer, TypeDecorator


class IntEnumType(TypeDecorator):
    """
    Store an IntEnum as a plain integer column.

    Role dispatch in Python always works on the enum member; the integer only
    exists at the storage boundary.
    """
    impl = Integer
    cache_ok = True

    def __init__(self, enum_cls: type[IntEnum], *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._enum_cls = enum_cls

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return int(self._enum_cls(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return self._enum_cls(value)
