import typing

T = typing.TypeVar("T")


def identity(value: T) -> T:
    return value
