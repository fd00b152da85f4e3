import copy
import enum
import threading
import types
import typing

from .deferred import Deferred
from .exceptions import InvalidDeclarationError
from .utils import UNSPECIFIED, UnspecifiedType

TypeTag = typing.Union[type, typing.Any, Deferred[type]]


class Property:
    """
    Declares a tracked property on an :py:class:`Entity` subclass::

        class Person(Entity):
            id = Property(int, default=0)
            name = Property(str, default="")
            nickname = Property(str, allow_null=True)

    Every assignment to a declared property goes through the owning entity's
    change tracking.  A property without a default starts out as ``None`` and
    is therefore nullable.
    Defaults go through the same coercion as assigned values; a default that
    does not fit the declared type raises :py:class:`InvalidDeclarationError`.

    This object doubles as the catalog entry that describes the property.
    """

    name: str = "<unbound>"
    _type: TypeTag
    allow_null: bool
    default: typing.Any
    default_factory: typing.Optional[typing.Callable[[], typing.Any]]

    @property
    def type(self) -> typing.Any:
        if isinstance(self._type, Deferred):
            return self._type()
        else:
            return self._type

    @property
    def is_entity(self) -> bool:
        from .entity import Entity

        typ = self.type
        return isinstance(typ, type) and issubclass(typ, Entity)

    def make_default(self) -> typing.Any:
        if self.default_factory is not None:
            value = self.default_factory()
        elif isinstance(self.default, UnspecifiedType):
            return None
        elif isinstance(self.default, (list, dict, set)):
            value = copy.copy(self.default)
        else:
            value = self.default
        if value is None:
            return None
        return self.coerce(value)

    def coerce(self, value: typing.Any) -> typing.Any:
        """
        Checks ``value`` against the declared type and returns the value to be
        stored.

        :raises TypeError: when the value does not fit the declared type.
        :raises ValueError: when the value cannot be converted to the declared enum.
        """
        if value is None:
            if self.allow_null:
                return None
            raise TypeError(f"property ({self.name}) does not allow null")

        typ = self.type
        if typ is typing.Any or typ is object:
            return value
        elif typ is bool:
            if isinstance(value, bool):
                return value
        elif typ is int:
            if isinstance(value, int) and not isinstance(value, bool):
                return value
        elif typ is float:
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                return float(value)
        elif typ in (list, tuple):
            if isinstance(value, (list, tuple)):
                return typ(value)
        elif isinstance(typ, type) and issubclass(typ, enum.Enum):
            if isinstance(value, typ):
                return value
            return typ(value)
        elif isinstance(typ, type):
            if isinstance(value, typ):
                return value
        else:
            raise TypeError(f"property ({self.name}) has an unsupported type tag {typ!r}")
        raise TypeError(
            f"property ({self.name}) expects {getattr(typ, '__name__', typ)}, got {type(value).__name__}"
        )

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance._values[self.name]

    def __set__(self, instance, value) -> None:
        instance._assign(self.name, value)

    def __repr__(self) -> str:
        typ = self._type if isinstance(self._type, Deferred) else self.type
        return f"{type(self).__name__}({getattr(typ, '__name__', typ)!s}, name={getattr(self, 'name', None)!r}, allow_null={self.allow_null!r})"

    def __init__(
        self,
        type: TypeTag = typing.Any,
        default: typing.Union[UnspecifiedType, typing.Any] = UNSPECIFIED,
        allow_null: typing.Union[UnspecifiedType, bool] = UNSPECIFIED,
        default_factory: typing.Optional[typing.Callable[[], typing.Any]] = None,
    ):
        if default is not UNSPECIFIED and default_factory is not None:
            raise ValueError("default and default_factory are mutually exclusive")
        self._type = type
        self.default = default
        self.default_factory = default_factory
        if isinstance(allow_null, UnspecifiedType):
            allow_null = default_factory is None and (default is UNSPECIFIED or default is None)
        self.allow_null = allow_null
        if not isinstance(type, Deferred) and default is not UNSPECIFIED and default is not None:
            try:
                self.default = self.coerce(default)
            except (TypeError, ValueError) as e:
                raise InvalidDeclarationError(f"invalid default {default!r}: {e}") from e


Catalog = typing.Mapping[str, Property]


_catalogs: typing.Dict[type, Catalog] = {}
_catalogs_lock = threading.Lock()


def _build_catalog(cls: type) -> Catalog:
    props: typing.Dict[str, Property] = {}
    for klass in reversed(cls.__mro__):
        for name, value in vars(klass).items():
            if isinstance(value, Property):
                props[name] = value
            elif name in props:
                # shadowed by a plain attribute in a subclass
                del props[name]
    return types.MappingProxyType(props)


def catalog_for(cls: type) -> Catalog:
    """
    Returns the declared properties of ``cls`` in declaration order, base
    classes first.  The result is computed once per class and shared.
    """
    catalog = _catalogs.get(cls)
    if catalog is not None:
        return catalog
    with _catalogs_lock:
        catalog = _catalogs.get(cls)
        if catalog is None:
            catalog = _build_catalog(cls)
            _catalogs[cls] = catalog
        return catalog


def clear_catalog_cache() -> None:
    with _catalogs_lock:
        _catalogs.clear()
