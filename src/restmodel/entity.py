import contextlib
import logging
import typing

from .catalog import Catalog, catalog_for
from .declarative import meta_for
from .validation import (
    ValidationState,
    Validator,
    ValidatorRegistry,
    normalize_result,
    validators,
)

logger = logging.getLogger(__name__)

PropertyListener = typing.Callable[["Entity", str, typing.Any, typing.Any], None]

E = typing.TypeVar("E", bound="Entity")


class ListenerHandle:
    """
    Returned by :py:meth:`Entity.add_listener`.  Closing the handle, or leaving
    it as a context manager, unregisters the listener.
    """

    entity: typing.Optional["Entity"]
    listener: PropertyListener

    @property
    def closed(self) -> bool:
        return self.entity is None

    def close(self) -> None:
        if self.entity is not None:
            self.entity.remove_listener(self.listener)
            self.entity = None

    def __enter__(self) -> "ListenerHandle":
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()

    def __init__(self, entity: "Entity", listener: PropertyListener):
        self.entity = entity
        self.listener = listener


class Entity:
    """
    Base class of trackable, validatable objects.

    Subclasses declare their properties with :py:class:`Property`.  Each
    assignment that changes a property's value moves the entity to
    :py:attr:`ValidationState.DIRTY`, records the property in
    :py:attr:`dirty_properties` and remembers the value it had before its
    first change so that :py:meth:`undo` can restore it.

    :py:meth:`validate` runs the validators registered for the class and
    settles the state to either :py:attr:`ValidationState.CLEAN` or
    :py:attr:`ValidationState.INVALID`.

    Keyword arguments given to the constructor are assigned without being
    tracked, so a freshly built entity is always
    :py:attr:`ValidationState.EMPTY`.
    """

    validator_registry: typing.ClassVar[ValidatorRegistry] = validators

    _values: typing.Dict[str, typing.Any]
    _state: ValidationState
    _dirty: typing.List[str]
    _errors: typing.Dict[str, str]
    _undo: typing.Dict[str, typing.Any]
    _listeners: typing.List[PropertyListener]
    _tracking: bool

    @classmethod
    def catalog(cls) -> Catalog:
        return catalog_for(cls)

    @classmethod
    def set_validator(
        cls,
        name: str,
        fn: Validator,
        value_type: typing.Optional[typing.Union[type, typing.Tuple[type, ...]]] = None,
    ) -> None:
        """
        Registers ``fn`` as the validator of the property ``name`` for this class
        and its subclasses.

        :param str name: the property name; it need not exist yet.
        :param Validator fn: returns ``(is_valid, message)`` for a value.
        :param value_type: if given, values that are not instances of it fail
                           validation without calling ``fn``.
        """
        cls.validator_registry.register(cls, name, fn, value_type)

    @classmethod
    def validators(cls) -> typing.Mapping[str, Validator]:
        result = dict(meta_for(cls).validators)
        result.update(cls.validator_registry.validators_for(cls))
        return result

    @property
    def validation_state(self) -> ValidationState:
        return self._state

    @property
    def dirty_properties(self) -> typing.List[str]:
        if self._state is ValidationState.DIRTY:
            return list(self._dirty)
        return []

    @property
    def validation_errors(self) -> typing.Dict[str, str]:
        if self._state is ValidationState.INVALID:
            return dict(self._errors)
        return {}

    def property_values(self) -> typing.Dict[str, typing.Any]:
        return dict(self._values)

    @contextlib.contextmanager
    def untracked(self) -> typing.Iterator[None]:
        """
        Suppresses change tracking for assignments made inside the block.
        """
        tracking = self._tracking
        self._tracking = False
        try:
            yield
        finally:
            self._tracking = tracking

    def _assign(self, name: str, value: typing.Any) -> None:
        prop = catalog_for(type(self))[name]
        value = prop.coerce(value)
        old_value = self._values[name]
        if old_value is value or (
            type(old_value) is type(value) and old_value == value
        ):
            return
        self._values[name] = value
        if self._tracking:
            self._property_changed(name, old_value, value)

    def _property_changed(self, name: str, old_value: typing.Any, new_value: typing.Any) -> None:
        if name not in self._dirty:
            self._dirty.append(name)
        self._state = ValidationState.DIRTY
        self._errors = {}
        if name not in self._undo:
            self._undo[name] = old_value
        self.on_property_changed(name, old_value, new_value)
        for listener in list(self._listeners):
            listener(self, name, old_value, new_value)

    def on_property_changed(self, name: str, old_value: typing.Any, new_value: typing.Any) -> None:
        """
        Called after a tracked property changed its value.  The default
        implementation logs the change.
        """
        logger.debug(
            "%s.%s changed from %r to %r", type(self).__name__, name, old_value, new_value
        )

    def add_listener(self, listener: PropertyListener) -> ListenerHandle:
        self._listeners.append(listener)
        return ListenerHandle(self, listener)

    def remove_listener(self, listener: PropertyListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def validate(self) -> ValidationState:
        """
        Runs every validator registered for this class against the current
        property values.

        A validator that raises leaves the state, the dirty properties and the
        undo snapshot as they were.

        :return: :py:attr:`ValidationState.CLEAN` or :py:attr:`ValidationState.INVALID`.
        """
        catalog = catalog_for(type(self))
        errors: typing.Dict[str, str] = {}
        for name, validator in self.validators().items():
            if name not in catalog:
                logger.warning(
                    "no property %s found in %s; make sure its validators are correctly configured",
                    name,
                    type(self).__name__,
                )
                continue
            ok, message = normalize_result(validator(self._values[name]))
            if not ok:
                errors[name] = message

        self._dirty = []
        if errors:
            self._state = ValidationState.INVALID
            self._errors = errors
        else:
            self._state = ValidationState.CLEAN
            self._errors = {}
            self._undo = {}
        return self._state

    def undo(self) -> ValidationState:
        """
        Restores every property changed since the entity was last clean (or
        empty), then validates it again.
        """
        for name, value in list(self._undo.items()):
            setattr(self, name, value)
        state = self.validate()
        self._undo = {}
        return state

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v!r}" for k, v in self._values.items())
        return f"{type(self).__name__}({values})"

    def __init__(self, **values: typing.Any):
        catalog = catalog_for(type(self))
        self._values = {name: prop.make_default() for name, prop in catalog.items()}
        self._state = ValidationState.EMPTY
        self._dirty = []
        self._errors = {}
        self._undo = {}
        self._listeners = []
        self._tracking = True

        for name in values:
            if name not in catalog:
                raise TypeError(
                    f"{type(self).__name__}() got an unexpected keyword argument '{name}'"
                )
        with self.untracked():
            for name, value in values.items():
                setattr(self, name, value)
