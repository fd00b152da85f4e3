import enum
import threading
import typing


class ValidationState(enum.Enum):
    EMPTY = "empty"
    """No validation has run and no change has been observed since"""
    CLEAN = "clean"
    """The last validation found no failures"""
    DIRTY = "dirty"
    """Tracked properties changed since the last validation"""
    INVALID = "invalid"
    """The last validation found at least one failure"""


ValidatorResult = typing.Union[bool, typing.Tuple[bool, typing.Optional[str]]]
Validator = typing.Callable[[typing.Any], ValidatorResult]

TYPE_MISMATCH_MESSAGE = "validation method provided did not match field type"


def normalize_result(result: ValidatorResult) -> typing.Tuple[bool, str]:
    if isinstance(result, tuple):
        ok, message = result
        return bool(ok), message if message is not None else ""
    return bool(result), ""


def typed_validator(fn: Validator, value_type: typing.Union[type, typing.Tuple[type, ...]]) -> Validator:
    def _(value: typing.Any) -> ValidatorResult:
        if not isinstance(value, value_type):
            return (False, TYPE_MISMATCH_MESSAGE)
        return fn(value)

    return _


class ValidatorRegistry:
    """
    A :py:class:`ValidatorRegistry` keeps validators per entity class, keyed
    by class identity.  Lookups for a class merge the validators registered
    for its bases, the most derived registration winning.

    Registering a validator for a property the class does not declare is
    accepted here; :py:meth:`Entity.validate` skips it.
    """

    _validators: typing.Dict[type, typing.Dict[str, Validator]]
    _merged: typing.Dict[type, typing.Mapping[str, Validator]]
    _lock: threading.Lock

    def register(
        self,
        cls: type,
        name: str,
        fn: Validator,
        value_type: typing.Optional[typing.Union[type, typing.Tuple[type, ...]]] = None,
    ) -> None:
        if value_type is not None:
            fn = typed_validator(fn, value_type)
        with self._lock:
            self._validators.setdefault(cls, {})[name] = fn
            # registrations on a base class affect every subclass
            self._merged.clear()

    def unregister(self, cls: type, name: str) -> None:
        with self._lock:
            self._validators.get(cls, {}).pop(name, None)
            self._merged.clear()

    def validators_for(self, cls: type) -> typing.Mapping[str, Validator]:
        merged = self._merged.get(cls)
        if merged is not None:
            return merged
        with self._lock:
            result: typing.Dict[str, Validator] = {}
            for klass in reversed(cls.__mro__):
                result.update(self._validators.get(klass, {}))
            self._merged[cls] = result
            return result

    def clear(self) -> None:
        with self._lock:
            self._validators.clear()
            self._merged.clear()

    def __init__(self):
        self._validators = {}
        self._merged = {}
        self._lock = threading.Lock()


validators = ValidatorRegistry()
"""The process-wide registry used by :py:class:`Entity` unless told otherwise."""
