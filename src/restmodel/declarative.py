"""
Processing of the ``Meta`` inner class through which an entity class
configures its JSON mapping, validation and REST endpoint::

    class User(RestfulEntity):
        id = Property(int, default=0)
        name = Property(str, default="")
        address = Property(Address, allow_null=True)

        class Meta:
            endpoint = "https://api.example.com/users"
            exclusions = ["internal_flag"]
            renames = {"userName": "name"}
            parsers = {"address": Address.parse}
            validators = {"id": lambda v: (v > 0, "id should be > 0")}

A ``Meta`` may subclass the ``Meta`` of a base entity to inherit its settings.
The configuration of a class is read once and cached.
"""
import dataclasses
import threading
import typing

from .exceptions import InvalidDeclarationError
from .naming import NameConverter, to_camel_case
from .types import DocumentTransform, JSONObject
from .utils import english_enumerate, identity
from .validation import Validator

Parser = typing.Callable[[typing.Any], typing.Any]


@dataclasses.dataclass(frozen=True)
class KeyMapping:
    exclusions: typing.FrozenSet[str] = frozenset()
    """Wire keys that are never mapped onto a property"""

    renames: typing.Mapping[str, str] = dataclasses.field(default_factory=dict)
    """Wire keys to property names"""

    parsers: typing.Mapping[str, Parser] = dataclasses.field(default_factory=dict)
    """Wire keys to functions that turn the wire value into the property value"""

    before_decode: DocumentTransform = identity
    after_encode: DocumentTransform = identity
    augment_create: DocumentTransform = identity
    augment_update: DocumentTransform = identity
    augment_retrieve: DocumentTransform = identity

    name_converter: NameConverter = to_camel_case
    """Converts underscore-separated wire keys into property names"""


@dataclasses.dataclass(frozen=True)
class ResourceConfig:
    endpoint: typing.Optional[str] = None
    """Base URL of the REST collection the entity class lives in"""


@dataclasses.dataclass(frozen=True)
class Meta:
    key_mapping: KeyMapping = dataclasses.field(default_factory=KeyMapping)
    resource: ResourceConfig = dataclasses.field(default_factory=ResourceConfig)
    validators: typing.Mapping[str, Validator] = dataclasses.field(default_factory=dict)


KEY_MAPPING_KEYS = frozenset(f.name for f in dataclasses.fields(KeyMapping))
RESOURCE_KEYS = frozenset(f.name for f in dataclasses.fields(ResourceConfig))
KNOWN_KEYS = KEY_MAPPING_KEYS | RESOURCE_KEYS | {"validators"}


def _unwrap(value: typing.Any) -> typing.Any:
    if isinstance(value, (staticmethod, classmethod)):
        return value.__func__
    return value


def _collect_attrs(meta: type) -> typing.Dict[str, typing.Any]:
    attrs: typing.Dict[str, typing.Any] = {}
    for klass in reversed(meta.__mro__):
        if klass is object:
            continue
        attrs.update(
            (k, _unwrap(v)) for k, v in vars(klass).items() if not k.startswith("__")
        )
    return attrs


def _check_transform(name: str, value: typing.Any) -> DocumentTransform:
    if not callable(value):
        raise InvalidDeclarationError(f"Meta.{name} must be callable, got {value!r}")
    return typing.cast(DocumentTransform, value)


def handle_meta(meta: typing.Optional[type]) -> Meta:
    if meta is None:
        return Meta()

    attrs = _collect_attrs(meta)
    unknown = sorted(k for k in attrs if k not in KNOWN_KEYS)
    if unknown:
        raise InvalidDeclarationError(
            f"unknown Meta attribute{'s' if len(unknown) > 1 else ''}: {english_enumerate(unknown)}"
        )

    exclusions = attrs.get("exclusions", ())
    if isinstance(exclusions, str):
        raise InvalidDeclarationError("Meta.exclusions must be a collection of keys, not a str")

    key_mapping_attrs: typing.Dict[str, typing.Any] = {
        "exclusions": frozenset(exclusions),
        "renames": dict(attrs.get("renames", {})),
        "parsers": dict(attrs.get("parsers", {})),
    }
    for name in KEY_MAPPING_KEYS - {"exclusions", "renames", "parsers"}:
        if name in attrs:
            key_mapping_attrs[name] = _check_transform(name, attrs[name])

    for key, parser in key_mapping_attrs["parsers"].items():
        if not callable(parser):
            raise InvalidDeclarationError(f'parser for key "{key}" is not callable')

    validators = dict(attrs.get("validators", {}))
    for name, validator in validators.items():
        if not callable(validator):
            raise InvalidDeclarationError(f"validator for property ({name}) is not callable")

    return Meta(
        key_mapping=KeyMapping(**key_mapping_attrs),
        resource=ResourceConfig(endpoint=attrs.get("endpoint")),
        validators=validators,
    )


_metas: typing.Dict[type, Meta] = {}
_metas_lock = threading.Lock()


def meta_for(cls: type) -> Meta:
    """
    Returns the processed ``Meta`` of ``cls``; computed once per class.
    """
    meta = _metas.get(cls)
    if meta is not None:
        return meta
    with _metas_lock:
        meta = _metas.get(cls)
        if meta is None:
            meta = handle_meta(getattr(cls, "Meta", None))
            _metas[cls] = meta
        return meta


def key_mapping_for(cls: type) -> KeyMapping:
    return meta_for(cls).key_mapping


def apply_transform(transform: DocumentTransform, document: JSONObject) -> JSONObject:
    # transforms may mutate in place; never hand them the caller's document
    return transform(dict(document))


def clear_meta_cache() -> None:
    with _metas_lock:
        _metas.clear()
