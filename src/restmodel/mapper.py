"""
The JSON mapping engine.

:py:class:`Mapper` turns wire documents (JSON objects already parsed into
dicts) into entities and back, driven by the declared properties of the
entity class and the ``Meta`` configuration read by :py:mod:`.declarative`.
"""
import collections.abc
import enum
import json
import logging
import threading
import typing

from .catalog import Catalog, catalog_for
from .declarative import KeyMapping, apply_transform, key_mapping_for
from .entity import Entity
from .exceptions import (
    DecodeError,
    EncodeError,
    InvalidPropertyValueError,
    MalformedDocumentError,
    NullValueError,
    ParserError,
)
from .naming import NameResolver
from .types import DocumentTransform, JSONObject, JSONValue, MutableJSONObject

logger = logging.getLogger(__name__)

E = typing.TypeVar("E", bound=Entity)


def loads(data: typing.Union[bytes, bytearray, str], entity: typing.Optional[type] = None) -> JSONValue:
    """
    Parses JSON text.

    :raises MalformedDocumentError: when ``data`` is not valid JSON.
    """
    try:
        return json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedDocumentError(data, f"invalid JSON: {e}", entity) from e


def dumps(document: JSONValue, entity: typing.Optional[type] = None) -> str:
    """
    Serializes a document to JSON text.

    :raises EncodeError: when the document holds a value JSON cannot represent.
    """
    try:
        return json.dumps(document)
    except (TypeError, ValueError) as e:
        raise EncodeError(document, str(e), entity) from e


class Mapper:
    """
    A :py:class:`Mapper` decodes wire documents into entities and encodes
    entities into wire documents.

    Each wire key is resolved to a declared property with
    :py:func:`naming.resolve_property_name`; keys that resolve to nothing are
    logged and skipped.  A resolved value is then, in order of precedence:

    * ``None`` if the property allows null and the wire value is null,
    * the result of the custom parser registered for the wire key,
    * a nested entity decoded recursively if the property is entity-typed,
    * the wire value itself, checked against the declared type.

    The name resolvers it builds are cached per entity class.
    """

    _resolvers: typing.Dict[type, NameResolver]
    _lock: threading.Lock

    def resolver_for(self, cls: type) -> NameResolver:
        resolver = self._resolvers.get(cls)
        if resolver is not None:
            return resolver
        with self._lock:
            resolver = self._resolvers.get(cls)
            if resolver is None:
                key_mapping = key_mapping_for(cls)
                resolver = NameResolver(
                    catalog=catalog_for(cls),
                    renames=key_mapping.renames,
                    exclusions=key_mapping.exclusions,
                    name_converter=key_mapping.name_converter,
                )
                self._resolvers[cls] = resolver
            return resolver

    def _convert(
        self,
        cls: type,
        catalog: Catalog,
        key_mapping: KeyMapping,
        key: str,
        name: str,
        value: typing.Any,
    ) -> typing.Any:
        prop = catalog[name]
        if value is None and prop.allow_null:
            return None

        parser = key_mapping.parsers.get(key)
        if parser is not None:
            try:
                return parser(value)
            except DecodeError:
                raise
            except Exception as e:
                raise ParserError(cls, key, value) from e

        if value is None:
            raise NullValueError(cls, key, name)
        if prop.is_entity and isinstance(value, collections.abc.Mapping):
            return self.decode(prop.type, value)
        return value

    def _resolve_values(
        self, cls: type, document: typing.Any
    ) -> typing.List[typing.Tuple[str, str, typing.Any]]:
        if not isinstance(document, collections.abc.Mapping):
            raise MalformedDocumentError(
                document, f"expected an object, got {type(document).__name__}", cls
            )
        key_mapping = key_mapping_for(cls)
        document = apply_transform(key_mapping.before_decode, document)
        if not isinstance(document, collections.abc.Mapping):
            raise MalformedDocumentError(document, "before_decode did not return an object", cls)

        catalog = catalog_for(cls)
        resolver = self.resolver_for(cls)

        result: typing.List[typing.Tuple[str, str, typing.Any]] = []
        for key, value in document.items():
            name = resolver.property_name(key)
            if name is None:
                if resolver.is_excluded(key):
                    logger.debug("skipping excluded key %r for %s", key, cls.__name__)
                else:
                    logger.info(
                        "unable to find a property of %s for provided key %r", cls.__name__, key
                    )
                continue
            result.append((key, name, self._convert(cls, catalog, key_mapping, key, name, value)))
        return result

    def _coerce_values(
        self, cls: type, values: typing.List[typing.Tuple[str, str, typing.Any]]
    ) -> typing.List[typing.Tuple[str, typing.Any]]:
        catalog = catalog_for(cls)
        result: typing.List[typing.Tuple[str, typing.Any]] = []
        for key, name, value in values:
            try:
                result.append((name, catalog[name].coerce(value)))
            except (TypeError, ValueError) as e:
                raise InvalidPropertyValueError(cls, key, name, value, str(e)) from e
        return result

    def decode(self, cls: typing.Type[E], document: JSONObject) -> E:
        """
        Builds a new ``cls`` from a wire document.  The entity comes out in
        :py:attr:`ValidationState.EMPTY` with no change recorded.

        :param Type[E] cls: the entity class.
        :param JSONObject document: the wire document.
        :return: the decoded entity.
        :raises DecodeError: when the document or one of its values does not fit ``cls``.
        """
        values = self._coerce_values(cls, self._resolve_values(cls, document))
        instance = cls()
        with instance.untracked():
            for name, value in values:
                setattr(instance, name, value)
        return instance

    def decode_many(
        self,
        cls: typing.Type[E],
        documents: typing.Any,
        augment: typing.Optional[DocumentTransform] = None,
    ) -> typing.List[E]:
        if isinstance(documents, (str, bytes, collections.abc.Mapping)) or not isinstance(
            documents, collections.abc.Sequence
        ):
            raise MalformedDocumentError(
                documents, f"expected an array, got {type(documents).__name__}", cls
            )
        result: typing.List[E] = []
        for document in documents:
            if augment is not None and isinstance(document, collections.abc.Mapping):
                document = apply_transform(augment, document)
            result.append(self.decode(cls, document))
        return result

    def update_from(self, instance: E, document: JSONObject) -> E:
        """
        Assigns the values of a wire document onto an existing entity.  Unlike
        :py:meth:`decode`, the assignments are tracked.  Every value is checked
        before the first one is assigned, so a failing document leaves the
        instance untouched.
        """
        cls = type(instance)
        for name, value in self._coerce_values(cls, self._resolve_values(cls, document)):
            setattr(instance, name, value)
        return instance

    def _encode_value(self, value: typing.Any) -> typing.Any:
        if isinstance(value, Entity):
            return self.encode(value)
        elif isinstance(value, enum.Enum):
            return value.value
        elif isinstance(value, (list, tuple, set, frozenset)):
            return [self._encode_value(v) for v in value]
        elif isinstance(value, dict):
            return {k: self._encode_value(v) for k, v in value.items()}
        return value

    def encode(
        self, instance: Entity, augment: typing.Optional[DocumentTransform] = None
    ) -> MutableJSONObject:
        """
        Builds a wire document from an entity.  Every declared property is
        written, ``None`` included.

        :param Entity instance: the entity to encode.
        :param Optional[DocumentTransform] augment: applied after the class's
                                                    ``after_encode`` transform.
        :return: the wire document.
        """
        cls = type(instance)
        resolver = self.resolver_for(cls)
        document: MutableJSONObject = {}
        for name in catalog_for(cls):
            document[resolver.wire_key(name)] = self._encode_value(getattr(instance, name))
        document = dict(apply_transform(key_mapping_for(cls).after_encode, document))
        if augment is not None:
            document = dict(apply_transform(augment, document))
        return document

    def clear_cache(self) -> None:
        with self._lock:
            self._resolvers.clear()

    def __init__(self):
        self._resolvers = {}
        self._lock = threading.Lock()


mapper = Mapper()
"""The mapper shared by :py:class:`JsonEntity` and :py:class:`ResourceClient`."""


def decode(cls: typing.Type[E], document: JSONObject) -> E:
    return mapper.decode(cls, document)


def encode(instance: Entity) -> MutableJSONObject:
    return mapper.encode(instance)
