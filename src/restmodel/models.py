import collections.abc
import threading
import typing

from .client import ResourceClient
from .deferred import Promise
from .entity import Entity
from .exceptions import ConfigurationError, MalformedDocumentError
from .interfaces import Request, Response, Verb
from .mapper import dumps, loads, mapper
from .types import JSONObject, MutableJSONObject

J = typing.TypeVar("J", bound="JsonEntity")
R = typing.TypeVar("R", bound="RestfulEntity")


class JsonEntity(Entity):
    """
    An :py:class:`Entity` that converts to and from JSON documents using the
    mapping configured in its ``Meta``.

    :py:meth:`parse` is meant to be registered as the custom parser of a key
    holding a nested entity::

        class User(JsonEntity):
            address = Property(Address, allow_null=True)

            class Meta:
                parsers = {"address": Address.parse}
    """

    @classmethod
    def from_dict(cls: typing.Type[J], document: JSONObject) -> J:
        return mapper.decode(cls, document)

    @classmethod
    def from_dicts(cls: typing.Type[J], documents: typing.Sequence[JSONObject]) -> typing.List[J]:
        return mapper.decode_many(cls, documents)

    @classmethod
    def from_json(cls: typing.Type[J], data: typing.Union[bytes, str]) -> J:
        return mapper.decode(cls, typing.cast(JSONObject, loads(data, cls)))

    @classmethod
    def parse(cls: typing.Type[J], value: typing.Any) -> J:
        if not isinstance(value, collections.abc.Mapping):
            raise MalformedDocumentError(
                value, f"expected an object, got {type(value).__name__}", cls
            )
        return mapper.decode(cls, value)

    def to_dict(self) -> MutableJSONObject:
        return mapper.encode(self)

    def to_json(self) -> str:
        return dumps(self.to_dict(), type(self))

    def update_from_dict(self: J, document: JSONObject) -> J:
        return mapper.update_from(self, document)


_clients: typing.Dict[type, ResourceClient] = {}
_clients_lock = threading.Lock()


class RestfulEntity(JsonEntity):
    """
    A :py:class:`JsonEntity` stored in a remote REST collection.

    Subclasses set ``Meta.endpoint`` to the collection URL and override
    :py:meth:`resource_path` to identify an instance within it::

        class Article(RestfulEntity):
            id = Property(int, default=0)
            title = Property(str, default="")

            class Meta:
                endpoint = "https://api.example.com/articles"

            def resource_path(self) -> str:
                return str(self.id)

        Article.retrieve(1).then(lambda article: print(article.title))
    """

    @classmethod
    def client(cls: typing.Type[R]) -> "ResourceClient[R]":
        client = _clients.get(cls)
        if client is not None:
            return client
        with _clients_lock:
            client = _clients.get(cls)
            if client is None:
                client = ResourceClient(cls)
                _clients[cls] = client
            return client

    @classmethod
    def use_client(cls: typing.Type[R], client: typing.Optional["ResourceClient[R]"]) -> None:
        """
        Replaces the client the class uses for its operations; passing
        :py:const:`None` makes the next operation build a default one.
        """
        with _clients_lock:
            if client is None:
                _clients.pop(cls, None)
            else:
                _clients[cls] = client

    @classmethod
    def configure_request(cls, verb: Verb, request: Request) -> Request:
        """
        Called for every request before it is sent.  Override to adjust
        headers or parameters per verb.
        """
        return request

    def resource_path(self) -> str:
        """
        Returns the path of this instance relative to ``Meta.endpoint``.
        Must be overridden for :py:meth:`update` and :py:meth:`destroy`.
        """
        raise ConfigurationError(
            f"{type(self).__name__}.resource_path() must be overridden to update or destroy instances"
        )

    @classmethod
    def create(cls: typing.Type[R], instance: R) -> "Promise[R]":
        return cls.client().create(instance)

    @classmethod
    def retrieve(
        cls: typing.Type[R],
        identifier: typing.Optional[typing.Any] = None,
        filter: typing.Optional[typing.Mapping[str, typing.Any]] = None,
    ) -> "Promise[typing.Any]":
        """
        Retrieves one instance when ``identifier`` is given, the whole
        collection (optionally filtered) otherwise.
        """
        if identifier is not None:
            if filter is not None:
                raise TypeError("identifier and filter are mutually exclusive")
            return cls.client().retrieve_one(identifier)
        return cls.client().retrieve_many(filter)

    def update(self: R) -> "Promise[R]":
        return type(self).client().update(self)

    def destroy(self) -> "Promise[Response]":
        return type(self).client().destroy(self)
