"""
CRUD access to a REST collection of entities.

Every operation is a fixed sequence: build the request, send it through the
transport, decode the response with the mapper, and settle the returned
:py:class:`Promise`.  Failures past the point of the call (transport errors,
unusable or malformed responses) reject the promise; a missing endpoint or
resource path is a :py:class:`ConfigurationError` raised at call time.

Concurrent operations on the same resource are not serialized: the response
that arrives last wins.  Operations cannot be cancelled; dropping the promise
does not stop the request.
"""
import collections.abc
import concurrent.futures
import logging
import typing

from .config import ClientSettings
from .declarative import apply_transform, key_mapping_for, meta_for
from .deferred import Promise
from .entity import Entity
from .exceptions import ConfigurationError, MalformedDocumentError, ServiceError, TransportError
from .interfaces import Request, Response, Transport, Verb
from .mapper import Mapper, dumps, loads
from .mapper import mapper as default_mapper
from .types import DocumentTransform

logger = logging.getLogger(__name__)

E = typing.TypeVar("E", bound=Entity)
T = typing.TypeVar("T")


class ResourceClient(typing.Generic[E]):
    entity_cls: typing.Type[E]
    transport: Transport
    settings: ClientSettings
    mapper: Mapper
    _executor: concurrent.futures.Executor
    _owns_executor: bool
    _owns_transport: bool

    @property
    def endpoint(self) -> str:
        endpoint = meta_for(self.entity_cls).resource.endpoint
        if not endpoint:
            raise ConfigurationError(
                f"{self.entity_cls.__name__} must declare Meta.endpoint to use RESTful operations"
            )
        return endpoint

    def member_url(self, path: typing.Any) -> str:
        return f"{self.endpoint.rstrip('/')}/{str(path).lstrip('/')}"

    def path_of(self, instance: E) -> str:
        resource_path = getattr(instance, "resource_path", None)
        if resource_path is None:
            raise ConfigurationError(
                f"{type(instance).__name__} must implement resource_path() to be updated or destroyed"
            )
        return resource_path()

    def build_request(
        self,
        verb: Verb,
        url: str,
        body: typing.Optional[bytes] = None,
        params: typing.Optional[typing.Mapping[str, typing.Any]] = None,
    ) -> Request:
        request = Request(
            verb=verb,
            url=url,
            params={k: str(v) for k, v in (params or {}).items()},
            headers=dict(self.settings.headers),
            body=body,
            timeout=self.settings.timeout,
        )
        configure = getattr(self.entity_cls, "configure_request", None)
        if configure is not None:
            request = configure(verb, request)
        return request

    def _send(self, request: Request) -> Response:
        logger.debug("%s %s", request.verb.method, request.url)
        try:
            response = self.transport.send(request)
        except TransportError:
            raise
        except Exception as e:
            logger.warning("transport failed on %s %s: %s", request.verb.method, request.url, e)
            raise TransportError(str(e), request) from e
        logger.debug(
            "%s %s answered with status %d",
            request.verb.method,
            request.url,
            response.status_code,
        )
        return response

    def _encode_body(self, instance: E, augment: DocumentTransform) -> bytes:
        return dumps(self.mapper.encode(instance, augment), self.entity_cls).encode("utf-8")

    def _load_body(self, response: Response) -> typing.Any:
        if not response.body or not response.body.strip():
            raise ServiceError(response, "response carries no body")
        return loads(response.body, self.entity_cls)

    def _decode_one(self, response: Response) -> E:
        document = self._load_body(response)
        if not isinstance(document, collections.abc.Mapping):
            raise MalformedDocumentError(
                document, f"expected an object, got {type(document).__name__}", self.entity_cls
            )
        document = apply_transform(key_mapping_for(self.entity_cls).augment_retrieve, document)
        return self.mapper.decode(self.entity_cls, document)

    def _decode_many(self, response: Response) -> typing.List[E]:
        return self.mapper.decode_many(
            self.entity_cls,
            self._load_body(response),
            augment=key_mapping_for(self.entity_cls).augment_retrieve,
        )

    def _submit(self, fn: typing.Callable[[], T]) -> "Promise[T]":
        return Promise.from_future(self._executor.submit(fn))

    def create(self, instance: E) -> "Promise[E]":
        """
        POSTs the encoded entity to the endpoint.

        :return: a promise of the entity the service answered with.
        """
        url = self.endpoint

        def _() -> E:
            body = self._encode_body(instance, key_mapping_for(self.entity_cls).augment_create)
            return self._decode_one(self._send(self.build_request(Verb.CREATE, url, body=body)))

        return self._submit(_)

    def retrieve_one(self, identifier: typing.Any) -> "Promise[E]":
        """
        GETs the entity at ``identifier``, relative to the endpoint.
        """
        url = self.member_url(identifier)

        def _() -> E:
            return self._decode_one(self._send(self.build_request(Verb.RETRIEVE, url)))

        return self._submit(_)

    def retrieve_many(
        self, filter: typing.Optional[typing.Mapping[str, typing.Any]] = None
    ) -> "Promise[typing.List[E]]":
        """
        GETs the collection at the endpoint, passing ``filter`` as query parameters.

        :return: a promise of the entities, in the order the service listed them.
        """
        url = self.endpoint

        def _() -> typing.List[E]:
            return self._decode_many(
                self._send(self.build_request(Verb.RETRIEVE, url, params=filter))
            )

        return self._submit(_)

    def update(self, instance: E) -> "Promise[E]":
        """
        PUTs the encoded entity to its resource path.

        :return: a promise of a new entity decoded from the service's answer;
                 ``instance`` itself is not modified.
        """
        url = self.member_url(self.path_of(instance))

        def _() -> E:
            body = self._encode_body(instance, key_mapping_for(self.entity_cls).augment_update)
            return self._decode_one(self._send(self.build_request(Verb.UPDATE, url, body=body)))

        return self._submit(_)

    def destroy(self, instance: E) -> "Promise[Response]":
        """
        DELETEs the entity's resource path.

        :return: a promise of the service's response.
        """
        url = self.member_url(self.path_of(instance))

        def _() -> Response:
            return self._send(self.build_request(Verb.DESTROY, url))

        return self._submit(_)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self._owns_transport:
            self.transport.close()

    def __enter__(self) -> "ResourceClient[E]":
        return self

    def __exit__(self, exc_type, exc_value, tb) -> None:
        self.close()

    def __init__(
        self,
        entity_cls: typing.Type[E],
        transport: typing.Optional[Transport] = None,
        settings: typing.Optional[ClientSettings] = None,
        executor: typing.Optional[concurrent.futures.Executor] = None,
        mapper: typing.Optional[Mapper] = None,
    ):
        self.entity_cls = entity_cls
        self.settings = settings if settings is not None else ClientSettings.from_env()
        if transport is None:
            from .transport import RequestsTransport

            transport = RequestsTransport()
            self._owns_transport = True
        else:
            self._owns_transport = False
        self.transport = transport
        self.mapper = mapper if mapper is not None else default_mapper
        if executor is None:
            executor = concurrent.futures.ThreadPoolExecutor(
                max_workers=self.settings.max_workers,
                thread_name_prefix=f"restmodel-{entity_cls.__name__}",
            )
            self._owns_executor = True
        else:
            self._owns_executor = False
        self._executor = executor
