import abc
import typing

from .utils import truncated_repr


class RestModelError(Exception, metaclass=abc.ABCMeta):
    message: str

    def __str__(self):
        return self.message


class ConfigurationError(RestModelError):
    """
    Raised when an entity class misses a required override, such as the
    service endpoint or the per-instance resource path.  This signals a
    programming error and is never delivered through a promise.
    """

    def __init__(self, message: str):
        self.message = message


class InvalidDeclarationError(ConfigurationError):
    pass


class DecodeError(RestModelError, metaclass=abc.ABCMeta):
    @property
    @abc.abstractmethod
    def message(self) -> str:
        ...  # pragma: nocover


class MalformedDocumentError(DecodeError):
    payload: typing.Any
    detail: str
    entity: typing.Optional[type]

    @property
    def message(self) -> str:
        target = f' for "{self.entity.__name__}"' if self.entity is not None else ""
        return f"malformed document{target} ({self.detail}): {truncated_repr(self.payload)}"

    def __init__(self, payload: typing.Any, detail: str, entity: typing.Optional[type] = None):
        self.payload = payload
        self.detail = detail
        self.entity = entity


class EncodeError(RestModelError):
    """
    Raised when an encoded document holds a value JSON cannot represent.
    """

    payload: typing.Any
    detail: str
    entity: typing.Optional[type]

    @property
    def message(self) -> str:
        target = f' for "{self.entity.__name__}"' if self.entity is not None else ""
        return f"unable to encode document{target} ({self.detail}): {truncated_repr(self.payload)}"

    def __init__(self, payload: typing.Any, detail: str, entity: typing.Optional[type] = None):
        self.payload = payload
        self.detail = detail
        self.entity = entity


class PropertyDecodeError(DecodeError, metaclass=abc.ABCMeta):
    entity: type
    key: str
    value: typing.Any

    def __init__(self, entity: type, key: str, value: typing.Any):
        self.entity = entity
        self.key = key
        self.value = value


class ParserError(PropertyDecodeError):
    """
    Raised when a custom parser registered for a wire key rejects its input.
    The original exception is available as ``__cause__``.
    """

    @property
    def message(self) -> str:
        cause = f" ({self.__cause__!s})" if self.__cause__ is not None else ""
        return f'parser for key "{self.key}" in "{self.entity.__name__}" failed{cause}: {truncated_repr(self.value)}'


class NullValueError(PropertyDecodeError):
    name: str

    @property
    def message(self) -> str:
        return f'key "{self.key}" carries null but property ({self.name}) in "{self.entity.__name__}" does not allow null'

    def __init__(self, entity: type, key: str, name: str):
        super().__init__(entity, key, None)
        self.name = name


class InvalidPropertyValueError(PropertyDecodeError):
    name: str
    detail: typing.Optional[str]

    @property
    def message(self) -> str:
        detail = f" ({self.detail})" if self.detail is not None else ""
        return f'key "{self.key}" contains an invalid value for property ({self.name}) in "{self.entity.__name__}"{detail}: {truncated_repr(self.value)}'

    def __init__(
        self,
        entity: type,
        key: str,
        name: str,
        value: typing.Any,
        detail: typing.Optional[str] = None,
    ):
        super().__init__(entity, key, value)
        self.name = name
        self.detail = detail


class ServiceError(RestModelError):
    """
    Raised when the service answered but the answer cannot be interpreted
    as data, e.g. an empty body where an entity was expected.
    """

    response: "interfaces.Response"
    detail: str

    @property
    def message(self) -> str:
        return f"unexpected response from service (status {self.response.status_code}): {self.detail}"

    def __init__(self, response: "interfaces.Response", detail: str):
        self.response = response
        self.detail = detail


class TransportError(RestModelError):
    detail: str
    request: typing.Optional["interfaces.Request"]
    status_code: typing.Optional[int]
    response: typing.Optional["interfaces.Response"]

    @property
    def message(self) -> str:
        target = (
            f" {self.request.verb.method} {self.request.url}" if self.request is not None else ""
        )
        status = f" (status {self.status_code})" if self.status_code is not None else ""
        return f"request{target} failed{status}: {self.detail}"

    def __init__(
        self,
        detail: str,
        request: typing.Optional["interfaces.Request"] = None,
        status_code: typing.Optional[int] = None,
        response: typing.Optional["interfaces.Response"] = None,
    ):
        self.detail = detail
        self.request = request
        self.status_code = status_code
        self.response = response


class PromiseAlreadyResolvedError(RestModelError):
    def __init__(self, message: str = "promise is already resolved"):
        self.message = message


if typing.TYPE_CHECKING:
    from . import interfaces  # noqa: E402
