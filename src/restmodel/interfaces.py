"""
This module contains the interface definitions the REST layer expects from
an HTTP transport, along with the request and response values exchanged with
it.

"""
import abc
import dataclasses
import enum
import typing


class Verb(enum.Enum):
    CREATE = "POST"
    RETRIEVE = "GET"
    UPDATE = "PUT"
    DESTROY = "DELETE"

    @property
    def method(self) -> str:
        return self.value


@dataclasses.dataclass
class Request:
    verb: Verb
    url: str
    params: typing.Dict[str, str] = dataclasses.field(default_factory=dict)
    headers: typing.Dict[str, str] = dataclasses.field(default_factory=dict)
    body: typing.Optional[bytes] = None
    timeout: typing.Optional[float] = None


@dataclasses.dataclass
class Response:
    status_code: int
    body: bytes = b""
    headers: typing.Mapping[str, str] = dataclasses.field(default_factory=dict)
    request: typing.Optional[Request] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


class Transport(metaclass=abc.ABCMeta):
    """
    A :py:class:`Transport` carries a :py:class:`Request` to the remote service
    and returns what it answered.
    """

    @abc.abstractmethod
    def send(self, request: Request) -> Response:
        """
        Sends the request and waits for the response.  Timeouts are the
        transport's business.

        :param Request request: the request to send.
        :return: the response, whose status is in the 2xx range.
        :raises TransportError: when no response arrived, or it carries an error status.
        """
        ...  # pragma: nocover

    def close(self) -> None:
        """
        Releases the resources the transport holds.  The default
        implementation does nothing.
        """
