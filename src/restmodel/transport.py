import logging
import typing

import requests

from .exceptions import TransportError
from .interfaces import Request, Response, Transport

logger = logging.getLogger(__name__)


class RequestsTransport(Transport):
    """
    The default :py:class:`Transport`, backed by a :py:class:`requests.Session`.
    """

    session: requests.Session
    _owns_session: bool

    def send(self, request: Request) -> Response:
        try:
            r = self.session.request(
                request.verb.method,
                request.url,
                params=request.params or None,
                headers=request.headers,
                data=request.body,
                timeout=request.timeout,
            )
        except requests.RequestException as e:
            logger.warning("%s %s failed: %s", request.verb.method, request.url, e)
            raise TransportError(str(e), request) from e

        response = Response(
            status_code=r.status_code,
            body=r.content or b"",
            headers=dict(r.headers),
            request=request,
        )
        if not response.ok:
            logger.warning(
                "%s %s answered with status %d", request.verb.method, request.url, r.status_code
            )
            raise TransportError(r.reason or "error status", request, r.status_code, response)
        return response

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def __init__(self, session: typing.Optional[requests.Session] = None):
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()
