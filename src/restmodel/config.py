"""
Process-level defaults for REST clients, optionally taken from the
environment:

* ``RESTMODEL_TIMEOUT``: seconds a request may take (default 30)
* ``RESTMODEL_MAX_WORKERS``: size of a client's worker pool (default 4)
"""
import dataclasses
import os
import typing

from .exceptions import ConfigurationError

DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_WORKERS = 4
DEFAULT_HEADERS: typing.Mapping[str, str] = {
    "Accept": "application/json",
    "Content-Type": "application/json",
}


@dataclasses.dataclass(frozen=True)
class ClientSettings:
    timeout: typing.Optional[float] = DEFAULT_TIMEOUT
    max_workers: int = DEFAULT_MAX_WORKERS
    headers: typing.Mapping[str, str] = dataclasses.field(
        default_factory=lambda: dict(DEFAULT_HEADERS)
    )

    @classmethod
    def from_env(cls, environ: typing.Optional[typing.Mapping[str, str]] = None) -> "ClientSettings":
        if environ is None:
            environ = os.environ
        try:
            timeout = float(environ.get("RESTMODEL_TIMEOUT", DEFAULT_TIMEOUT))
            max_workers = int(environ.get("RESTMODEL_MAX_WORKERS", DEFAULT_MAX_WORKERS))
        except ValueError as e:
            raise ConfigurationError(f"invalid client setting in environment: {e}") from e
        if max_workers < 1:
            raise ConfigurationError("RESTMODEL_MAX_WORKERS must be at least 1")
        return cls(timeout=timeout if timeout > 0 else None, max_workers=max_workers)
