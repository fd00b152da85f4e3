from .catalog import Property, catalog_for  # noqa: F401
from .client import ResourceClient  # noqa: F401
from .config import ClientSettings  # noqa: F401
from .deferred import Deferred, Promise  # noqa: F401
from .entity import Entity, ListenerHandle  # noqa: F401
from .exceptions import (  # noqa: F401
    ConfigurationError,
    DecodeError,
    EncodeError,
    InvalidDeclarationError,
    InvalidPropertyValueError,
    MalformedDocumentError,
    NullValueError,
    ParserError,
    PromiseAlreadyResolvedError,
    RestModelError,
    ServiceError,
    TransportError,
)
from .interfaces import Request, Response, Transport, Verb  # noqa: F401
from .mapper import Mapper, decode, encode  # noqa: F401
from .models import JsonEntity, RestfulEntity  # noqa: F401
from .naming import NameResolver, to_camel_case, to_snake_case  # noqa: F401
from .validation import ValidationState, ValidatorRegistry  # noqa: F401
