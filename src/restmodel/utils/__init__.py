from .formatting import english_enumerate, truncated_repr  # noqa
from .types import UNSPECIFIED, UnspecifiedType  # noqa
from .typing import identity  # noqa
