"""
Conversions between wire key conventions and declared property names.

A wire key is resolved to a property by trying, in order: the exclusion set,
the rename table, the naming-convention converter (only for keys containing
an underscore), and finally the key itself.  Nothing else is attempted.
"""
import re
import typing

NameConverter = typing.Callable[[str], str]

WORD_SEPARATOR = "_"

_upper_boundary_re = re.compile(r"(?<=[a-z0-9])([A-Z])")


def to_camel_case(key: str) -> str:
    parts = [part for part in key.split(WORD_SEPARATOR) if part]
    if not parts:
        return key
    return parts[0].lower() + "".join(part.capitalize() for part in parts[1:])


def to_snake_case(name: str) -> str:
    return _upper_boundary_re.sub(r"_\1", name).lower()


def resolve_property_name(
    key: str,
    renames: typing.Mapping[str, str],
    catalog: typing.Container[str],
    exclusions: typing.Container[str] = (),
    name_converter: NameConverter = to_camel_case,
) -> typing.Optional[str]:
    """
    Returns the name of the property that receives the value found at ``key``,
    or :py:const:`None` when the key is to be skipped.

    :param str key: a key of the wire document.
    :param Mapping[str, str] renames: a table of wire keys to property names.
    :param Container[str] catalog: the declared property names.
    :param Container[str] exclusions: wire keys that are never mapped.
    :param NameConverter name_converter: converts separator-delimited keys
                                         into the property naming convention.
    :return: a property name or :py:const:`None`.
    """
    if key in exclusions:
        return None

    target = renames.get(key)
    if target is not None and target in catalog:
        return target

    if WORD_SEPARATOR in key:
        converted = name_converter(key)
        if converted in catalog:
            return converted

    if key in catalog:
        return key

    return None


def resolve_wire_key(name: str, renames: typing.Mapping[str, str]) -> str:
    for key, target in renames.items():
        if target == name:
            return key
    return name


class NameResolver:
    """
    Binds a rename table, an exclusion set and a converter to a catalog so that
    repeated lookups in both directions need no further arguments.
    """

    renames: typing.Mapping[str, str]
    exclusions: typing.AbstractSet[str]
    catalog: typing.Container[str]
    name_converter: NameConverter
    _wire_keys: typing.Dict[str, str]

    def is_excluded(self, key: str) -> bool:
        return key in self.exclusions

    def property_name(self, key: str) -> typing.Optional[str]:
        return resolve_property_name(
            key,
            self.renames,
            self.catalog,
            self.exclusions,
            self.name_converter,
        )

    def wire_key(self, name: str) -> str:
        try:
            return self._wire_keys[name]
        except KeyError:
            return name

    def __init__(
        self,
        catalog: typing.Container[str],
        renames: typing.Mapping[str, str] = {},
        exclusions: typing.AbstractSet[str] = frozenset(),
        name_converter: NameConverter = to_camel_case,
    ):
        self.catalog = catalog
        self.renames = renames
        self.exclusions = exclusions
        self.name_converter = name_converter
        self._wire_keys = {}
        for key, target in renames.items():
            # the first wire key wins, like resolve_wire_key()
            self._wire_keys.setdefault(target, key)
