import enum
import threading
import typing

import pytest

from ..catalog import Property
from ..deferred import Deferred
from ..entity import Entity
from ..validation import ValidationState


class Color(enum.Enum):
    RED = "red"
    BLUE = "blue"


class Base(Entity):
    id = Property(int, default=0)
    name = Property(str, default="")


class Derived(Base):
    tags = Property(list, default=[])
    name = Property(str, allow_null=True)


class Shadowing(Derived):
    tags = ()


class Node(Entity):
    label = Property(str, default="")
    parent = Property(Deferred(lambda: Node))


class TestProperty:
    def test_class_access_returns_descriptor(self):
        assert isinstance(Base.id, Property)
        assert Base.id.name == "id"

    def test_allow_null_inference(self):
        assert not Base.id.allow_null
        assert Derived.name.allow_null
        assert Property(int).allow_null
        assert Property(int, default=None).allow_null
        assert not Property(list, default_factory=list).allow_null
        assert Property(int, default=0, allow_null=True).allow_null

    def test_default_and_factory_are_exclusive(self):
        with pytest.raises(ValueError):
            Property(list, default=[], default_factory=list)

    def test_mutable_default_is_copied(self):
        a, b = Derived(), Derived()
        a.tags.append("x")
        assert b.tags == []
        assert Derived.tags.default == []

    def test_default_factory(self):
        prop = Property(dict, default_factory=lambda: {"a": 1})
        assert prop.make_default() == {"a": 1}
        assert prop.make_default() is not prop.make_default()

    def test_deferred_type(self):
        assert Node.parent.type is Node
        assert Node.parent.is_entity
        assert not Node.label.is_entity

    @pytest.mark.parametrize(
        ("type_", "value", "expected"),
        [
            (int, 1, 1),
            (float, 1, 1.0),
            (bool, True, True),
            (str, "x", "x"),
            (list, (1, 2), [1, 2]),
            (tuple, [1, 2], (1, 2)),
            (Color, "red", Color.RED),
            (Color, Color.BLUE, Color.BLUE),
            (typing.Any, object, object),
        ],
    )
    def test_coerce(self, type_, value, expected):
        prop = Property(type_)
        prop.name = "p"
        assert prop.coerce(value) == expected

    @pytest.mark.parametrize(
        ("type_", "value", "exc"),
        [
            (int, True, TypeError),
            (int, "1", TypeError),
            (bool, 1, TypeError),
            (float, "1.0", TypeError),
            (str, 1, TypeError),
            (list, "ab", TypeError),
            (Color, "green", ValueError),
        ],
    )
    def test_coerce_mismatch(self, type_, value, exc):
        prop = Property(type_)
        prop.name = "p"
        with pytest.raises(exc):
            prop.coerce(value)

    def test_coerce_null(self):
        prop = Property(int, default=0)
        prop.name = "p"
        with pytest.raises(TypeError):
            prop.coerce(None)
        assert Property(int).coerce(None) is None

    def test_default_is_coerced(self):
        class Measured(Entity):
            x = Property(float, default=0)
            size = Property(Color, default="red")

        m = Measured()
        assert type(m.x) is float
        assert m.size is Color.RED
        m.x = 0
        assert m.validation_state is ValidationState.EMPTY
        assert m.dirty_properties == []

    @pytest.mark.parametrize(
        ("type_", "default"),
        [(int, "x"), (bool, 1), (Color, "green"), (list, "ab")],
    )
    def test_default_mismatch(self, type_, default):
        from ..exceptions import InvalidDeclarationError

        with pytest.raises(InvalidDeclarationError):
            Property(type_, default=default)

    def test_default_factory_result_is_coerced(self):
        prop = Property(float, default_factory=lambda: 1)
        assert type(prop.make_default()) is float
        bad = Property(int, default_factory=lambda: "1")
        with pytest.raises(TypeError):
            bad.make_default()


class TestCatalogFor:
    @pytest.fixture
    def target(self):
        from ..catalog import catalog_for

        return catalog_for

    def test_order_and_override(self, target):
        catalog = target(Derived)
        assert list(catalog) == ["id", "name", "tags"]
        assert catalog["name"] is Derived.name

    def test_shadowed_by_plain_attribute(self, target):
        assert list(target(Shadowing)) == ["id", "name"]

    def test_cached_and_immutable(self, target):
        catalog = target(Base)
        assert target(Base) is catalog
        with pytest.raises(TypeError):
            catalog["x"] = Property()  # type: ignore

    def test_clear_cache(self, target):
        from ..catalog import clear_catalog_cache

        catalog = target(Base)
        clear_catalog_cache()
        rebuilt = target(Base)
        assert rebuilt is not catalog
        assert dict(rebuilt) == dict(catalog)

    def test_concurrent_first_access(self, target):
        from ..catalog import clear_catalog_cache

        class Wide(Entity):
            a = Property(int, default=0)
            b = Property(int, default=0)
            c = Property(int, default=0)

        clear_catalog_cache()
        barrier = threading.Barrier(8)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            catalog = target(Wide)
            with lock:
                results.append(catalog)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 8
        assert all(r is results[0] for r in results)
        assert list(results[0]) == ["a", "b", "c"]
