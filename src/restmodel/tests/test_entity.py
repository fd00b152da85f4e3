import logging

import pytest

from ..catalog import Property
from ..entity import Entity
from ..validation import TYPE_MISMATCH_MESSAGE, ValidationState, validators


class Person(Entity):
    id = Property(int, default=0)
    name = Property(str, default="")
    nickname = Property(str)


class Employee(Person):
    department = Property(str, default="")


class Declared(Entity):
    id = Property(int, default=0)
    name = Property(str, default="")

    class Meta:
        validators = {
            "id": lambda v: (v > 0, "id should be > 0"),
            "name": lambda v: (v != "", None),
        }


@pytest.fixture(autouse=True)
def clean_registry():
    yield
    validators.clear()


@pytest.fixture
def positive_id():
    Person.set_validator("id", lambda v: (v > 0, "id should be > 0"))


class TestConstruction:
    def test_defaults(self):
        p = Person()
        assert p.id == 0
        assert p.name == ""
        assert p.nickname is None
        assert p.validation_state is ValidationState.EMPTY
        assert p.dirty_properties == []
        assert p.validation_errors == {}

    def test_keyword_values_are_untracked(self):
        p = Person(id=10, name="n")
        assert (p.id, p.name) == (10, "n")
        assert p.validation_state is ValidationState.EMPTY
        p.undo()
        assert (p.id, p.name) == (10, "n")

    def test_unknown_keyword(self):
        with pytest.raises(TypeError):
            Person(age=3)

    def test_type_mismatch_on_assignment(self):
        p = Person()
        with pytest.raises(TypeError):
            p.id = "x"
        with pytest.raises(TypeError):
            p.id = None
        assert p.validation_state is ValidationState.EMPTY

    def test_repr_and_values(self):
        p = Person(id=1, name="a")
        assert repr(p) == "Person(id=1, name='a', nickname=None)"
        values = p.property_values()
        assert values == {"id": 1, "name": "a", "nickname": None}
        values["id"] = 2
        assert p.id == 1


class TestTracking:
    def test_scenario(self, positive_id):
        p = Person(id=10, name="n")
        assert p.validation_state is ValidationState.EMPTY

        p.name = "m"
        assert p.validation_state is ValidationState.DIRTY
        assert p.dirty_properties == ["name"]

        assert p.validate() is ValidationState.CLEAN
        assert p.validation_state is ValidationState.CLEAN

        p.id = -1
        assert p.validation_state is ValidationState.DIRTY
        assert p.dirty_properties == ["id"]

        assert p.validate() is ValidationState.INVALID
        assert p.validation_errors == {"id": "id should be > 0"}

        assert p.undo() is ValidationState.CLEAN
        assert p.id == 10
        assert p.name == "m"

    def test_equal_value_is_not_a_change(self):
        p = Person(id=1)
        p.id = 1
        assert p.validation_state is ValidationState.EMPTY

    def test_dirty_set_is_ordered_without_duplicates(self):
        p = Person()
        p.name = "a"
        p.id = 1
        p.name = "b"
        assert p.dirty_properties == ["name", "id"]

    def test_accessors_return_copies(self, positive_id):
        p = Person()
        p.name = "a"
        p.dirty_properties.append("id")
        assert p.dirty_properties == ["name"]
        p.validate()
        p.validation_errors["name"] = "x"
        assert p.validation_errors == {"id": "id should be > 0"}

    def test_change_while_invalid_moves_to_dirty(self, positive_id):
        p = Person()
        assert p.validate() is ValidationState.INVALID
        p.id = 5
        assert p.validation_state is ValidationState.DIRTY
        assert p.validation_errors == {}
        assert p.validate() is ValidationState.CLEAN

    def test_validate_is_idempotent_when_clean(self, positive_id):
        p = Person(id=1)
        assert p.validate() is ValidationState.CLEAN
        assert p.validate() is ValidationState.CLEAN
        assert p.dirty_properties == []

    def test_validate_without_validators(self):
        p = Person()
        p.name = "x"
        assert p.validate() is ValidationState.CLEAN

    def test_untracked(self):
        p = Person()
        with p.untracked():
            p.name = "quiet"
        assert p.validation_state is ValidationState.EMPTY
        p.name = "loud"
        assert p.dirty_properties == ["name"]

    def test_on_property_changed_logs(self, caplog):
        p = Person()
        with caplog.at_level(logging.DEBUG, logger="restmodel.entity"):
            p.name = "x"
        assert "Person.name changed from '' to 'x'" in caplog.text


class TestUndo:
    def test_restores_first_value(self):
        p = Person(id=1, name="a")
        p.name = "b"
        p.name = "c"
        p.id = 2
        assert p.undo() is ValidationState.CLEAN
        assert (p.id, p.name) == (1, "a")
        assert p.dirty_properties == []

    def test_snapshot_cleared_by_clean_validation(self):
        p = Person(name="a")
        p.name = "b"
        p.validate()
        p.undo()
        assert p.name == "b"

    def test_undo_on_invalid_revalidates(self, positive_id):
        p = Person(id=3)
        p.id = -3
        p.validate()
        assert p.validation_state is ValidationState.INVALID
        assert p.undo() is ValidationState.CLEAN
        assert p.id == 3

    def test_undo_can_end_invalid(self, positive_id):
        p = Person()
        p.name = "x"
        assert p.undo() is ValidationState.INVALID
        assert p.name == ""
        assert p.validation_state is not ValidationState.DIRTY


class TestValidateFailure:
    def test_raising_validator_keeps_tracked_changes(self):
        Person.set_validator("nickname", lambda v: (len(v) > 2, "too short"))
        p = Person()
        p.id = 5
        with pytest.raises(TypeError):
            p.validate()
        assert p.validation_state is ValidationState.DIRTY
        assert p.dirty_properties == ["id"]

    def test_raising_validator_keeps_errors(self, positive_id):
        p = Person()
        assert p.validate() is ValidationState.INVALID
        Person.set_validator("nickname", lambda v: v.startswith("x"))
        with pytest.raises(AttributeError):
            p.validate()
        assert p.validation_state is ValidationState.INVALID
        assert p.validation_errors == {"id": "id should be > 0"}

    def test_undo_after_raising_validator(self):
        Person.set_validator("nickname", lambda v: (len(v) > 2, "too short"))
        p = Person()
        p.id = 5
        with pytest.raises(TypeError):
            p.validate()
        validators.clear()
        assert p.undo() is ValidationState.CLEAN
        assert p.id == 0


class TestValidators:
    def test_inherited_and_overridden(self, positive_id):
        e = Employee(id=1)
        assert e.validate() is ValidationState.CLEAN
        Employee.set_validator("id", lambda v: (v > 100, "too small"))
        assert e.validate() is ValidationState.INVALID
        assert e.validation_errors == {"id": "too small"}
        assert Person(id=1).validate() is ValidationState.CLEAN

    def test_value_type(self):
        Person.set_validator("nickname", lambda v: (len(v) > 2, "too short"), str)
        p = Person()
        assert p.validate() is ValidationState.INVALID
        assert p.validation_errors == {"nickname": TYPE_MISMATCH_MESSAGE}
        p.nickname = "abc"
        assert p.validate() is ValidationState.CLEAN

    def test_none_message_is_empty(self):
        Person.set_validator("name", lambda v: (False, None))
        p = Person()
        p.validate()
        assert p.validation_errors == {"name": ""}

    def test_unknown_property_is_skipped(self, caplog):
        Person.set_validator("age", lambda v: (False, "never"))
        p = Person()
        with caplog.at_level(logging.WARNING, logger="restmodel.entity"):
            assert p.validate() is ValidationState.CLEAN
        assert "no property age found in Person" in caplog.text

    def test_meta_validators(self):
        d = Declared()
        assert d.validate() is ValidationState.INVALID
        assert d.validation_errors == {"id": "id should be > 0", "name": ""}
        d.id = 1
        d.name = "x"
        assert d.validate() is ValidationState.CLEAN

    def test_registry_overrides_meta(self):
        Declared.set_validator("id", lambda v: True)
        d = Declared(name="x")
        assert d.validate() is ValidationState.CLEAN


class TestListeners:
    def test_notified_after_state_change(self):
        p = Person()
        seen = []

        def listener(entity, name, old_value, new_value):
            seen.append((name, old_value, new_value, entity.validation_state))

        p.add_listener(listener)
        p.id = 4
        assert seen == [("id", 0, 4, ValidationState.DIRTY)]

    def test_handle(self):
        p = Person()
        seen = []
        with p.add_listener(lambda *args: seen.append(args[1])) as handle:
            p.id = 1
        assert handle.closed
        p.id = 2
        assert seen == ["id"]
        handle.close()

    def test_remove_listener(self):
        p = Person()
        seen = []

        def listener(*args):
            seen.append(args[1])

        p.add_listener(listener)
        p.remove_listener(listener)
        p.remove_listener(listener)
        p.name = "x"
        assert seen == []

    def test_not_notified_when_untracked(self):
        p = Person()
        seen = []
        p.add_listener(lambda *args: seen.append(args[1]))
        with p.untracked():
            p.name = "x"
        assert seen == []

    def test_listener_errors_propagate(self):
        p = Person()

        def listener(*args):
            raise RuntimeError("boom")

        p.add_listener(listener)
        with pytest.raises(RuntimeError):
            p.name = "x"
        assert p.name == "x"
        assert p.validation_state is ValidationState.DIRTY
