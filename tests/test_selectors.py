# tests/test_selectors.py
from typing import Optional

import pytest

from fixtura import Builder, SelectorError
from fixtura.selectors import resolve_field
from sample_models import Lair, Loose, Monster


def test_name_and_lambda_resolve_to_the_same_field():
    by_name = resolve_field(Monster, "age")
    by_lambda = resolve_field(Monster, lambda m: m.age)
    assert by_name == by_lambda
    assert by_name.hint is int
    assert by_name.label == "Monster.age"


def test_declared_hint_is_kept():
    assert resolve_field(Monster, "lair").hint == Optional[Lair]


def test_property_with_setter_takes_its_getter_annotation():
    assert resolve_field(Monster, "title").hint is str


@pytest.mark.parametrize(
    "selector",
    [
        lambda m: m.home.x,
        lambda m: 3,
        lambda m: m,
        lambda m: m.age + 1,
        lambda m: m.roar(),
        "nope",
        "not an identifier",
        "class",
        42,
    ],
)
def test_bad_selectors_are_rejected(selector):
    with pytest.raises(SelectorError):
        resolve_field(Monster, selector)


def test_nested_selector_points_at_with_builder():
    with pytest.raises(SelectorError) as ei:
        resolve_field(Monster, lambda m: m.home.x)
    assert "with_builder" in str(ei.value)


def test_read_only_property_and_methods_are_not_fields():
    with pytest.raises(SelectorError):
        resolve_field(Monster, "shout")
    with pytest.raises(SelectorError):
        resolve_field(Monster, "roar")


def test_selector_cannot_assign():
    def assigns(m):
        m.age = 3
        return m.age

    with pytest.raises(SelectorError):
        resolve_field(Monster, assigns)


def test_unannotated_classes_accept_any_attribute_name():
    field = resolve_field(Loose, "anything")
    assert field.name == "anything"


class Tracked:
    _path: str
    _Probe: int

    def __init__(self) -> None:
        self._path = ""
        self._Probe = 0


@pytest.mark.parametrize("name", ["_path", "_Probe"])
def test_lambda_can_select_fields_named_like_selector_internals(name):
    field = resolve_field(Tracked, lambda t: getattr(t, name))
    assert field.name == name


def test_lambda_selected_private_field_is_assigned():
    assert Builder.new(Tracked).with_(lambda t: t._path, "/tmp/x").build()._path == "/tmp/x"
