# tests/test_typing_defs.py
import datetime as dt
from decimal import Decimal
from typing import Any, Annotated, Literal, Optional, TypeVar, Union

import pytest

from fixtura.typing_defs import (
    element_hint,
    hint_class,
    is_value_like_hint,
    strip_optional,
    value_matches_hint,
)
from sample_models import Colour, Lair, Point

X = TypeVar("X")


def test_strip_optional():
    assert strip_optional(Optional[list[int]]) == list[int]
    assert strip_optional(list[int] | None) == list[int]
    assert strip_optional(Annotated[Optional[int], "meta"]) is int
    assert strip_optional(Union[int, str]) == Union[int, str]


def test_hint_class_and_element_hint():
    assert hint_class(dict[str, int]) is dict
    assert hint_class(Any) is None
    assert hint_class(X) is None
    assert element_hint(tuple[int, ...]) is int
    assert element_hint(list) is Any


@pytest.mark.parametrize(
    "hint, verdict",
    [
        (int, True),
        (Optional[str], True),
        (Colour, True),
        (Point, True),
        (dt.date, True),
        (Decimal, True),
        (Literal["a", "b"], True),
        (tuple[int, ...], True),
        (Lair, False),
        (list[int], False),
        (Union[int, Lair], False),
        (Any, None),
        (X, None),
        (object, None),
    ],
)
def test_is_value_like_hint(hint, verdict):
    assert is_value_like_hint(hint) is verdict


@pytest.mark.parametrize(
    "value, hint, ok",
    [
        (None, int, True),
        (1, float, True),
        (1.5, complex, True),
        (True, int, True),
        ("a", int, False),
        ("a", Literal["a"], True),
        ("b", Literal["a"], False),
        ([1], list[int], True),
        ((1,), list[int], False),
        (3, Union[str, int], True),
        (object(), X, True),
        (Lair(), Any, True),
    ],
)
def test_value_matches_hint(value, hint, ok):
    assert value_matches_hint(value, hint) is ok
