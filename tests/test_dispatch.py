import copy
import logging
import pickle
from dataclasses import dataclass

import pytest

from tagged import (
    DEFAULT,
    DefinitionError,
    Matcher,
    NonExhaustiveMatch,
    NotFound,
    TaggedUnion,
    auto,
    extract_payload,
    if_case,
    is_case,
    match,
)


@dataclass(frozen=True)
class Point:
    x: float
    y: float


class Fruit(TaggedUnion):
    apple = auto()
    pear = auto()
    pineapple = auto()


class Shape(TaggedUnion):
    @dataclass
    class Square:
        position: Point
        size: float

    @dataclass
    class Circle:
        center: Point
        radius: float


class AppleDevice(TaggedUnion, raw=str):
    iphone5s = "iPhone6,1"
    iphone6 = "iPhone7,2"
    iphone6s = "iPhone8,1"
    iphone7 = "iPhone9,1"
    iphoneSE = auto()

    def chip(self) -> str:
        return chips(self)


chips = AppleDevice.matcher(
    {
        AppleDevice.iphone5s: lambda: "A7+M7",
        AppleDevice.iphone6: lambda: "A8+M8",
        (AppleDevice.iphone6s, AppleDevice.iphoneSE): lambda: "A9+M9",
        AppleDevice.iphone7: lambda: "A10+M10",
    }
)


def test_full_match_over_constants():
    say = Fruit.matcher(
        {
            Fruit.apple: lambda: "Apple!",
            Fruit.pear: lambda: "Pear?",
            Fruit.pineapple: lambda: "Pine! Apple?",
        }
    )
    assert [say(f) for f in Fruit] == ["Apple!", "Pear?", "Pine! Apple?"]


def test_missing_variant_without_default():
    with pytest.raises(NonExhaustiveMatch) as info:
        Matcher(Fruit, {Fruit.apple: lambda: 1, Fruit.pear: lambda: 2})
    assert info.value.missing == ("pineapple",)
    assert info.value.union is Fruit
    assert "pineapple" in str(info.value)


def test_non_exhaustive_error_survives_pickle_and_copy():
    error = NonExhaustiveMatch(Fruit, ["pear", "pineapple"])
    for clone in (pickle.loads(pickle.dumps(error)), copy.copy(error)):
        assert clone.union is Fruit
        assert clone.missing == ("pear", "pineapple")
        assert str(clone) == str(error)


def test_adding_the_arm_or_a_default_fixes_it():
    complete = Matcher(
        Fruit, {Fruit.apple: lambda: 1, Fruit.pear: lambda: 2, Fruit.pineapple: lambda: 3}
    )
    assert complete(Fruit.pineapple) == 3

    fallback = Matcher(Fruit, {Fruit.apple: lambda: 1, DEFAULT: lambda f: f.name})
    assert fallback(Fruit.apple) == 1
    assert fallback(Fruit.pear) == "pear"
    assert fallback(Fruit.pineapple) == "pineapple"


def test_tuple_patterns_and_names():
    assert AppleDevice.iphoneSE.chip() == "A9+M9"
    assert AppleDevice.iphone6s.chip() == "A9+M9"
    assert AppleDevice.iphone7.chip() == "A10+M10"

    by_name = Matcher(Fruit, [("apple", lambda: "a"), (("pear", "pineapple"), lambda: "p")])
    assert by_name(Fruit.pineapple) == "p"


def test_default_must_come_last():
    with pytest.raises(DefinitionError, match="last"):
        Matcher(Fruit, [(DEFAULT, lambda f: 0), (Fruit.apple, lambda: 1)])


def test_variant_listed_twice():
    with pytest.raises(DefinitionError, match="more than one arm"):
        Matcher(
            Fruit,
            [
                ((Fruit.apple, Fruit.pear), lambda: 1),
                (Fruit.pear, lambda: 2),
                (Fruit.pineapple, lambda: 3),
            ],
        )


def test_pattern_outside_the_union():
    with pytest.raises(DefinitionError):
        Matcher(Fruit, {Fruit.apple: 1, AppleDevice.iphone7: 2, DEFAULT: 3})
    with pytest.raises(DefinitionError):
        Matcher(Fruit, {"kiwi": 1, DEFAULT: 2})


def test_first_matching_arm_wins_and_default_gets_the_rest():
    calls = []

    def first():
        calls.append("first")
        return "first"

    pick = Matcher(Fruit, [((Fruit.apple, Fruit.pear), first), (DEFAULT, lambda f: "rest")])
    assert pick(Fruit.pear) == "first"
    assert pick(Fruit.pineapple) == "rest"
    assert calls == ["first"]


def test_unreachable_default_is_logged(caplog):
    class Coin(TaggedUnion):
        heads = auto()
        tails = auto()

    with caplog.at_level(logging.WARNING, logger="tagged"):
        Matcher(Coin, {Coin.heads: lambda: 1, Coin.tails: lambda: 0, DEFAULT: lambda c: -1})
    assert "unreachable" in caplog.text


def test_completeness_is_checked_once_per_layout(caplog):
    class Dice(TaggedUnion):
        one = auto()
        two = auto()

    caplog.set_level(logging.DEBUG, logger="tagged.dispatch")
    for _ in range(3):
        assert match(Dice.two, {Dice.one: lambda: 1, Dice.two: lambda: 2}) == 2
    checks = [r for r in caplog.records if "checked arm layout" in r.getMessage()]
    assert len(checks) == 1


def test_payload_fields_are_bound_positionally():
    area = Shape.matcher(
        {
            Shape.Circle: lambda center, radius: round(3.14159 * radius * radius, 2),
            Shape.Square: lambda position, size: size * size,
        }
    )
    assert area(Shape.Circle(Point(0, 0), 1)) == 3.14
    assert area(Shape.Square(Point(1, 1), 3)) == 9


def test_matcher_rejects_foreign_values():
    say = Fruit.matcher({DEFAULT: lambda f: f})
    with pytest.raises(TypeError):
        say(AppleDevice.iphone7)
    with pytest.raises(TypeError):
        match("apple", {DEFAULT: lambda f: f})


def test_single_pattern_match():
    circle = Shape.Circle(Point(10, 10), 54)

    assert is_case(circle, Shape.Circle)
    assert not is_case(circle, Shape.Square)
    assert is_case(circle, (Shape.Square, Shape.Circle))
    assert is_case(Fruit.apple, Fruit.apple)
    assert not is_case(Fruit.pear, "apple")

    assert if_case(circle, Shape.Circle, lambda center, radius: radius) == 54
    assert if_case(circle, Shape.Square, lambda position, size: size) is NotFound
    assert if_case(circle, Shape.Square, lambda p, s: s, lambda other: "else") == "else"
    assert if_case(Fruit.apple, Fruit.apple, lambda: "apple") == "apple"


def test_is_case_rejects_foreign_variants():
    with pytest.raises(DefinitionError):
        is_case(Fruit.apple, AppleDevice.iphone7)


def test_while_case_loop():
    fruits = [Fruit.pear, Fruit.pear, Fruit.pear, Fruit.apple]
    current = Fruit.pear
    while is_case(current, Fruit.pear):
        current = fruits.pop(0)
    assert current is Fruit.apple
    assert fruits == []


@pytest.mark.parametrize("radius", [0, 1, 2.5, 54, 1e9])
def test_tuple_and_named_access_agree(radius):
    circle = Shape.Circle(Point(radius, -radius), radius)

    payload = extract_payload(circle)
    center, r = payload
    assert (center, r) == (payload.center, payload.radius)
    assert (center, r) == (circle.center, circle.radius)
    assert payload == (circle.center, circle.radius)

    assert if_case(circle, Shape.Circle, lambda c, rad: (c, rad)) == (center, r)

    match circle:
        case Shape.Circle(c, rad):
            positional = (c, rad)
    match circle:
        case Shape.Circle(center=c, radius=rad):
            named = (c, rad)
    assert positional == named == (center, r)
