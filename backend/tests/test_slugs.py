import pytest

from cyberwhisper.utils.slugs import SlugSuffixer, slugify, to_base36


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Intro to C++ & Go!", "intro-to-c-go"),
        ("  --Hello   World--  ", "hello-world"),
        ("snake_case stays", "snake_case-stays"),
        ("Café Menu", "caf-menu"),
        ("!!!", ""),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_to_base36():
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36(36) == "10"
    with pytest.raises(ValueError):
        to_base36(-1)


def test_same_base_twice_gives_two_identifiers():
    suffix = SlugSuffixer()
    first = suffix("intro-to-c-go")
    second = suffix("intro-to-c-go")
    assert first != second
    assert first.startswith("intro-to-c-go-")
    assert second.startswith("intro-to-c-go-")


def test_suffix_uses_milliseconds_and_never_repeats_on_a_frozen_clock():
    suffix = SlugSuffixer(clock=lambda: 1.0)
    assert suffix.suffix() == to_base36(1000)
    assert suffix.suffix() == to_base36(1001)
