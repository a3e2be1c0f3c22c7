"""Tests for identifier helpers."""
import pytest

from chatbridge.identifiers import (
    digits_only,
    mask_phone,
    normalize_chat_id,
    normalize_participant_ids,
    phone_of,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("5491112345678@c.us", "5491112345678@c.us"),
        ("5491112345678-c.us", "5491112345678@c.us"),
        ("120363000000000001-g.us", "120363000000000001@g.us"),
        ("5491112345678%40c.us", "5491112345678@c.us"),
        ("1234-5678@g.us", "1234-5678@g.us"),
    ],
)
def test_normalize_chat_id(raw, expected):
    assert normalize_chat_id(raw) == expected


def test_phone_of():
    assert phone_of("5491112345678@c.us") == "5491112345678"
    assert phone_of("") == ""


def test_digits_only():
    assert digits_only("+54 9 (11) 1234-5678") == "5491112345678"


def test_normalize_participant_ids():
    assert normalize_participant_ids(["+54 911 0000", "1@c.us", " 2@lid "]) == [
        "549110000@c.us",
        "1@c.us",
        "2@lid",
    ]


def test_mask_phone():
    assert mask_phone("5491112345678") == "*********5678"
    assert mask_phone("123") == "123"
