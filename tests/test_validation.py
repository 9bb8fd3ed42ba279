import pytest

from main import is_valid_email, parse_int, validate_age
from uploads import avatar_type


@pytest.mark.parametrize("age", [1, 2, 50, 99, 100])
def test_validate_age_accepts_range(age):
    assert validate_age(age)


@pytest.mark.parametrize("age", [-5, 0, 101, 1000])
def test_validate_age_rejects_out_of_range(age):
    assert not validate_age(age)


@pytest.mark.parametrize("email", ["a@b.co", "john.doe+tag@mail.example.com", "x_y%z@host-1.info"])
def test_valid_emails(email):
    assert is_valid_email(email)


@pytest.mark.parametrize("email", ["not-an-email", "a@b.c", "a@b.co\n", "a@b.co\nx@y.com", "a@b.company", "@b.co", "a b@c.co", ""])
def test_invalid_emails(email):
    assert not is_valid_email(email)


def test_avatar_type_only_lowercase_jpg_png():
    assert avatar_type("me.png") == "png"
    assert avatar_type("me.jpg") == "jpg"
    assert avatar_type("me.PNG") is None
    assert avatar_type("me.jpeg") is None
    assert avatar_type("me") is None


def test_avatar_type_accepts_bare_extension_name():
    assert avatar_type(".png") == "png"
    assert avatar_type(".jpg") == "jpg"
    assert avatar_type("dir/.png") == "png"


@pytest.mark.parametrize("raw, expected", [("30", 30), ("+7", 7), ("-3", -3), ("007", 7)])
def test_parse_int_plain_decimal(raw, expected):
    assert parse_int(raw) == expected


@pytest.mark.parametrize("raw", ["1_0", " 30 ", "30\n", "٣٠", "1.5", "", "+", str(2 ** 63)])
def test_parse_int_rejects_non_decimal_and_overflow(raw):
    assert parse_int(raw) is None
