import pytest

from courier.validation import (
    MAX_BALANCE,
    ValidationError,
    check_balance_bounds,
    check_balance_delta,
    clean_str,
    coerce_int,
    optional_int,
    require_fields,
    validate_username,
)


@pytest.mark.parametrize("value,expected", [(5, 5), ("42", 42), (" -3 ", -3)])
def test_coerce_int_accepts(value, expected):
    assert coerce_int(value, "n") == expected


@pytest.mark.parametrize("value", [True, 1.0, "1.5", "1e3", "", "abc", None, [1]])
def test_coerce_int_rejects(value):
    with pytest.raises(ValidationError):
        coerce_int(value, "n")


def test_optional_int_absent_is_none():
    assert optional_int({}, "id") is None
    assert optional_int({"id": None}, "id") is None
    assert optional_int({"id": "7"}, "id") == 7


def test_require_fields_lists_missing():
    with pytest.raises(ValidationError, match="Missing required fields: b, c"):
        require_fields({"a": 1, "c": None}, "a", "b", "c")
    with pytest.raises(ValidationError, match="Invalid JSON payload"):
        require_fields([1, 2], "a")


def test_clean_str():
    assert clean_str("  hi ", "f") == "hi"
    assert clean_str(None, "f") == ""
    with pytest.raises(ValidationError):
        clean_str(" ", "f", allow_blank=False)
    with pytest.raises(ValidationError):
        clean_str("abcdef", "f", max_length=3)


def test_username_length():
    assert validate_username("a" * 10) == "a" * 10
    with pytest.raises(ValidationError):
        validate_username("a" * 11)
    with pytest.raises(ValidationError):
        validate_username(7)


def test_balance_limits():
    check_balance_bounds(0)
    check_balance_bounds(MAX_BALANCE)
    check_balance_delta(-MAX_BALANCE)
    with pytest.raises(ValidationError):
        check_balance_bounds(-1)
    with pytest.raises(ValidationError):
        check_balance_bounds(MAX_BALANCE + 1)
    with pytest.raises(ValidationError):
        check_balance_delta(MAX_BALANCE + 1)
