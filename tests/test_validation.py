import pytest

import validation


@pytest.mark.parametrize("name", ["x" * 19, "x" * 61, ""])
def test_name_length_outside_bounds_fails(name):
    with pytest.raises(ValueError):
        validation.check_name(name)


@pytest.mark.parametrize("name", ["x" * 20, "x" * 60])
def test_name_length_bounds_pass(name):
    assert validation.check_name(name) == name


@pytest.mark.parametrize("address", ["", "   ", "\n\t"])
def test_empty_address_fails(address):
    with pytest.raises(ValueError, match="Address is required"):
        validation.check_address(address)


def test_address_over_400_fails():
    assert validation.check_address("a" * 400)
    with pytest.raises(ValueError):
        validation.check_address("a" * 401)


@pytest.mark.parametrize("password", ["Abcdef!", "Abcdefgh!ijklmno1", "abcdefg!", "Abcdefgh", "Abcdefg-"])
def test_weak_passwords_fail(password):
    with pytest.raises(ValueError):
        validation.check_password(password)


@pytest.mark.parametrize("password", ["Abcdefg!", "Secret@123", "ZZZZZZZZZZZZZZ#z"])
def test_strong_passwords_pass(password):
    assert validation.check_password(password) == password


@pytest.mark.parametrize("value", [0, 6, -1, 3.5, "4", True, None])
def test_rating_value_outside_domain_fails(value):
    with pytest.raises(ValueError):
        validation.check_rating_value(value)


@pytest.mark.parametrize("value", [1, 3, 5])
def test_rating_value_in_domain_passes(value):
    assert validation.check_rating_value(value) == value
