from decimal import Decimal

from domain.charge.eligibility import is_available


def test_unavailable_when_disabled():
    assert not is_available(Decimal("100"), "US", 50, 30000, enabled=False)


def test_country_filter():
    assert is_available(Decimal("100"), "US", 50, 30000)
    assert is_available(Decimal("100"), "pr", 50, 30000)
    assert is_available(Decimal("100"), "CA", 50, 30000)
    assert not is_available(Decimal("100"), "GB", 50, 30000)


def test_unknown_country_is_allowed():
    assert is_available(Decimal("100"), None, 50, 30000)
    assert is_available(Decimal("100"), "", 50, 30000)


def test_total_bounds_are_inclusive():
    assert is_available(Decimal("50"), "US", 50, 30000)
    assert is_available(Decimal("30000"), "US", 50, 30000)
    assert not is_available(Decimal("49.99"), "US", 50, 30000)
    assert not is_available(Decimal("30000.01"), "US", 50, 30000)


def test_unset_bounds_fall_back_to_defaults():
    assert not is_available(Decimal("0.50"), "US", None, None)
    assert is_available(Decimal("1"), "US", 0, 0)
    assert is_available(Decimal("300000"), "US", None, None)
    assert not is_available(Decimal("300000.01"), "US", None, None)
