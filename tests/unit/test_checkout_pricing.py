import pytest
from decimal import Decimal

from ecoshop.checkout.pricing import price_lines, to_minor_units
from ecoshop.errors import ValidationError


def test_to_minor_units_rounds_half_up():
    assert to_minor_units("25.00") == 2500
    assert to_minor_units(10) == 1000
    assert to_minor_units(Decimal("0.005")) == 1
    # 19.995 en float vaut 19.99499... en binaire: passer par str() garde le demi-centime
    assert to_minor_units(19.995) == 2000
    assert to_minor_units(0.1 + 0.2) == 30


@pytest.mark.parametrize("bad", [None, "abc", "-1.00", "NaN", "Infinity"])
def test_to_minor_units_rejects_invalid_prices(bad):
    with pytest.raises(ValidationError):
        to_minor_units(bad)


def test_price_lines_two_units_at_25_gives_5000():
    products = {1: {"id": 1, "name": "Gourde", "description": "", "price": "25.00", "stock": 5}}
    priced = price_lines(products, {1: 2})
    assert priced.lines[0].unit_amount == 2500
    assert priced.lines[0].subtotal == 5000
    assert priced.total == 5000


def test_price_lines_rounds_per_line_not_on_total():
    products = {
        1: {"id": 1, "name": "A", "price": "0.333"},
        2: {"id": 2, "name": "B", "price": "0.333"},
    }
    priced = price_lines(products, {1: 3, 2: 3})
    # 0.333 -> 33 centimes par unité, total 6 x 33
    assert priced.total == 198


def test_price_lines_total_is_independent_of_line_order():
    products = {
        1: {"id": 1, "name": "A", "price": "12.49"},
        2: {"id": 2, "name": "B", "price": "3.10"},
        3: {"id": 3, "name": "C", "price": 7},
    }
    forward = price_lines(products, {1: 1, 2: 4, 3: 2})
    backward = price_lines(products, {3: 2, 2: 4, 1: 1})
    assert forward.total == backward.total == 1249 + 1240 + 1400
    assert price_lines(products, {1: 1, 2: 4, 3: 2}) == forward


def test_price_lines_uses_product_record_fields():
    products = {7: {"id": 7, "name": "Savon", "description": "Bio", "price": "4.50", "seller_id": "s1"}}
    line = price_lines(products, {7: 3}).lines[0]
    assert (line.product_id, line.name, line.description, line.seller_id) == (7, "Savon", "Bio", "s1")
    assert line.subtotal == 1350
