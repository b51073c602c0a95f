"""Tests for the Product record's sale checks."""

import pytest
from protean.exceptions import ValidationError

from marketplace.catalogue.product import Product
from marketplace.errors import InsufficientStock


def _product(**overrides):
    defaults = {"name": "Desk Lamp", "price": 25.0, "stock": 5}
    defaults.update(overrides)
    return Product(**defaults)


class TestProductPurchasable:
    def test_active_and_approved_is_purchasable(self):
        product = _product()
        assert product.is_purchasable is True
        product.ensure_purchasable()

    def test_inactive_product_rejected(self):
        product = _product(is_active=False)
        with pytest.raises(ValidationError) as exc:
            product.ensure_purchasable()
        assert "not available" in str(exc.value.messages)

    def test_unapproved_product_rejected(self):
        product = _product(is_approved=False)
        with pytest.raises(ValidationError) as exc:
            product.ensure_purchasable()
        assert "not approved" in str(exc.value.messages)


class TestProductStock:
    def test_stock_cannot_be_negative(self):
        with pytest.raises(ValidationError):
            _product(stock=-1)

    def test_ensure_in_stock_names_the_product(self):
        product = _product(stock=2)
        with pytest.raises(InsufficientStock) as exc:
            product.ensure_in_stock(3)
        assert exc.value.requested == 3
        assert exc.value.available == 2
        assert "Desk Lamp" in str(exc.value.messages)

    def test_exact_stock_is_enough(self):
        _product(stock=2).ensure_in_stock(2)
