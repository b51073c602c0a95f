"""Shared BDD fixtures and step definitions for order fulfillment."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from marketplace.cart.items import AddToCart
from marketplace.catalogue.product import Product
from marketplace.coupon.coupon import Coupon


@pytest.fixture()
def products():
    """Products created by the scenario, keyed by name."""
    return {}


@pytest.fixture()
def error():
    """Container for captured errors."""
    return {"exc": None}


@pytest.fixture()
def receipts():
    """Webhook statuses in the order the gateway delivered them."""
    return []


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name}" priced {price:f} with {stock:d} in stock'))
def product_in_catalogue(products, make_product, name, price, stock):
    products[name] = make_product(name=name, price=price, stock=stock)


@given(parsers.cfparse('the stock of "{name}" is set to {stock:d}'))
def set_stock(products, name, stock):
    repo = current_domain.repository_for(Product)
    product = repo.get(products[name].id)
    product.stock = stock
    repo.add(product)


@given(
    parsers.cfparse('the buyer "{customer_id}" has {quantity:d} of "{name}" in the cart'),
    target_fixture="buyer",
)
def cart_with(products, customer_id, quantity, name):
    current_domain.process(
        AddToCart(customer_id=customer_id, product_id=products[name].id, quantity=quantity),
        asynchronous=False,
    )
    return customer_id


@given(parsers.cfparse('a PERCENTAGE coupon "{code}" worth {value:g} with minimum purchase {minimum:f}'))
def percentage_coupon(make_coupon, code, value, minimum):
    make_coupon(code=code, discount_type="PERCENTAGE", discount_value=value, min_purchase_amount=minimum)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the stock of "{name}" is {stock:d}'))
def stock_is(products, stock_of, name, stock):
    assert stock_of(products[name].id) == stock


@then(parsers.cfparse('the coupon "{code}" has been used {count:d} time'))
def coupon_used(code, count):
    assert current_domain.repository_for(Coupon).find_by_code(code).times_used == count
