"""Application tests for the stock ledger's compare-and-swap writes."""

from unittest import mock

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from marketplace.catalogue.product import Product, ProductRepository
from marketplace.config import Settings, set_settings
from marketplace.errors import InsufficientStock, StockConflict
from marketplace.stock.ledger import StockLedger


class TestCompareAndSwap:
    def test_matching_version_writes(self, make_product, stock_of):
        product = make_product(stock=10)
        repo = current_domain.repository_for(Product)
        assert repo.compare_and_swap_stock(product.id, 0, 7) is True
        stored = repo.get(product.id)
        assert stored.stock == 7
        assert stored.version == 1

    def test_stale_version_is_refused(self, make_product, stock_of):
        product = make_product(stock=10)
        repo = current_domain.repository_for(Product)
        assert repo.compare_and_swap_stock(product.id, 0, 7) is True
        assert repo.compare_and_swap_stock(product.id, 0, 3) is False
        assert stock_of(product.id) == 7

    def test_negative_stock_refused(self, make_product):
        product = make_product(stock=1)
        with pytest.raises(ValidationError):
            current_domain.repository_for(Product).compare_and_swap_stock(product.id, 0, -1)


class TestReserve:
    def test_reserve_decrements(self, make_product, stock_of):
        product = make_product(stock=10)
        StockLedger().reserve(product.id, 4)
        assert stock_of(product.id) == 6

    def test_reserve_all_remaining_stock(self, make_product, stock_of):
        product = make_product(stock=3)
        StockLedger().reserve(product.id, 3)
        assert stock_of(product.id) == 0

    def test_insufficient_stock(self, make_product, stock_of):
        product = make_product(name="Bookshelf", stock=2)
        with pytest.raises(InsufficientStock) as exc:
            StockLedger().reserve(product.id, 3)
        assert "Bookshelf" in str(exc.value.messages)
        assert stock_of(product.id) == 2

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_non_positive_quantity_rejected(self, make_product, quantity):
        product = make_product(stock=5)
        with pytest.raises(ValidationError):
            StockLedger().reserve(product.id, quantity)

    def test_missing_product(self):
        with pytest.raises(ObjectNotFoundError):
            StockLedger().reserve("no-such-product", 1)

    def test_conflict_is_retried(self, make_product):
        product = make_product(stock=5)
        with mock.patch.object(ProductRepository, "compare_and_swap_stock", side_effect=[False, True]) as cas:
            StockLedger().reserve(product.id, 2)
        assert cas.call_count == 2

    def test_conflict_surfaces_after_max_attempts(self, make_product, stock_of):
        product = make_product(stock=5)
        with mock.patch.object(ProductRepository, "compare_and_swap_stock", return_value=False) as cas:
            with pytest.raises(StockConflict) as exc:
                StockLedger(max_attempts=2).reserve(product.id, 2)
        assert cas.call_count == 2
        assert exc.value.attempts == 2
        assert stock_of(product.id) == 5

    def test_attempts_default_from_settings(self):
        set_settings(Settings(stock_conflict_max_attempts=5))
        assert StockLedger().max_attempts == 5


class TestRestoreAndAvailable:
    def test_restore_increments(self, make_product, stock_of):
        product = make_product(stock=1)
        StockLedger().restore(product.id, 4)
        assert stock_of(product.id) == 5

    def test_restore_missing_product_is_skipped(self):
        assert StockLedger().restore("deleted-product", 2) is None

    def test_available_reads_current_stock(self, make_product):
        product = make_product(stock=8)
        ledger = StockLedger()
        ledger.reserve(product.id, 3)
        assert ledger.available(product.id) == 5
