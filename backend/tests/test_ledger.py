"""
Tests for the stock ledger: stock counter and movement log kept in step.
"""
import pytest
from sqlalchemy.exc import OperationalError

from physio_stock.core.errors import (
    ActionCancelled,
    AlreadyReversed,
    InsufficientStock,
    NotFound,
    StaleStock,
    TransportError,
    ValidationError,
)
from physio_stock.db.session import get_session_factory
from physio_stock.models.stock_movement import MovementType
from physio_stock.services.gateway import SqlGateway
from physio_stock.services.ledger import StockLedger, signed_total


def movements_for(gateway, item_id):
    return gateway.select("stock_movements", filters={"item_id": item_id}, order_by="id")


def stock_of(gateway, item_id):
    return gateway.select_one("items", filters={"id": item_id})["stock"]


class TestApplyMovement:
    """Purchases and sales against the last observed stock."""

    def test_purchase_adds_and_records(self, ledger, gateway, item):
        result = ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0)

        assert result.new_stock == 10
        assert result.movement["movement_type"] == "PURCHASE"
        assert result.movement["quantity"] == 10
        assert result.movement["reversal_of_id"] is None
        assert result.invalidates == ("items", "stock_movements")
        assert stock_of(gateway, item["id"]) == 10
        assert len(movements_for(gateway, item["id"])) == 1

    def test_accepts_plain_strings_for_type(self, ledger, item):
        result = ledger.apply_movement(item["id"], 3, "PURCHASE", current_stock=0)
        assert result.new_stock == 3

    def test_oversell_is_rejected_without_writes(self, ledger, gateway, item):
        ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0)

        with pytest.raises(InsufficientStock) as exc_info:
            ledger.apply_movement(item["id"], 12, MovementType.SALE, current_stock=10)

        assert "Mevcut: 10" in exc_info.value.message
        assert stock_of(gateway, item["id"]) == 10
        assert len(movements_for(gateway, item["id"])) == 1

    @pytest.mark.parametrize("quantity", [0, -3, True, 2.5])
    def test_invalid_quantity(self, ledger, gateway, item, quantity):
        with pytest.raises(ValidationError):
            ledger.apply_movement(item["id"], quantity, MovementType.PURCHASE, current_stock=0)
        assert movements_for(gateway, item["id"]) == []

    def test_invalid_type(self, ledger, item):
        with pytest.raises(ValidationError):
            ledger.apply_movement(item["id"], 1, "RETURN", current_stock=0)

    def test_missing_item(self, ledger):
        with pytest.raises(NotFound):
            ledger.apply_movement(9999, 1, MovementType.PURCHASE, current_stock=0)

    def test_stock_equals_signed_sum_of_movements(self, ledger, gateway, item):
        steps = [
            (MovementType.PURCHASE, 7),
            (MovementType.SALE, 2),
            (MovementType.PURCHASE, 15),
            (MovementType.SALE, 20),
            (MovementType.PURCHASE, 1),
        ]
        stock = 0
        for movement_type, quantity in steps:
            stock = ledger.apply_movement(item["id"], quantity, movement_type, current_stock=stock).new_stock

        assert stock == 1
        assert stock_of(gateway, item["id"]) == signed_total(movements_for(gateway, item["id"]))

    def test_double_submit_with_stale_stock_is_rejected(self, ledger, gateway, item):
        ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0)

        first = ledger.apply_movement(item["id"], 6, MovementType.SALE, current_stock=10)
        with pytest.raises(StaleStock):
            ledger.apply_movement(item["id"], 6, MovementType.SALE, current_stock=10)

        assert first.new_stock == 4
        assert stock_of(gateway, item["id"]) == 4
        assert len(movements_for(gateway, item["id"])) == 2

    def test_expected_version_must_match(self, ledger, gateway, item):
        with pytest.raises(StaleStock):
            ledger.apply_movement(item["id"], 1, MovementType.PURCHASE, current_stock=0, expected_version=7)

        result = ledger.apply_movement(
            item["id"], 1, MovementType.PURCHASE, current_stock=0, expected_version=item["version"]
        )
        assert result.item["version"] == item["version"] + 1

    def test_failed_movement_insert_leaves_stock_untouched(self, ledger, gateway, item, monkeypatch):
        def broken_flush(*args, **kwargs):
            raise OperationalError("INSERT INTO stock_movements", {}, Exception("disk full"))

        monkeypatch.setattr(gateway.db, "flush", broken_flush)
        with pytest.raises(TransportError) as exc_info:
            ledger.apply_movement(item["id"], 5, MovementType.PURCHASE, current_stock=0)
        monkeypatch.undo()

        assert exc_info.value.message == "disk full"
        assert stock_of(gateway, item["id"]) == 0
        assert movements_for(gateway, item["id"]) == []

    def test_result_reports_own_write_despite_later_writer(self, ledger, gateway, item, monkeypatch):
        other_session = get_session_factory()()
        other = SqlGateway(other_session, owner_id=gateway.owner_id)
        commit = gateway.db.commit

        def commit_then_other_sale():
            commit()
            monkeypatch.setattr(gateway.db, "commit", commit)
            other.apply_stock_change(
                item_id=item["id"],
                expected_stock=10,
                new_stock=7,
                movement={"movement_type": "SALE", "quantity": 3},
            )

        monkeypatch.setattr(gateway.db, "commit", commit_then_other_sale)
        try:
            result = ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0)
        finally:
            other_session.close()

        assert result.new_stock == 10
        assert result.item["stock"] == 10
        assert stock_of(gateway, item["id"]) == 7


class TestConfirmation:
    """Large quantities go through the confirmation port."""

    def test_large_quantity_declined(self, gateway, item):
        prompts = []

        def decline(action):
            prompts.append(action)
            return False

        ledger = StockLedger(gateway, confirm=decline)
        with pytest.raises(ActionCancelled):
            ledger.apply_movement(item["id"], 50, MovementType.PURCHASE, current_stock=0)

        assert prompts[0].message == "50 adet alım işlemi yapılacak. Onaylıyor musunuz?"
        assert stock_of(gateway, item["id"]) == 0

    def test_small_quantity_skips_prompt(self, gateway, item):
        ledger = StockLedger(gateway, confirm=lambda action: pytest.fail("unexpected prompt"))
        assert ledger.apply_movement(item["id"], 49, MovementType.PURCHASE, current_stock=0).new_stock == 49

    def test_large_quantity_accepted(self, gateway, item):
        ledger = StockLedger(gateway, confirm=lambda action: True)
        assert ledger.apply_movement(item["id"], 80, MovementType.PURCHASE, current_stock=0).new_stock == 80


class TestUndoMovement:
    """Undo appends an opposite movement linked to the original."""

    def test_undo_restores_previous_stock(self, ledger, gateway, item):
        ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0)
        sale = ledger.apply_movement(item["id"], 4, MovementType.SALE, current_stock=10)

        result = ledger.undo_movement(sale.movement["id"], item["id"], MovementType.SALE, 4)

        assert result.new_stock == 10
        assert result.reversed_movement_id == sale.movement["id"]
        assert result.movement["movement_type"] == "PURCHASE"
        assert result.movement["reversal_of_id"] == sale.movement["id"]
        assert len(movements_for(gateway, item["id"])) == 3
        assert stock_of(gateway, item["id"]) == signed_total(movements_for(gateway, item["id"]))

    def test_undo_uses_current_stock(self, ledger, gateway, item):
        purchase = ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0)
        ledger.apply_movement(item["id"], 5, MovementType.PURCHASE, current_stock=10)

        result = ledger.undo_movement(purchase.movement["id"])

        assert result.new_stock == 5

    def test_undo_purchase_after_units_were_sold(self, ledger, gateway, item):
        purchase = ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0)
        ledger.apply_movement(item["id"], 8, MovementType.SALE, current_stock=10)

        with pytest.raises(InsufficientStock) as exc_info:
            ledger.undo_movement(purchase.movement["id"])

        assert exc_info.value.message == "Geri alma işlemi başarısız: Stok negatif olamaz"
        assert stock_of(gateway, item["id"]) == 2
        assert len(movements_for(gateway, item["id"])) == 2

    def test_undo_twice_is_rejected(self, ledger, gateway, item):
        purchase = ledger.apply_movement(item["id"], 3, MovementType.PURCHASE, current_stock=0)
        ledger.undo_movement(purchase.movement["id"])

        with pytest.raises(AlreadyReversed):
            ledger.undo_movement(purchase.movement["id"])
        assert stock_of(gateway, item["id"]) == 0

    def test_undo_missing_movement(self, ledger):
        with pytest.raises(NotFound):
            ledger.undo_movement(12345)

    def test_undo_with_wrong_item(self, ledger, catalog, item):
        purchase = ledger.apply_movement(item["id"], 3, MovementType.PURCHASE, current_stock=0)
        other, _ = catalog.create_item(item["category_id"], "Elektrot")

        with pytest.raises(NotFound):
            ledger.undo_movement(purchase.movement["id"], item_id=other["id"])

    def test_undo_with_mismatched_details(self, ledger, item):
        purchase = ledger.apply_movement(item["id"], 3, MovementType.PURCHASE, current_stock=0)

        with pytest.raises(ValidationError):
            ledger.undo_movement(purchase.movement["id"], item["id"], MovementType.SALE, 3)
        with pytest.raises(ValidationError):
            ledger.undo_movement(purchase.movement["id"], item["id"], MovementType.PURCHASE, 4)

    def test_undo_declined(self, gateway, item):
        purchase = StockLedger(gateway).apply_movement(item["id"], 3, MovementType.PURCHASE, current_stock=0)
        prompts = []

        def decline(action):
            prompts.append(action)
            return False

        with pytest.raises(ActionCancelled):
            StockLedger(gateway, confirm=decline).undo_movement(purchase.movement["id"])

        assert prompts[0].message.startswith("Bu alım işlemini geri almak istiyor musunuz?")
        assert "Ürün: Bandage" in prompts[0].message
        assert stock_of(gateway, item["id"]) == 3


def test_full_scenario(ledger, gateway, item):
    """Purchase, rejected oversell, sale, then undo of the sale."""
    assert ledger.apply_movement(item["id"], 10, MovementType.PURCHASE, current_stock=0).new_stock == 10
    assert len(movements_for(gateway, item["id"])) == 1

    with pytest.raises(InsufficientStock):
        ledger.apply_movement(item["id"], 12, MovementType.SALE, current_stock=10)
    assert stock_of(gateway, item["id"]) == 10
    assert len(movements_for(gateway, item["id"])) == 1

    sale = ledger.apply_movement(item["id"], 4, MovementType.SALE, current_stock=10)
    assert sale.new_stock == 6
    assert len(movements_for(gateway, item["id"])) == 2

    undo = ledger.undo_movement(sale.movement["id"])
    assert undo.new_stock == 10

    rows = movements_for(gateway, item["id"])
    assert [(row["movement_type"], row["quantity"]) for row in rows] == [
        ("PURCHASE", 10),
        ("SALE", 4),
        ("PURCHASE", 4),
    ]
    assert rows[2]["reversal_of_id"] == rows[1]["id"]
