"""
tests/test_record_store.py -- Unit tests for records.store.RecordStore.

Each test gets its own SQLite file under tmp_path, so no state leaks between
tests.
"""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from records.store import RecordKind, RecordStore, to_columns


@pytest.fixture
def store(tmp_path):
    s = RecordStore(f"sqlite:///{tmp_path / 'records.db'}")
    yield s
    s.close()


def _user(username: str = "simon", email: str = "simon@kgl.ug") -> dict:
    return {"username": username, "email": email, "password_hash": "$2b$04$x", "role": "Manager"}


def _cash_sale(**overrides) -> dict:
    return {
        "sale_type": "Cash",
        "produce_name": "Beans",
        "tonnage": 20,
        "amount_paid": 50000,
        "buyer_name": "Grace",
        "sales_agent_name": "Amina",
        "sales_agent_id": 2,
        "date": "2026-02-03",
        "time": "14:30",
        **overrides,
    }


def test_to_columns_maps_camel_case():
    assert to_columns({"produceName": "Maize", "dueDate": "2026-01-01", "nin": "1"}) == {
        "produce_name": "Maize",
        "due_date": "2026-01-01",
        "nin": "1",
    }


class TestCreate:
    def test_assigns_id_and_timestamps(self, store):
        record = store.create(RecordKind.USER, _user())
        assert record["id"] == 1
        assert record["created_at"] == record["updated_at"]
        assert record["contact"] is None

    def test_duplicate_username_raises_integrity_error(self, store):
        store.create(RecordKind.USER, _user())
        with pytest.raises(IntegrityError):
            store.create(RecordKind.USER, _user(email="other@kgl.ug"))

    def test_duplicate_email_raises_integrity_error(self, store):
        store.create(RecordKind.USER, _user())
        with pytest.raises(IntegrityError):
            store.create(RecordKind.USER, _user(username="other"))

    def test_unknown_column_rejected(self, store):
        with pytest.raises(ValueError, match="Unknown sales columns"):
            store.create(RecordKind.SALE, _cash_sale(discount=5))


class TestRead:
    def test_find_by_id_missing_returns_none(self, store):
        assert store.find_by_id(RecordKind.PROCUREMENT, 99) is None

    def test_find_all_filters_exact_match(self, store):
        store.create(RecordKind.SALE, _cash_sale())
        store.create(RecordKind.SALE, _cash_sale(sale_type="Credit", amount_paid=None, amount_due=90000))
        store.create(RecordKind.SALE, _cash_sale(buyer_name="Okello"))

        cash = store.find_all(RecordKind.SALE, {"sale_type": "Cash"})
        assert [r["buyer_name"] for r in cash] == ["Grace", "Okello"]
        assert len(store.find_all(RecordKind.SALE)) == 3

    def test_find_all_unknown_filter_rejected(self, store):
        with pytest.raises(ValueError):
            store.find_all(RecordKind.SALE, {"kind": "Cash"})

    def test_has_records(self, store):
        assert store.has_records(RecordKind.USER) is False
        store.create(RecordKind.USER, _user())
        assert store.has_records(RecordKind.USER) is True


class TestUpdateDelete:
    def test_update_applies_fields(self, store):
        record = store.create(RecordKind.SALE, _cash_sale())
        updated = store.update(RecordKind.SALE, record["id"], {"tonnage": 35})
        assert updated["tonnage"] == 35
        assert updated["buyer_name"] == "Grace"
        assert updated["created_at"] == record["created_at"]

    def test_update_missing_returns_none(self, store):
        assert store.update(RecordKind.SALE, 42, {"tonnage": 35}) is None

    def test_update_rejects_immutable_fields(self, store):
        record = store.create(RecordKind.USER, _user())
        with pytest.raises(ValueError, match="immutable"):
            store.update(RecordKind.USER, record["id"], {"id": 5})

    def test_delete_returns_deleted_record(self, store):
        record = store.create(RecordKind.USER, _user())
        deleted = store.delete(RecordKind.USER, record["id"])
        assert deleted["username"] == "simon"
        assert store.find_by_id(RecordKind.USER, record["id"]) is None

    def test_delete_missing_returns_none(self, store):
        assert store.delete(RecordKind.USER, 1) is None


def test_ping(store):
    assert store.ping() is True
