from decimal import Decimal

import pytest

from stockledger.exceptions import ConflictError, NotFoundError, ValidationError
from stockledger.models.audit_log import AuditAction, AuditLog
from stockledger.models.mixins import HardDeleteForbidden
from stockledger.models.product import Product
from stockledger.services import mutation_service


def _audits(db, entity_id=None):
    q = db.query(AuditLog)
    if entity_id:
        q = q.filter(AuditLog.entity_id == entity_id)
    return q.order_by(AuditLog.id).all()


def test_create_product_writes_one_create_audit(db_session):
    product = mutation_service.create(
        db_session,
        "Product",
        {"sku": "SKU-1", "name": "Steel Rod", "unit_price": "45.50"},
        actor_id="user-1",
        ip_address="10.0.0.1",
    )

    assert product.id
    assert product.unit_price == Decimal("45.50")
    assert product.min_stock_level == 10
    assert product.max_stock_level == 1000
    assert product.reorder_point == 50
    assert product.is_active is True

    logs = _audits(db_session)
    assert len(logs) == 1
    log = logs[0]
    assert log.entity == "Product"
    assert log.entity_id == product.id
    assert log.action == AuditAction.CREATE
    assert log.before is None
    assert log.after["sku"] == "SKU-1"
    assert log.after["entity_type"] == "Product"
    assert log.user_id == "user-1"
    assert log.ip_address == "10.0.0.1"


def test_duplicate_sku_is_conflict(db_session, make_product):
    make_product("SKU-1")

    with pytest.raises(ConflictError) as exc:
        mutation_service.create(db_session, "Product", {"sku": "SKU-1", "name": "Other"}, actor_id="u")

    assert exc.value.status_code == 409
    assert db_session.query(Product).count() == 1
    assert len(_audits(db_session)) == 1


def test_soft_deleted_sku_is_not_reusable(db_session, make_product):
    product = make_product("SKU-1")
    mutation_service.soft_delete(db_session, "Product", product.id, actor_id="u")

    with pytest.raises(ConflictError):
        mutation_service.create(db_session, "Product", {"sku": "SKU-1", "name": "Again"}, actor_id="u")


def test_store_integrity_error_surfaces_as_conflict(db_session, make_product, monkeypatch):
    make_product("SKU-1")
    # Simulate a concurrent writer slipping past the pre-check.
    monkeypatch.setattr(mutation_service, "_unique_clash", lambda *args, **kwargs: None)

    with pytest.raises(ConflictError) as exc:
        mutation_service.create(db_session, "Product", {"sku": "SKU-1", "name": "Racer"}, actor_id="u")

    assert exc.value.code == "CON002"
    assert db_session.query(Product).count() == 1


def test_create_rejects_invalid_input(db_session):
    with pytest.raises(ValidationError):
        mutation_service.create(db_session, "Product", {"sku": "SKU-1", "name": "X", "min_stock_level": -1})
    with pytest.raises(ValidationError):
        mutation_service.create(db_session, "Product", {"name": "No sku"})
    with pytest.raises(ValidationError):
        mutation_service.create(db_session, "Product", {"sku": "SKU-2", "name": "X", "deleted_at": None})
    with pytest.raises(ValidationError):
        mutation_service.create(db_session, "Widget", {"sku": "SKU-3"})

    assert db_session.query(Product).count() == 0
    assert _audits(db_session) == []


def test_create_product_requires_live_category(db_session):
    with pytest.raises(ValidationError):
        mutation_service.create(db_session, "Product", {"sku": "SKU-1", "name": "X", "category_id": "missing"})

    category = mutation_service.create(db_session, "Category", {"name": "Steel Rods"}, actor_id="u")
    product = mutation_service.create(
        db_session, "Product", {"sku": "SKU-1", "name": "X", "category_id": category.id}, actor_id="u"
    )
    assert product.category.name == "Steel Rods"


def test_soft_deleting_category_keeps_products(db_session):
    category = mutation_service.create(db_session, "Category", {"name": "Fasteners"}, actor_id="u")
    product = mutation_service.create(
        db_session, "Product", {"sku": "NUT-1", "name": "Nut", "category_id": category.id}, actor_id="u"
    )

    mutation_service.soft_delete(db_session, "Category", category.id, actor_id="u")

    db_session.refresh(product)
    assert product.deleted_at is None
    assert product.category_id == category.id


def test_update_records_before_and_after(db_session, make_product):
    product = make_product("SKU-1", name="Old name")

    updated = mutation_service.update(db_session, "Product", product.id, {"name": "New name"}, actor_id="u2")

    assert updated.name == "New name"
    log = _audits(db_session, product.id)[-1]
    assert log.action == AuditAction.UPDATE
    assert log.before["name"] == "Old name"
    assert log.after["name"] == "New name"
    assert log.user_id == "u2"


def test_update_unique_field_checks_other_rows(db_session, make_product):
    make_product("SKU-1")
    second = make_product("SKU-2")

    with pytest.raises(ConflictError):
        mutation_service.update(db_session, "Product", second.id, {"sku": "SKU-1"}, actor_id="u")

    # Re-sending the current value is not a conflict with itself.
    mutation_service.update(db_session, "Product", second.id, {"sku": "SKU-2", "name": "Same"}, actor_id="u")
    assert second.name == "Same"


def test_update_rejects_null_for_required_fields(db_session, make_product):
    product = make_product("SKU-1")

    with pytest.raises(ValidationError):
        mutation_service.update(db_session, "Product", product.id, {"name": None}, actor_id="u")
    with pytest.raises(ValidationError):
        mutation_service.update(db_session, "Product", product.id, {"quantity": 5}, actor_id="u")

    # category_id is nullable, so clearing it is allowed
    mutation_service.update(db_session, "Product", product.id, {"category_id": None}, actor_id="u")


def test_update_missing_entity_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        mutation_service.update(db_session, "Product", "nope", {"name": "x"}, actor_id="u")
    assert _audits(db_session) == []


def test_soft_delete_twice_audits_once(db_session, make_product):
    product = make_product("SKU-1")

    deleted = mutation_service.soft_delete(db_session, "Product", product.id, actor_id="u", ip_address="1.2.3.4")
    assert deleted.deleted_at is not None

    with pytest.raises(NotFoundError):
        mutation_service.soft_delete(db_session, "Product", product.id, actor_id="u")

    deletes = [log for log in _audits(db_session, product.id) if log.action == AuditAction.DELETE]
    assert len(deletes) == 1
    assert deletes[0].after is None
    assert deletes[0].before["sku"] == "SKU-1"
    assert deletes[0].before["deleted_at"] is None


def test_soft_deleted_entity_cannot_be_updated(db_session, make_product):
    product = make_product("SKU-1")
    mutation_service.soft_delete(db_session, "Product", product.id, actor_id="u")

    with pytest.raises(NotFoundError):
        mutation_service.update(db_session, "Product", product.id, {"name": "ghost"}, actor_id="u")


def test_hard_delete_is_refused(db_session, make_product):
    product = make_product("SKU-1")

    db_session.delete(product)
    with pytest.raises(HardDeleteForbidden):
        db_session.flush()
    db_session.rollback()

    assert db_session.query(Product).count() == 1


def test_bulk_create_skips_existing_and_repeated_keys(db_session, make_product):
    make_product("SKU-1")

    result = mutation_service.bulk_create(
        db_session,
        "Product",
        [
            {"sku": "SKU-1", "name": "exists already"},
            {"sku": "SKU-2", "name": "new"},
            {"sku": "SKU-2", "name": "repeated in batch"},
            {"sku": "SKU-3", "name": "new too"},
        ],
        actor_id="bulk-user",
    )

    assert result["created"] == 2
    assert sorted(p.sku for p in result["items"]) == ["SKU-2", "SKU-3"]
    assert db_session.query(Product).count() == 3
    creates = [log for log in _audits(db_session) if log.user_id == "bulk-user"]
    assert len(creates) == 2
    assert all(log.action == AuditAction.CREATE for log in creates)


def test_bulk_create_rejects_batch_with_invalid_item(db_session):
    with pytest.raises(ValidationError) as exc:
        mutation_service.bulk_create(
            db_session,
            "Product",
            [{"sku": "SKU-1", "name": "fine"}, {"sku": "SKU-2", "name": "bad", "unit_price": -3}],
            actor_id="u",
        )

    assert "1" in exc.value.details["items"]
    assert db_session.query(Product).count() == 0


def test_location_code_and_name_are_unique(db_session, make_location):
    make_location("MAIN-STORE", name="Main Store")

    with pytest.raises(ConflictError):
        mutation_service.create(db_session, "Location", {"code": "MAIN-STORE", "name": "Other"}, actor_id="u")
    with pytest.raises(ConflictError):
        mutation_service.create(db_session, "Location", {"code": "OTHER", "name": "Main Store"}, actor_id="u")


def test_supplier_lifecycle_is_audited(db_session):
    supplier = mutation_service.create(
        db_session, "Supplier", {"name": "Tata Steel", "email": "sales@tatasteel.com"}, actor_id="u"
    )
    mutation_service.update(db_session, "Supplier", supplier.id, {"phone": "+91-22-6665-8282"}, actor_id="u")
    mutation_service.soft_delete(db_session, "Supplier", supplier.id, actor_id="u")

    actions = [log.action for log in _audits(db_session, supplier.id)]
    assert actions == [AuditAction.CREATE, AuditAction.UPDATE, AuditAction.DELETE]


def test_blank_category_id_is_invalid_not_conflict(db_session):
    with pytest.raises(ValidationError):
        mutation_service.create(db_session, "Product", {"sku": "SKU-1", "name": "X", "category_id": ""}, actor_id="u")

    with pytest.raises(ValidationError):
        mutation_service.bulk_create(
            db_session,
            "Product",
            [{"sku": "SKU-2", "name": "fine"}, {"sku": "SKU-3", "name": "blank", "category_id": ""}],
            actor_id="u",
        )

    assert db_session.query(Product).count() == 0
    assert _audits(db_session) == []


def test_update_with_blank_category_id_is_invalid(db_session, make_product):
    product = make_product("SKU-1")

    with pytest.raises(ValidationError):
        mutation_service.update(db_session, "Product", product.id, {"category_id": ""}, actor_id="u")
