import pytest

from stockledger.exceptions import NotFoundError, ValidationError
from stockledger.models.audit_log import AuditAction, AuditLog, AuditLogImmutable
from stockledger.models.product import Product
from stockledger.schemas.audit import AuditLogOut, ProductLocationSnapshot, ProductSnapshot, snapshot_adapter
from stockledger.services import audit_service, mutation_service, stock_ledger


def test_snapshot_is_tagged_and_json_safe(db_session, make_product):
    product = make_product("SR-100-MM", unit_price="45.50")

    image = audit_service.snapshot(product)

    assert image["entity_type"] == "Product"
    assert image["unit_price"] == "45.50"
    assert isinstance(image["created_at"], str)
    assert isinstance(snapshot_adapter.validate_python(image), ProductSnapshot)


def test_stored_images_parse_back_into_their_type(db_session, make_product, make_location):
    product = make_product("SR-100-MM")
    store = make_location("MAIN-STORE")
    stock_ledger.set_quantity(db_session, product.id, store.id, 9)

    logs = audit_service.list_logs(db_session, filters={"entity": "ProductLocation"})["items"]
    out = AuditLogOut.model_validate(logs[0])
    assert isinstance(out.after, ProductLocationSnapshot)
    assert out.after.quantity == 9
    assert out.before is None


def test_failed_audit_write_does_not_undo_the_change(db_session, monkeypatch):
    monkeypatch.setattr(audit_service, "AuditLog", lambda **kw: AuditLog(**{**kw, "entity": None}))

    product = mutation_service.create(db_session, "Product", {"sku": "SKU-1", "name": "Rod"}, actor_id="u")

    warnings = audit_service.pop_warnings(db_session)
    assert len(warnings) == 1
    assert "CREATE Product" in warnings[0]
    assert audit_service.pop_warnings(db_session) == []

    db_session.expire_all()
    assert db_session.query(Product).filter(Product.id == product.id).count() == 1
    assert db_session.query(AuditLog).count() == 0


def test_audit_rows_are_write_once(db_session, make_product):
    make_product("SKU-1")
    log = db_session.query(AuditLog).one()

    log.user_id = "someone-else"
    with pytest.raises(AuditLogImmutable):
        db_session.flush()
    db_session.rollback()

    db_session.delete(db_session.query(AuditLog).one())
    with pytest.raises(AuditLogImmutable):
        db_session.flush()
    db_session.rollback()

    assert db_session.query(AuditLog).one().user_id == "tester"


def test_missing_actor_is_recorded_as_system(db_session):
    mutation_service.create(db_session, "Category", {"name": "Rods"})
    assert db_session.query(AuditLog).one().user_id == "system"


def test_list_logs_filters(db_session, make_product):
    product = make_product("SKU-1")
    mutation_service.update(db_session, "Product", product.id, {"name": "Renamed"}, actor_id="editor")
    mutation_service.create(db_session, "Category", {"name": "Rods"}, actor_id="editor")

    assert audit_service.list_logs(db_session)["total"] == 3
    assert audit_service.list_logs(db_session, filters={"entity": "Product"})["total"] == 2
    assert audit_service.list_logs(db_session, filters={"action": "update"})["total"] == 1
    assert audit_service.list_logs(db_session, filters={"user_id": "editor"})["total"] == 2

    newest_first = audit_service.list_logs(db_session)["items"]
    assert newest_first[0].entity == "Category"

    with pytest.raises(ValidationError):
        audit_service.list_logs(db_session, filters={"action": "PURGE"})


def test_history_for_one_entity(db_session, make_product):
    product = make_product("SKU-1")
    other = make_product("SKU-2")
    mutation_service.update(db_session, "Product", product.id, {"reorder_point": 75}, actor_id="u")
    mutation_service.soft_delete(db_session, "Product", product.id, actor_id="u")

    history = audit_service.list_for_entity(db_session, "Product", product.id)
    assert [log.action for log in history["items"]] == [AuditAction.DELETE, AuditAction.UPDATE, AuditAction.CREATE]
    assert all(log.entity_id != other.id for log in history["items"])


def test_changed_fields_reports_only_edits(db_session, make_product):
    product = make_product("SKU-1", reorder_point=50)
    mutation_service.update(db_session, "Product", product.id, {"reorder_point": 75, "name": "Rod"}, actor_id="u")
    log = audit_service.list_logs(db_session, filters={"action": "UPDATE"})["items"][0]

    assert audit_service.changed_fields(log) == {
        "name": {"before": "Product SKU-1", "after": "Rod"},
        "reorder_point": {"before": 50, "after": 75},
    }


def test_get_log_missing_is_not_found(db_session):
    with pytest.raises(NotFoundError):
        audit_service.get_log(db_session, 999)
