"""Reconcile Shopify collections into local tables, one entity kind at a time."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storesync.errors import RecordMappingError, ShopifyConnectionError, StoreWriteError
from storesync.models import Customer, Order, Product, Tenant

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

Fetch = Callable[[str, str, str], Iterable[dict[str, Any]]]


@dataclass
class ReconcileResult:
    kind: str
    observed: int = 0
    upserted: int = 0
    failed: int = 0
    errors: list[dict[str, Optional[str]]] = field(default_factory=list)
    fetch_error: Optional[str] = None

    def as_counts(self) -> dict[str, Any]:
        return {
            "observed": self.observed,
            "upserted": self.upserted,
            "failed": self.failed,
            "fetch_error": self.fetch_error,
        }


def _external_id(raw: Any, kind: str) -> str:
    if not isinstance(raw, dict):
        raise RecordMappingError(kind, None, f"expected an object, got {type(raw).__name__}")
    value = raw.get("id")
    if value is None or value == "":
        raise RecordMappingError(kind, None, "missing id")
    return str(value)


def _decimal(raw: dict[str, Any], key: str, kind: str, external_id: str) -> Decimal:
    """Parse a money value from its string form; absent means zero."""
    value = raw.get(key)
    if value is None or value == "":
        return Decimal("0.00")
    if isinstance(value, bool):
        raise RecordMappingError(kind, external_id, f"{key} is not a number: {value!r}")
    try:
        parsed = Decimal(str(value))
        if not parsed.is_finite():
            raise InvalidOperation
        return parsed.quantize(CENT)
    except InvalidOperation:
        raise RecordMappingError(kind, external_id, f"{key} is not a number: {value!r}")


def _int(value: Any, key: str, kind: str, external_id: str) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, float) and not value.is_integer():
        raise RecordMappingError(kind, external_id, f"{key} is not an integer: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RecordMappingError(kind, external_id, f"{key} is not an integer: {value!r}")


def _timestamp(raw: dict[str, Any], key: str, kind: str, external_id: str) -> Optional[datetime]:
    value = raw.get(key)
    if not value:
        return None
    try:
        # Shopify sends ISO 8601 with offset, e.g. 2024-01-15T10:00:00-05:00
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise RecordMappingError(kind, external_id, f"{key} is not a timestamp: {value!r}")


def _text(raw: dict[str, Any], key: str) -> str:
    return str(raw.get(key) or "")


def map_customer(raw: Any) -> tuple[str, dict[str, Any]]:
    """Map a Shopify customer to (external_id, column values)."""
    ext_id = _external_id(raw, "customer")
    return ext_id, {
        "first_name": _text(raw, "first_name"),
        "last_name": _text(raw, "last_name"),
        "email": _text(raw, "email"),
        "total_spent": _decimal(raw, "total_spent", "customer", ext_id),
        "orders_count": _int(raw.get("orders_count"), "orders_count", "customer", ext_id),
        "source_created_at": _timestamp(raw, "created_at", "customer", ext_id),
    }


def map_product(raw: Any) -> tuple[str, dict[str, Any]]:
    """Map a Shopify product; price and stock come from the first variant."""
    ext_id = _external_id(raw, "product")
    variants = raw.get("variants") or []
    if not isinstance(variants, list):
        raise RecordMappingError("product", ext_id, "variants is not a list")
    first = variants[0] if variants else {}
    if not isinstance(first, dict):
        raise RecordMappingError("product", ext_id, "variant is not an object")
    return ext_id, {
        "title": _text(raw, "title"),
        "vendor": _text(raw, "vendor"),
        "product_type": _text(raw, "product_type"),
        "price": _decimal(first, "price", "product", ext_id),
        "inventory_quantity": _int(first.get("inventory_quantity"), "inventory_quantity", "product", ext_id),
        "source_created_at": _timestamp(raw, "created_at", "product", ext_id),
    }


def map_order(raw: Any) -> tuple[str, dict[str, Any]]:
    """Map a Shopify order. The customer reference is kept as an opaque string."""
    ext_id = _external_id(raw, "order")
    customer = raw.get("customer") or {}
    customer_id = customer.get("id") if isinstance(customer, dict) else None
    return ext_id, {
        "customer_external_id": str(customer_id) if customer_id is not None else None,
        "total_price": _decimal(raw, "total_price", "order", ext_id),
        "currency": raw.get("currency") or "USD",
        "order_status": raw.get("financial_status") or "pending",
        "source_created_at": _timestamp(raw, "created_at", "order", ext_id),
    }


@dataclass(frozen=True)
class EntityKind:
    name: str  # singular, used in logs and errors
    collection: str  # Shopify collection / endpoint name
    model: type
    mapper: Callable[[Any], tuple[str, dict[str, Any]]]


ENTITY_KINDS = {
    "customers": EntityKind("customer", "customers", Customer, map_customer),
    "products": EntityKind("product", "products", Product, map_product),
    "orders": EntityKind("order", "orders", Order, map_order),
}

# Fixed order: customers land before the orders that reference them
SYNC_ORDER = ("customers", "products", "orders")


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Upsert not supported for dialect {dialect}")


def upsert_entity(db: Session, model: type, tenant_id: int, external_id: str, fields: dict[str, Any]) -> None:
    """
    Insert or fully overwrite one row keyed on (tenant_id, external_id).

    Single INSERT ... ON CONFLICT DO UPDATE statement, so there is no
    read-then-write window. created_at is never touched on update.
    """
    now = datetime.now(timezone.utc)
    values = dict(fields)
    values.update(updated_at=now, last_synced_at=now)
    insert = _insert_for(db)
    stmt = insert(model).values(tenant_id=tenant_id, external_id=external_id, **values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["tenant_id", "external_id"],
        set_={column: stmt.excluded[column] for column in values},
    )
    db.execute(stmt)


def reconcile_kind(db: Session, tenant: Tenant, collection: str, fetch: Fetch) -> ReconcileResult:
    """
    Fetch one collection for a tenant and upsert every record.

    Mapping and write failures are logged per record and skipped. A connection
    failure while fetching ends this collection only. Anything else propagates.
    """
    kind = ENTITY_KINDS[collection]
    result = ReconcileResult(kind=collection)
    # Read once: each per-record commit expires the tenant instance
    tenant_id, shop_domain, access_token = tenant.id, tenant.shop_domain, tenant.access_token
    logger.info("Reconciling %s for tenant %s (%s)", collection, tenant_id, shop_domain)

    try:
        for raw in fetch(shop_domain, access_token, collection):
            result.observed += 1
            try:
                external_id, fields = kind.mapper(raw)
            except RecordMappingError as e:
                result.failed += 1
                result.errors.append({"external_id": e.external_id, "error": str(e)})
                logger.warning("Skipping %s for tenant %s: %s", kind.name, tenant_id, e)
                continue

            try:
                _write(db, kind, tenant_id, external_id, fields)
            except StoreWriteError as e:
                result.failed += 1
                result.errors.append({"external_id": external_id, "error": str(e)})
                logger.error("Upsert failed for tenant %s: %s", tenant_id, e)
                continue
            result.upserted += 1
    except ShopifyConnectionError as e:
        result.fetch_error = e.detail
        logger.error(
            "Fetching %s failed for tenant %s after %d records: %s",
            collection, tenant_id, result.observed, e.detail,
        )

    logger.info(
        "Reconciled %s for tenant %s: %d observed, %d upserted, %d failed",
        collection, tenant_id, result.observed, result.upserted, result.failed,
    )
    return result


def _write(db: Session, kind: EntityKind, tenant_id: int, external_id: str, fields: dict[str, Any]) -> None:
    """Upsert and commit one record; on store failure roll back only that record."""
    try:
        upsert_entity(db, kind.model, tenant_id, external_id, fields)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StoreWriteError(kind.name, external_id, str(e.__cause__ or e)) from e
