"""SQLAlchemy models."""
from storesync.models.tenant import Tenant
from storesync.models.customer import Customer
from storesync.models.order import Order
from storesync.models.product import Product
from storesync.models.sync_run import SyncRun

__all__ = [
    "Tenant",
    "Customer",
    "Order",
    "Product",
    "SyncRun",
]
