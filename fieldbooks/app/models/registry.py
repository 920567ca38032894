# Imports every mapped class so string-based relationship() targets resolve
# no matter which model module a caller imported first.

from fieldbooks.app.models.company import Company
from fieldbooks.app.models.customer import Customer, Lead
from fieldbooks.app.models.inventory import StockItem
from fieldbooks.app.models.invoice import Invoice, InvoiceStatus
from fieldbooks.app.models.staff import Staff
from fieldbooks.app.models.user import RoleEnum, User
from fieldbooks.app.models.work_order import (
    WorkOrder,
    WorkOrderStatus,
    WorkOrderStockUsage,
)

__all__ = [
    "Company",
    "Customer",
    "Lead",
    "StockItem",
    "Invoice",
    "InvoiceStatus",
    "Staff",
    "RoleEnum",
    "User",
    "WorkOrder",
    "WorkOrderStatus",
    "WorkOrderStockUsage",
]
