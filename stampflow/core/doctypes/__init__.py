# stampflow/core/doctypes/__init__.py

from .invoice import InvoiceSchema
from .payment_request import PaymentRequestSchema
from .purchase_order import PurchaseOrderSchema
from .shipment_order import ShipmentOrderSchema

__all__ = ["ShipmentOrderSchema", "PurchaseOrderSchema", "InvoiceSchema", "PaymentRequestSchema"]
