"""Order ledger package."""

from .models import (
    Order,
    OrderConfirmation,
    OrderItemRequest,
    OrderLine,
    OrderStatus,
    PaymentMethod,
)
from .notifier import EmailOrderNotifier, OrderNotifier
from .service import OrderRepository, OrderService

__all__ = [
    "EmailOrderNotifier",
    "Order",
    "OrderConfirmation",
    "OrderItemRequest",
    "OrderLine",
    "OrderNotifier",
    "OrderRepository",
    "OrderService",
    "OrderStatus",
    "PaymentMethod",
]
