"""Order domain constants.

Statuses, payment statuses and the actors allowed to drive transitions.
The transition rules themselves live in ``modules.orders.state_machine``.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Chờ xác nhận"
    PROCESSING = "processing", "Đang xử lý"
    SHIPPED = "shipped", "Đang giao"
    DELIVERED = "delivered", "Đã giao"
    CANCELLED = "cancelled", "Đã hủy"


class PaymentStatus(models.TextChoices):
    UNPAID = "unpaid", "Chưa thanh toán"
    PAID = "paid", "Đã thanh toán"
    FAILED = "failed", "Thanh toán thất bại"


class Actor(models.TextChoices):
    CUSTOMER = "customer", "Customer"
    ADMIN = "admin", "Admin"
    PAYMENT_GATEWAY = "payment_gateway", "Payment gateway"
    SYSTEM = "system", "System"


# Forward path position; cancelled sits outside the ladder.
STATUS_RANK: dict[str, int] = {
    OrderStatus.PENDING: 0,
    OrderStatus.PROCESSING: 1,
    OrderStatus.SHIPPED: 2,
    OrderStatus.DELIVERED: 3,
}

CANCELLABLE_STATES: frozenset[str] = frozenset(
    {OrderStatus.PENDING, OrderStatus.PROCESSING}
)

TERMINAL_STATES: frozenset[str] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED}
)

ORDER_NUMBER_MAX_RETRIES = 5
ORDER_NUMBER_DIGITS = 8

OUTBOX_TOPIC = "orders"
