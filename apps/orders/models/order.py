from django.db import models

from apps.utils.models import TimestampedModel

__all__ = ["Order"]


class Order(TimestampedModel):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    # Statuses that still need the ordered products to exist.
    ACTIVE_STATUSES = (Status.PENDING, Status.PROCESSING, Status.SHIPPED)

    # Customer identity as typed at checkout (guest checkout is allowed)
    customer_name = models.CharField(max_length=255)
    customer_email = models.EmailField(db_index=True)
    customer_phone = models.CharField(max_length=32, blank=True, default="")
    shipping_address = models.TextField()

    total_price = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING, db_index=True)
    admin_notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.id} [{self.status}]"

    @property
    def items_total(self):
        return sum((item.subtotal for item in self.items.all()), 0)
