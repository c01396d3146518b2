from django.core.exceptions import ValidationError
from django.db import models

from apps.catalog.models import Product
from .order import Order

__all__ = ["OrderItem"]


class OrderItem(models.Model):
    SNAPSHOT_FIELDS = ("price_at_purchase", "product_title")

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    # Reference only: the snapshot below survives product deletion.
    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='order_items',
    )

    # Snapshot fields (frozen at purchase time)
    product_title = models.CharField(max_length=255)
    price_at_purchase = models.DecimalField(max_digits=10, decimal_places=2)

    quantity = models.PositiveIntegerField()

    class Meta:
        db_table = "order_items"
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quantity__gt=0),
                name="order_item_quantity_positive",
            ),
        ]

    @classmethod
    def from_db(cls, db, field_names, values):
        instance = super().from_db(db, field_names, values)
        loaded = dict(zip(field_names, values))
        instance._loaded_snapshot = {f: loaded.get(f) for f in cls.SNAPSHOT_FIELDS if f in loaded}
        return instance

    def save(self, *args, **kwargs):
        snapshot = getattr(self, "_loaded_snapshot", None)
        if not self._state.adding and snapshot:
            changed = [f for f, v in snapshot.items() if getattr(self, f) != v]
            if changed:
                raise ValidationError(
                    f"Order item snapshot is immutable: {', '.join(changed)}"
                )
        super().save(*args, **kwargs)

    @property
    def subtotal(self):
        return self.price_at_purchase * self.quantity

    def __str__(self):
        return f"{self.quantity}x {self.product_title}"
