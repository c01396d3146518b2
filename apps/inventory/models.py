from django.db import models

from apps.catalog.models import Product


class StockMovement(models.Model):
    """
    Immutable ledger of every change to ``Product.stock``.
    """
    class MovementType(models.TextChoices):
        ORDER = "ORDER", "Outbound (Order)"
        ADJUSTMENT = "ADJUST", "Manual Adjustment"

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='stock_movements'
    )

    quantity_change = models.IntegerField(help_text="Applied delta (+/-)")
    movement_type = models.CharField(max_length=20, choices=MovementType.choices)

    # Traceability
    reference = models.CharField(max_length=100, db_index=True, help_text="Order ID or adjustment note")
    balance_after = models.IntegerField(help_text="Stock right after the change")
    performed_by = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.movement_type} {self.quantity_change:+d} -> {self.balance_after} ({self.reference})"
