import logging
from collections import OrderedDict
from typing import Dict, List

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from apps.catalog.models import Product
from apps.utils.exceptions import (
    InsufficientStockException,
    NotFoundException,
    StockConflictException,
)
from .models import StockMovement

logger = logging.getLogger(__name__)


class StockService:
    """
    Core logic for product stock.
    ALL stock changes must pass through here.
    """

    @staticmethod
    def required_quantities(items: List[dict]) -> "OrderedDict[str, dict]":
        """
        Folds repeated lines for the same product into one requirement,
        sorted by product id so row locks are always taken in the same order.
        """
        required = {}
        for item in items:
            pid = str(item["product_id"])
            entry = required.setdefault(pid, {"quantity": 0, "title": item.get("title")})
            entry["quantity"] += item["quantity"]
        return OrderedDict(sorted(required.items()))

    @staticmethod
    @transaction.atomic
    def lock_and_validate(items: List[dict]) -> Dict[str, Product]:
        """
        Locks the product rows in deterministic order and checks that every
        requested quantity is available.
        """
        required = StockService.required_quantities(items)

        products = (
            Product.objects
            .select_for_update()
            .filter(pk__in=list(required.keys()))
            .order_by("pk")
        )
        product_map = {str(p.pk): p for p in products}

        for pid, need in required.items():
            product = product_map.get(pid)
            if product is None:
                raise NotFoundException(f"Product {need['title'] or 'Unknown'} not found")

            if product.stock < need["quantity"]:
                raise InsufficientStockException(
                    f"Insufficient stock for {product.title}. Available: {product.stock}"
                )

        return product_map

    @staticmethod
    def decrement(product_id, quantity: int, reference: str) -> int:
        """
        Atomic conditional decrement. Matches no row (and raises) when the
        current stock is below ``quantity``, so stock can never go negative.
        """
        updated = Product.objects.filter(pk=product_id, stock__gte=quantity).update(
            stock=F("stock") - quantity,
            updated_at=timezone.now(),
        )
        if not updated:
            logger.warning(
                "Stock decrement refused for %s (qty=%s, ref=%s)",
                product_id, quantity, reference,
                extra={"product_id": str(product_id)},
            )
            raise StockConflictException(
                "Stock ran out during checkout. Please review your cart and try again."
            )

        balance = Product.objects.filter(pk=product_id).values_list("stock", flat=True).get()
        StockMovement.objects.create(
            product_id=product_id,
            quantity_change=-quantity,
            movement_type=StockMovement.MovementType.ORDER,
            reference=reference,
            balance_after=balance,
        )
        return balance

    @staticmethod
    @transaction.atomic
    def adjust(product_id, delta: int, performed_by: str = "", reason: str = "admin adjustment") -> int:
        """
        Applies a signed delta clamped at zero, store-side.
        Returns the new stock level.
        """
        try:
            before = Product.objects.select_for_update().values_list("stock", flat=True).get(pk=product_id)
        except (Product.DoesNotExist, ValidationError, ValueError):
            raise NotFoundException("Product not found")

        Product.objects.filter(pk=product_id).update(
            stock=Greatest(F("stock") + delta, Value(0)),
            updated_at=timezone.now(),
        )
        balance = Product.objects.filter(pk=product_id).values_list("stock", flat=True).get()

        StockMovement.objects.create(
            product_id=product_id,
            quantity_change=balance - before,
            movement_type=StockMovement.MovementType.ADJUSTMENT,
            reference=reason[:100],
            balance_after=balance,
            performed_by=performed_by,
        )
        logger.info(
            "Stock adjusted for %s: %+d requested, %s -> %s",
            product_id, delta, before, balance,
            extra={"product_id": str(product_id)},
        )
        return balance
