import logging
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from apps.inventory.services import StockService
from apps.utils.exceptions import BusinessLogicException, NotFoundException
from .models import Order, OrderItem

logger = logging.getLogger(__name__)


class OrderService:

    @staticmethod
    def ensure_store_open():
        if not settings.ORDERS_REQUIRE_ACTIVE_STORE:
            return
        from apps.site_settings.services import SiteSettingsService

        if not SiteSettingsService.current().is_ecommerce_active:
            raise BusinessLogicException(
                "The store is not accepting online orders right now.",
                code="store_closed",
            )

    @staticmethod
    def place_order(data: dict) -> Order:
        """
        Checkout in a single transaction:
        1. Lock the product rows (sorted by id) and check availability
        2. Insert the order and its item snapshots
        3. Conditionally decrement each product's stock

        Any failure rolls back every write, so an order never exists without
        its items and stock is never decremented for a rejected order.
        """
        OrderService.ensure_store_open()
        items = data["items"]

        with transaction.atomic():
            products = StockService.lock_and_validate(items)

            # Prices are taken from the locked rows, not from the payload.
            lines = []
            total = Decimal("0.00")
            for item in items:
                product = products[str(item["product_id"])]
                unit_price = product.effective_price
                if unit_price != item["price"]:
                    logger.warning(
                        "Submitted price %s for %s differs from catalog price %s",
                        item["price"], product.pk, unit_price,
                        extra={"product_id": str(product.pk)},
                    )
                total += unit_price * item["quantity"]
                lines.append((product, item["quantity"], unit_price))

            if total != data["total_price"]:
                logger.warning(
                    "Submitted total %s differs from computed total %s",
                    data["total_price"], total,
                )

            order = Order.objects.create(
                customer_name=data["customer_name"],
                customer_email=data["customer_email"],
                customer_phone=data.get("customer_phone") or "",
                shipping_address=data["shipping_address"],
                total_price=total,
                status=Order.Status.PENDING,
            )

            OrderItem.objects.bulk_create([
                OrderItem(
                    order=order,
                    product=product,
                    product_title=product.title,
                    price_at_purchase=unit_price,
                    quantity=quantity,
                )
                for product, quantity, unit_price in lines
            ])

            for pid, need in StockService.required_quantities(items).items():
                StockService.decrement(pid, need["quantity"], reference=str(order.pk))

        logger.info(
            "Order %s placed by %s (%d items, total %s)",
            order.pk, order.customer_email, len(lines), order.total_price,
            extra={"order_id": str(order.pk)},
        )
        return order

    @staticmethod
    @transaction.atomic
    def update_order(order_id, changes: dict) -> Order:
        """
        Admin edit of status and/or notes. Status transitions are not
        restricted and do not touch stock.
        """
        try:
            order = Order.objects.select_for_update().get(pk=order_id)
        except (Order.DoesNotExist, ValidationError, ValueError):
            raise NotFoundException("Order not found")

        fields = []
        if changes.get("status"):
            order.status = changes["status"]
            fields.append("status")
        if "admin_notes" in changes:
            order.admin_notes = changes["admin_notes"] or ""
            fields.append("admin_notes")

        if fields:
            order.save(update_fields=fields + ["updated_at"])
            logger.info(
                "Order %s updated (%s)", order.pk, ", ".join(fields),
                extra={"order_id": str(order.pk)},
            )
        return order
