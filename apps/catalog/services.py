import logging
import random
from typing import List

from django.apps import apps
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction

from apps.utils.exceptions import BusinessLogicException, NotFoundException
from .models import Product, ProductCategory

logger = logging.getLogger(__name__)


class RelatedProductService:
    """
    Best-effort "you may also like" list: products sharing a category with
    the source, ranked by title keyword overlap with a random tiebreak.
    No relevance guarantee beyond "at most ``limit`` products, never the
    source itself".
    """
    DEFAULT_LIMIT = 4
    KEYWORD_MIN_LENGTH = 4
    KEYWORD_WEIGHT = 2
    POOL_FACTOR = 5

    @classmethod
    def parse_limit(cls, raw) -> int:
        try:
            limit = int(raw)
        except (TypeError, ValueError):
            return cls.DEFAULT_LIMIT
        if limit <= 0:
            return cls.DEFAULT_LIMIT
        return min(limit, settings.RELATED_PRODUCTS_MAX_LIMIT)

    @classmethod
    def title_keywords(cls, title: str) -> List[str]:
        return [w.lower() for w in title.split() if len(w) >= cls.KEYWORD_MIN_LENGTH]

    @classmethod
    def score(cls, title: str, keywords: List[str]) -> int:
        lowered = title.lower()
        return sum(cls.KEYWORD_WEIGHT for word in keywords if word in lowered)

    @classmethod
    def related_products(cls, product_id, limit: int = DEFAULT_LIMIT, rng=None) -> List[Product]:
        rng = rng or random
        try:
            source = Product.objects.prefetch_related("categories").filter(pk=product_id).first()
        except (ValidationError, ValueError):
            source = None
        if source is None:
            raise NotFoundException("Product not found")

        others = Product.objects.with_catalog_fields().exclude(pk=source.pk)
        pool_size = limit * cls.POOL_FACTOR

        category_ids = [c.pk for c in source.categories.all()]
        candidates = []
        if category_ids:
            neighbour_ids = ProductCategory.objects.filter(
                category_id__in=category_ids
            ).values("product_id")
            candidates = list(others.filter(pk__in=neighbour_ids).order_by("?")[:pool_size])

        if not candidates:
            # No category neighbours: fall back to a random slice of the catalog.
            candidates = list(others.order_by("?")[:pool_size])

        keywords = cls.title_keywords(source.title)
        ranked = sorted(
            candidates,
            key=lambda p: cls.score(p.title, keywords) + rng.random(),
            reverse=True,
        )
        return ranked[:limit]


class ProductService:

    @staticmethod
    def is_referenced_by_active_order(product) -> bool:
        Order = apps.get_model("orders", "Order")
        OrderItem = apps.get_model("orders", "OrderItem")
        return OrderItem.objects.filter(
            product=product,
            order__status__in=Order.ACTIVE_STATUSES,
        ).exists()

    @staticmethod
    @transaction.atomic
    def delete_product(product):
        """
        Refuses while any pending/processing/shipped order still references
        the product. Items of delivered or cancelled orders keep their
        title/price snapshot and lose the product link.
        """
        product = Product.objects.select_for_update().get(pk=product.pk)
        if ProductService.is_referenced_by_active_order(product):
            raise BusinessLogicException(
                "Cannot delete product: It is part of an active order (Pending, Processing, "
                "or Shipped). Please complete or cancel those orders first.",
                code="product_in_active_order",
            )
        logger.info("Deleting product %s (%s)", product.pk, product.title, extra={"product_id": str(product.pk)})
        product.delete()
