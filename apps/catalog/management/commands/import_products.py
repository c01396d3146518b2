import csv
import os

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils.text import slugify

from apps.catalog.models import Category, Product
from apps.catalog.serializers import ProductSerializer

TRUE_VALUES = {"1", "true", "yes", "y"}
TEXT_COLUMNS = ("description", "material", "origin", "manufacturer", "weight", "care_instructions")


class Command(BaseCommand):
    help = (
        "Import products from CSV. Columns: title, price, images, and optionally "
        "description, discount_price, stock, categories (images and categories "
        "are '|' separated), is_featured, is_new, material, origin, "
        "manufacturer, weight, care_instructions. Rows are matched on title, "
        "categories on their slug. Rows go through the same validation as the API."
    )

    def add_arguments(self, parser):
        parser.add_argument('file_path', type=str, help='Path to CSV file')
        parser.add_argument('--dry-run', action='store_true', help='Validate and roll back')

    def handle(self, *args, **kwargs):
        file_path = kwargs['file_path']
        if not os.path.exists(file_path):
            raise CommandError(f'File not found: {file_path}')

        created = updated = 0
        with open(file_path, 'r', encoding='utf-8-sig', newline='') as f:
            reader = csv.DictReader(f)
            with transaction.atomic():
                for line_no, row in enumerate(reader, start=2):
                    product, was_created = self._import_row(row, line_no)
                    if was_created:
                        created += 1
                    else:
                        updated += 1

                if kwargs['dry_run']:
                    transaction.set_rollback(True)

        suffix = ' (dry run, nothing saved)' if kwargs['dry_run'] else ''
        self.stdout.write(self.style.SUCCESS(
            f'Imported {created + updated} products: {created} created, {updated} updated{suffix}.'
        ))

    def _import_row(self, row, line_no):
        title = (row.get('title') or '').strip()
        payload = {
            'title': title,
            'price': (row.get('price') or '').strip(),
            'discount_price': (row.get('discount_price') or '').strip() or None,
            'stock': (row.get('stock') or '').strip() or 0,
            'images': self._split(row.get('images')),
            'is_featured': self._flag(row.get('is_featured')),
            'mark_as_new': self._flag(row.get('is_new')),
        }
        for column in TEXT_COLUMNS:
            payload[column] = (row.get(column) or '').strip()

        matches = list(Product.objects.filter(title=title)[:2])
        if len(matches) > 1:
            raise CommandError(f'Line {line_no}: title "{title}" matches more than one product')
        instance = matches[0] if matches else None

        serializer = ProductSerializer(instance, data=payload)
        if not serializer.is_valid():
            raise CommandError(f'Line {line_no}: {self._describe(serializer.errors)}')
        product = serializer.save()

        names = self._split(row.get('categories'))
        if names:
            product.categories.set([self._category(name, line_no) for name in names])

        return product, instance is None

    @staticmethod
    def _category(name, line_no):
        slug = slugify(name)
        if not slug:
            raise CommandError(f'Line {line_no}: category "{name}" has no usable slug')
        category = Category.objects.filter(slug=slug).first()
        if category is None:
            category = Category.objects.create(name=name, slug=slug)
        return category

    @staticmethod
    def _describe(errors):
        parts = []
        for field, messages in errors.items():
            if isinstance(messages, dict):
                messages = [str(m) for value in messages.values() for m in value]
            parts.append(f"{field}: {' '.join(str(m) for m in messages)}")
        return '; '.join(parts)

    @staticmethod
    def _flag(value):
        return (value or '').strip().lower() in TRUE_VALUES

    @staticmethod
    def _split(value):
        return [part.strip() for part in (value or '').split('|') if part.strip()]
