"""
Django management command to load the dairy product catalog.

Usage:
    python manage.py seed_products
    python manage.py seed_products --clear      # Delete existing products first
    python manage.py seed_products --stock 50   # Opening stock for new products
"""

from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.db.models import ProtectedError

from store.models import Product, StockTransaction
from store.services import InventoryService


class Command(BaseCommand):
    help = 'Load the dairy product catalog (yogurts, drinks, ice cream, desserts, curd)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete all existing products before loading',
        )
        parser.add_argument(
            '--stock',
            type=int,
            default=0,
            help='Opening stock for newly created products',
        )

    def handle(self, *args, **options):
        # Columns: id, name, category, retail price, wholesale price, SKU
        products_data = [
            {'id': 'prod001', 'name': 'Set Yogurt 80g', 'category': 'Yogurt', 'price': '1.50', 'wholesale': '1.30', 'sku': 'YOG-080'},
            {'id': 'prod002', 'name': 'Drinking Yogurt Strawberry 180ml', 'category': 'Yogurt', 'price': '2.20', 'wholesale': '1.95', 'sku': 'YOG-D180S'},
            {'id': 'prod003', 'name': 'Fresh Milk 1L', 'category': 'Drink', 'price': '3.40', 'wholesale': '3.05', 'sku': 'MLK-1000'},
            {'id': 'prod004', 'name': 'Chocolate Milk 200ml', 'category': 'Drink', 'price': '2.50', 'wholesale': '2.20', 'sku': 'MLK-C200'},
            {'id': 'prod005', 'name': 'Vanilla Ice Cream 1L', 'category': 'Ice Cream', 'price': '6.80', 'wholesale': '6.10', 'sku': 'ICE-V1000'},
            {'id': 'prod006', 'name': 'Ice Cream Cup 100ml', 'category': 'Ice Cream', 'price': '1.20', 'wholesale': '1.00', 'sku': 'ICE-C100'},
            {'id': 'prod007', 'name': 'Watalappan Cup', 'category': 'Dessert', 'price': '1.80', 'wholesale': '1.55', 'sku': 'DES-WAT'},
            {'id': 'prod008', 'name': 'Jelly Pudding', 'category': 'Dessert', 'price': '1.60', 'wholesale': '1.40', 'sku': 'DES-JEL'},
            {'id': 'prod009', 'name': 'Buffalo Curd 1L Clay Pot', 'category': 'Curd', 'price': '5.50', 'wholesale': '4.90', 'sku': 'CRD-1000'},
            {'id': 'prod010', 'name': 'Buffalo Curd 400ml Cup', 'category': 'Curd', 'price': '2.75', 'wholesale': '2.45', 'sku': 'CRD-0400'},
        ]

        if options['clear']:
            deleted_count = Product.objects.count()
            try:
                Product.objects.all().delete()
            except ProtectedError:
                raise CommandError('Products are referenced by sales or stock history and cannot be cleared')
            self.stdout.write(
                self.style.WARNING(f'Deleted {deleted_count} existing products')
            )

        created_count = 0
        updated_count = 0
        total = len(products_data)

        with transaction.atomic():
            for idx, data in enumerate(products_data, start=1):
                price = Decimal(data['price'])
                product, created = Product.objects.update_or_create(
                    id=data['id'],
                    defaults={
                        'name': data['name'],
                        'category': data['category'],
                        'price': price,
                        'wholesale_price': Decimal(data['wholesale']),
                        'sku': data['sku'],
                    }
                )

                if created:
                    if options['stock']:
                        InventoryService.record_stock_transaction(
                            product.id,
                            StockTransaction.Type.ADD_STOCK_INVENTORY,
                            options['stock'],
                            user_id='seed',
                            notes='Opening stock',
                        )
                    created_count += 1
                    self.stdout.write(
                        self.style.SUCCESS(f'[{idx}/{total}] Created: {product.id} - {product.name} ({price})')
                    )
                else:
                    updated_count += 1
                    self.stdout.write(
                        self.style.WARNING(f'[{idx}/{total}] Updated: {product.id} - {product.name} ({price})')
                    )

        self.stdout.write(self.style.SUCCESS('\n' + '=' * 60))
        self.stdout.write(self.style.SUCCESS('SEED SUMMARY'))
        self.stdout.write(self.style.SUCCESS('=' * 60))
        self.stdout.write(self.style.SUCCESS(f'Created: {created_count}'))
        self.stdout.write(self.style.WARNING(f'Updated: {updated_count}'))
        self.stdout.write(self.style.SUCCESS(f'Total Products: {Product.objects.count()}'))
