"""
Shared setup for store tests.
"""
from decimal import Decimal

from store.models import Customer, Product, Vehicle
from store.services import SaleService


class StoreFixturesMixin:
    """Two catalog products, a customer and a delivery vehicle."""

    def setUp(self):
        self.yogurt = Product.objects.create(
            id='prod001',
            name='Set Yogurt 80g',
            category=Product.Category.YOGURT,
            price=Decimal('1.50'),
            wholesale_price=Decimal('1.30'),
            stock=10,
            sku='YOG-080',
        )
        self.choc_milk = Product.objects.create(
            id='prod004',
            name='Chocolate Milk 200ml',
            category=Product.Category.DRINK,
            price=Decimal('2.50'),
            wholesale_price=Decimal('2.20'),
            stock=10,
            sku='MLK-C200',
        )
        self.customer = Customer.objects.create(
            name='Kamal Silva',
            shop_name='Silva Stores',
            phone='0771234567',
        )
        self.vehicle = Vehicle.objects.create(
            vehicle_number='WP-CAB-1234',
            driver_name='Sunil',
        )

    def make_sale(self, quantity=2, paid_cash=None, vehicle=None, customer=True, product_id='prod001', **kwargs):
        """Check out `quantity` units of one product; pays in full by default."""
        if paid_cash is None:
            paid_cash = Decimal('1.50') * quantity if product_id == 'prod001' else Decimal('2.50') * quantity
        return SaleService.create_sale(
            items=[{'product_id': product_id, 'quantity': quantity, 'sale_type': 'retail'}],
            staff_id='cashier',
            customer_id=self.customer.pk if customer else None,
            vehicle_id=vehicle.pk if vehicle else None,
            paid_amount_cash=paid_cash,
            **kwargs
        )

    def reload(self, *instances):
        for instance in instances:
            instance.refresh_from_db()
