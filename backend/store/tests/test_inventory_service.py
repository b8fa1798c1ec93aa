"""
Tests for manual stock movements and the append-only stock ledger.
"""

from django.core.exceptions import ValidationError
from django.test import TestCase

from store.models import Product, StockTransaction
from store.services import InventoryService
from utils.exceptions import InsufficientStockError, InvalidRequestError, NotFoundError

from .fixtures import StoreFixturesMixin

Type = StockTransaction.Type


class StockDirectionTestCase(TestCase):

    def test_every_type_has_a_direction(self):
        expected = {
            Type.ADD_STOCK_INVENTORY: 1,
            Type.UNLOAD_FROM_VEHICLE: 1,
            Type.LOAD_TO_VEHICLE: -1,
            Type.REMOVE_STOCK_WASTAGE: -1,
            Type.STOCK_ADJUSTMENT_MANUAL: -1,
            Type.ISSUE_SAMPLE: -1,
        }
        self.assertEqual(set(expected), set(Type.values))
        for txn_type, direction in expected.items():
            self.assertEqual(InventoryService.stock_direction(txn_type), direction)

    def test_unknown_type(self):
        with self.assertRaises(InvalidRequestError):
            InventoryService.stock_direction('TELEPORT')


class RecordStockTransactionTestCase(StoreFixturesMixin, TestCase):

    def test_add_stock(self):
        txn = InventoryService.record_stock_transaction(
            'prod001', Type.ADD_STOCK_INVENTORY, 24, user_id='admin', notes='Morning delivery'
        )

        self.assertEqual(txn.previous_stock, 10)
        self.assertEqual(txn.new_stock, 34)
        self.assertEqual(txn.stock_change, 24)
        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 34)

    def test_load_to_vehicle(self):
        txn = InventoryService.record_stock_transaction(
            'prod001', Type.LOAD_TO_VEHICLE, 6,
            user_id='admin', vehicle_id=self.vehicle.pk, start_meter=12000,
        )

        self.assertEqual(txn.vehicle, self.vehicle)
        self.assertEqual(txn.start_meter, 12000)
        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 4)

    def test_vehicle_required_for_vehicle_types(self):
        with self.assertRaises(InvalidRequestError):
            InventoryService.record_stock_transaction('prod001', Type.UNLOAD_FROM_VEHICLE, 1)

    def test_stock_never_negative(self):
        """A decrease larger than stock fails and writes no ledger row"""
        with self.assertRaises(InsufficientStockError):
            InventoryService.record_stock_transaction('prod001', Type.REMOVE_STOCK_WASTAGE, 11)

        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 10)
        self.assertFalse(StockTransaction.objects.exists())

    def test_quantity_must_be_positive(self):
        with self.assertRaises(InvalidRequestError):
            InventoryService.record_stock_transaction('prod001', Type.ADD_STOCK_INVENTORY, 0)

    def test_unknown_product_and_vehicle(self):
        with self.assertRaises(NotFoundError):
            InventoryService.record_stock_transaction('prod999', Type.ADD_STOCK_INVENTORY, 1)
        with self.assertRaises(NotFoundError):
            InventoryService.record_stock_transaction(
                'prod001', Type.LOAD_TO_VEHICLE, 1, vehicle_id=9999
            )

    def test_ledger_is_append_only(self):
        txn = InventoryService.record_stock_transaction('prod001', Type.ISSUE_SAMPLE, 1, notes='Shop tasting')

        txn.quantity = 5
        with self.assertRaises(ValidationError):
            txn.save()
        with self.assertRaises(ValidationError):
            txn.delete()


class ProductModelTestCase(TestCase):

    def test_generated_id(self):
        product = Product.objects.create(name='Mango Drink', category=Product.Category.DRINK, price='1.10')

        self.assertTrue(product.id.startswith('prod-'))

    def test_stock_status(self):
        product = Product(id='p1', name='Curd', price='2.00', stock=0, reorder_level=5)
        self.assertEqual(product.stock_status, 'OUT_OF_STOCK')

        product.stock = 5
        self.assertEqual(product.stock_status, 'LOW_STOCK')
        self.assertTrue(product.is_low_stock)

        product.stock = 6
        self.assertEqual(product.stock_status, 'IN_STOCK')
