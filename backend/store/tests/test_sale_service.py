"""
Tests for checkout, additional payments and sale cancellation.
"""

from datetime import datetime, timezone as dt_timezone
from decimal import Decimal
from unittest import mock

from django.test import TestCase

from store.models import PaymentMethod, Sale, SalePayment, StockTransaction
from store.services import ReturnService, SaleService
from utils.exceptions import (
    AlreadyCancelledError,
    InsufficientCreditError,
    InsufficientStockError,
    InvalidRequestError,
    NotFoundError,
)

from .fixtures import StoreFixturesMixin


class CreateSaleTestCase(StoreFixturesMixin, TestCase):

    def test_create_sale_debits_stock(self):
        """Checkout takes the sold units out of main stock"""
        sale = self.make_sale(quantity=2)

        self.assertTrue(sale.id.startswith('sale-'))
        self.assertEqual(sale.sub_total, Decimal('3.00'))
        self.assertEqual(sale.total_amount, Decimal('3.00'))
        self.assertEqual(sale.outstanding_balance, Decimal('0.00'))
        self.assertEqual(sale.payment_summary, 'Cash')
        self.assertEqual(sale.customer_name, 'Kamal Silva')
        self.assertEqual(sale.customer_shop_name, 'Silva Stores')

        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 8)

        item = sale.items.get()
        self.assertEqual(item.product_name, 'Set Yogurt 80g')
        self.assertEqual(item.applied_price, Decimal('1.50'))

    def test_discount_and_change(self):
        """10% off 3.00 is 2.70; 5.00 tendered gives 2.30 change"""
        sale = SaleService.create_sale(
            items=[{'product_id': 'prod001', 'quantity': 2}],
            staff_id='cashier',
            discount_percentage=Decimal('10'),
            paid_amount_cash=Decimal('5.00'),
        )

        self.assertEqual(sale.discount_amount, Decimal('0.30'))
        self.assertEqual(sale.total_amount, Decimal('2.70'))
        self.assertEqual(sale.paid_amount_cash, Decimal('2.70'))
        self.assertEqual(sale.change_given, Decimal('2.30'))
        self.assertEqual(sale.outstanding_balance, Decimal('0.00'))

    def test_wholesale_and_offer_pricing(self):
        sale = SaleService.create_sale(
            items=[
                {'product_id': 'prod001', 'quantity': 10, 'sale_type': 'wholesale'},
                {'product_id': 'prod004', 'quantity': 1, 'is_offer_item': True},
            ],
            staff_id='cashier',
            paid_amount_cash=Decimal('13.00'),
        )

        self.assertEqual(sale.sub_total, Decimal('13.00'))
        self.assertTrue(sale.offer_applied)
        offer = sale.items.get(product_id='prod004')
        self.assertEqual(offer.applied_price, Decimal('0.00'))

    def test_partial_payment_summary(self):
        sale = self.make_sale(quantity=2, paid_cash=Decimal('1.00'))

        self.assertEqual(sale.outstanding_balance, Decimal('2.00'))
        self.assertEqual(sale.initial_outstanding_balance, Decimal('2.00'))
        self.assertEqual(sale.payment_summary, 'Partial (Cash (1.00)) - Outstanding: 2.00')

    def test_mixed_payment_summary(self):
        sale = SaleService.create_sale(
            items=[{'product_id': 'prod004', 'quantity': 2}],
            staff_id='cashier',
            paid_amount_cash=Decimal('2.00'),
            paid_amount_cheque=Decimal('3.00'),
            cheque_details={'number': 'CHQ-778', 'bank': 'BOC'},
        )

        self.assertEqual(sale.payment_summary, 'Cash + Cheque')
        self.assertEqual(sale.cheque_details['number'], 'CHQ-778')

    def test_insufficient_stock_writes_nothing(self):
        with self.assertRaises(InsufficientStockError):
            SaleService.create_sale(
                items=[
                    {'product_id': 'prod004', 'quantity': 1},
                    {'product_id': 'prod001', 'quantity': 11},
                ],
                staff_id='cashier',
            )

        self.reload(self.yogurt, self.choc_milk)
        self.assertEqual(self.choc_milk.stock, 10)
        self.assertEqual(Sale.objects.count(), 0)

    def test_vehicle_sale_records_unload(self):
        sale = self.make_sale(quantity=3, vehicle=self.vehicle)

        self.assertTrue(sale.is_vehicle_sale)
        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 10)
        self.assertEqual(
            StockTransaction.objects.filter(type=StockTransaction.Type.UNLOAD_FROM_VEHICLE).count(), 1
        )

    def test_unknown_product(self):
        with self.assertRaises(NotFoundError):
            SaleService.create_sale(items=[{'product_id': 'prod999', 'quantity': 1}], staff_id='cashier')

    def test_requires_items_and_staff(self):
        with self.assertRaises(InvalidRequestError):
            SaleService.create_sale(items=[], staff_id='cashier')
        with self.assertRaises(InvalidRequestError):
            SaleService.create_sale(items=[{'product_id': 'prod001', 'quantity': 1}], staff_id='')

    def test_credit_limited_to_available(self):
        with self.assertRaises(InsufficientCreditError):
            SaleService.create_sale(
                items=[{'product_id': 'prod001', 'quantity': 1}],
                staff_id='cashier',
                customer_id=self.customer.pk,
                credit_used=Decimal('1.00'),
            )

    def test_non_cash_overpayment_rejected(self):
        with self.assertRaises(InvalidRequestError):
            SaleService.create_sale(
                items=[{'product_id': 'prod001', 'quantity': 1}],
                staff_id='cashier',
                paid_amount_bank_transfer=Decimal('5.00'),
            )

    def test_sale_ids_unique_across_years(self):
        """The same calendar day a year later keeps counting up"""
        first_day = datetime(2025, 6, 14, 9, 0, tzinfo=dt_timezone.utc)
        with mock.patch('django.utils.timezone.now', return_value=first_day):
            first = self.make_sale(quantity=1)
        with mock.patch('django.utils.timezone.now', return_value=first_day.replace(year=2026)):
            second = self.make_sale(quantity=1)

        self.assertEqual(first.id, 'sale-0614-1')
        self.assertEqual(second.id, 'sale-0614-2')
        self.assertEqual(Sale.objects.count(), 2)


class AddPaymentTestCase(StoreFixturesMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.sale = self.make_sale(quantity=2, paid_cash=Decimal('1.00'))

    def test_payment_clears_outstanding(self):
        sale = SaleService.add_payment(
            self.sale.id, Decimal('2.00'), PaymentMethod.CHEQUE, 'cashier',
            details={'number': 'CHQ-100'},
        )

        self.assertEqual(sale.outstanding_balance, Decimal('0.00'))
        self.assertEqual(sale.total_amount_paid, Decimal('3.00'))
        self.assertEqual(sale.payment_summary, 'Cash + Cheque')
        self.assertEqual(SalePayment.objects.filter(sale=sale).count(), 1)

    def test_partial_additional_payment(self):
        sale = SaleService.add_payment(self.sale.id, Decimal('0.50'), PaymentMethod.CASH, 'cashier')

        self.assertEqual(sale.outstanding_balance, Decimal('1.50'))
        self.assertEqual(sale.payment_summary, 'Partial (Cash (1.50)) - Outstanding: 1.50')

    def test_overpayment_rejected(self):
        with self.assertRaises(InvalidRequestError):
            SaleService.add_payment(self.sale.id, Decimal('2.50'), PaymentMethod.CASH, 'cashier')

    def test_invalid_amount_and_method(self):
        with self.assertRaises(InvalidRequestError):
            SaleService.add_payment(self.sale.id, Decimal('0'), PaymentMethod.CASH, 'cashier')
        with self.assertRaises(InvalidRequestError):
            SaleService.add_payment(self.sale.id, Decimal('1.00'), 'Bitcoin', 'cashier')
        with self.assertRaises(InvalidRequestError):
            SaleService.add_payment(self.sale.id, Decimal('1.00'), PaymentMethod.CASH, '')

    def test_return_credit_not_accepted(self):
        with self.assertRaises(InvalidRequestError):
            SaleService.add_payment(self.sale.id, Decimal('2.00'), PaymentMethod.RETURN_CREDIT, 'cashier')

        self.reload(self.sale)
        self.assertEqual(self.sale.outstanding_balance, Decimal('2.00'))
        self.assertFalse(SalePayment.objects.filter(sale=self.sale).exists())

    def test_payment_on_cancelled_sale(self):
        SaleService.cancel_sale(self.sale.id, staff_id='admin')

        with self.assertRaises(AlreadyCancelledError):
            SaleService.add_payment(self.sale.id, Decimal('1.00'), PaymentMethod.CASH, 'cashier')


class CancelSaleTestCase(StoreFixturesMixin, TestCase):

    def test_cancel_restores_stock(self):
        sale = self.make_sale(quantity=2)

        cancelled = SaleService.cancel_sale(sale.id, staff_id='admin', reason='Wrong customer')

        self.assertEqual(cancelled.status, Sale.Status.CANCELLED)
        self.assertEqual(cancelled.outstanding_balance, Decimal('0.00'))
        self.assertIsNotNone(cancelled.cancelled_at)
        self.assertEqual(cancelled.cancellation_reason, 'Wrong customer')
        self.assertTrue(cancelled.payment_summary.startswith('Cancelled - '))
        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 10)

    def test_second_cancel_changes_nothing(self):
        """Cancelling twice fails and does not restock twice"""
        sale = self.make_sale(quantity=2)
        SaleService.cancel_sale(sale.id, staff_id='admin')

        with self.assertRaises(AlreadyCancelledError):
            SaleService.cancel_sale(sale.id, staff_id='admin')

        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 10)

    def test_cancel_after_partial_return(self):
        """Units already returned are not restocked a second time"""
        sale = self.make_sale(quantity=2)
        ReturnService.process_return(
            sale_id=sale.id, staff_id='cashier',
            returned_items=[{'product_id': 'prod001', 'sale_type': 'retail', 'quantity': 1}],
        )
        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 9)

        SaleService.cancel_sale(sale.id, staff_id='admin')

        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 10)

    def test_cancel_vehicle_sale_loads_back(self):
        sale = self.make_sale(quantity=2, vehicle=self.vehicle)

        SaleService.cancel_sale(sale.id, staff_id='admin')

        self.reload(self.yogurt)
        self.assertEqual(self.yogurt.stock, 10)
        load = StockTransaction.objects.get(type=StockTransaction.Type.LOAD_TO_VEHICLE)
        self.assertEqual(load.quantity, 2)
        self.assertIn(sale.id, load.notes)

    def test_cancel_unknown_sale(self):
        with self.assertRaises(NotFoundError):
            SaleService.cancel_sale('sale-0101-404')
