"""
Tests for day-end, full and vehicle reports.
"""

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from store.models import Expense, PaymentMethod, StockTransaction
from store.services import InventoryService, ReportService, ReturnService, SaleService
from utils.exceptions import NotFoundError

from .fixtures import StoreFixturesMixin


class DayEndReportTestCase(StoreFixturesMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.today = timezone.localdate()

    def test_empty_day(self):
        report = ReportService.generate_day_end_report(self.today)

        self.assertEqual(report['total_transactions'], 0)
        self.assertEqual(report['net_cash_in_hand'], Decimal('0.00'))
        self.assertEqual(report['cheque_numbers'], [])

    def test_cash_in_hand(self):
        """Cash in minus cash refunds minus expenses"""
        sale = self.make_sale(quantity=2)
        ReturnService.process_return(
            sale_id=sale.id, staff_id='cashier',
            returned_items=[{'product_id': 'prod001', 'sale_type': 'retail', 'quantity': 1}],
            cash_paid_out=Decimal('1.50'),
        )
        Expense.objects.create(category='Fuel', amount=Decimal('0.50'), staff_id='driver')

        report = ReportService.generate_day_end_report(self.today)

        self.assertEqual(report['total_transactions'], 1)
        self.assertEqual(report['gross_sales_value'], Decimal('3.00'))
        self.assertEqual(report['total_cash_in'], Decimal('3.00'))
        self.assertEqual(report['refunds_for_today_sales'], Decimal('1.50'))
        self.assertEqual(report['refunds_for_past_sales'], Decimal('0.00'))
        self.assertEqual(report['net_sales_value'], Decimal('1.50'))
        self.assertEqual(report['total_refunds_paid_today'], Decimal('1.50'))
        self.assertEqual(report['total_expenses'], Decimal('0.50'))
        self.assertEqual(report['net_cash_in_hand'], Decimal('1.00'))
        self.assertEqual(report['returns_count'], 1)

    def test_credit_and_later_payments(self):
        sale = self.make_sale(quantity=2, paid_cash=Decimal('1.00'))
        SaleService.add_payment(
            sale.id, Decimal('1.00'), PaymentMethod.CHEQUE, 'cashier', details={'number': 'CHQ-55'}
        )

        report = ReportService.generate_day_end_report(self.today)

        self.assertEqual(report['credit_sales_count'], 1)
        self.assertEqual(report['new_credit_issued'], Decimal('2.00'))
        self.assertEqual(report['paid_against_new_credit'], Decimal('1.00'))
        self.assertEqual(report['net_outstanding_from_today'], Decimal('1.00'))
        self.assertEqual(report['total_cheque_in'], Decimal('1.00'))
        self.assertEqual(report['cheque_numbers'], ['CHQ-55'])

    def test_cancelled_sales_excluded(self):
        sale = self.make_sale(quantity=2)
        SaleService.cancel_sale(sale.id, staff_id='admin')

        report = ReportService.generate_day_end_report(self.today)

        self.assertEqual(report['total_transactions'], 0)
        self.assertEqual(report['cancelled_sales_count'], 1)
        self.assertEqual(report['total_cash_in'], Decimal('0.00'))

    def test_samples_counted(self):
        InventoryService.record_stock_transaction(
            'prod004', StockTransaction.Type.ISSUE_SAMPLE, 3, notes='Perera Stores'
        )

        report = ReportService.generate_day_end_report(self.today)

        self.assertEqual(report['samples_issued_count'], 3)
        self.assertEqual(report['sample_transactions_count'], 1)


class FullReportTestCase(StoreFixturesMixin, TestCase):

    def test_entries_and_totals(self):
        """Returned lines are negative, exchanged lines positive"""
        sale = self.make_sale(quantity=2)
        ReturnService.process_return(
            sale_id=sale.id, staff_id='cashier',
            returned_items=[{'product_id': 'prod001', 'sale_type': 'retail', 'quantity': 1}],
            exchanged_items=[{'product_id': 'prod004', 'quantity': 1}],
        )
        today = timezone.localdate()

        report = ReportService.generate_full_report(today, today)

        types = [entry['transaction_type'] for entry in report['entries']]
        self.assertEqual(types.count('Sale'), 1)
        self.assertEqual(types.count('Return'), 2)

        returned_line = next(
            e for e in report['entries'] if e['transaction_type'] == 'Return' and e['quantity'] < 0
        )
        self.assertEqual(returned_line['quantity'], -1)
        self.assertEqual(returned_line['line_total'], Decimal('-1.50'))

        self.assertEqual(report['totals']['sales_value'], Decimal('3.00'))
        self.assertEqual(report['totals']['returns_value'], Decimal('1.50'))
        self.assertEqual(report['totals']['exchange_value'], Decimal('2.50'))
        self.assertEqual(report['totals']['net_value'], Decimal('4.00'))

    def test_range_excludes_other_days(self):
        self.make_sale(quantity=1)
        yesterday = timezone.localdate() - timedelta(days=1)

        report = ReportService.generate_full_report(yesterday, yesterday)

        self.assertEqual(report['entries'], [])


class VehicleReportTestCase(StoreFixturesMixin, TestCase):

    def test_loaded_and_unloaded(self):
        InventoryService.record_stock_transaction(
            'prod001', StockTransaction.Type.LOAD_TO_VEHICLE, 6, vehicle_id=self.vehicle.pk
        )
        self.make_sale(quantity=2, vehicle=self.vehicle)
        today = timezone.localdate()

        report = ReportService.generate_vehicle_report(self.vehicle.pk, today, today)

        self.assertEqual(report['vehicle_number'], 'WP-CAB-1234')
        self.assertEqual(len(report['items']), 1)
        row = report['items'][0]
        self.assertEqual(row['product_id'], 'prod001')
        self.assertEqual(row['total_loaded'], 6)
        self.assertEqual(row['total_unloaded'], 2)
        self.assertEqual(row['net_change'], 4)

    def test_unknown_vehicle(self):
        today = timezone.localdate()
        with self.assertRaises(NotFoundError):
            ReportService.generate_vehicle_report(9999, today, today)
