from decimal import Decimal

from django.test import TestCase

from store.services import CreditService, ReturnService, SaleService
from utils.exceptions import NotFoundError

from .fixtures import StoreFixturesMixin


class CustomerCreditTestCase(StoreFixturesMixin, TestCase):
    """Available credit and outstanding balance per customer"""

    def refund_one_unit(self, sale):
        return ReturnService.process_return(
            sale_id=sale.id, staff_id='cashier',
            returned_items=[{'product_id': 'prod001', 'sale_type': 'retail', 'quantity': 1}],
        )

    def test_new_customer_has_nothing(self):
        credit = CreditService.get_customer_credit(self.customer.pk)

        self.assertEqual(credit['customer_id'], self.customer.pk)
        self.assertEqual(credit['available_credit'], Decimal('0.00'))
        self.assertEqual(credit['outstanding_balance'], Decimal('0.00'))

    def test_refund_credit_then_spent(self):
        """Return refunds add credit; credit used at checkout consumes it"""
        self.refund_one_unit(self.make_sale(quantity=2))
        self.assertEqual(CreditService.available_credit(self.customer.pk), Decimal('1.50'))

        SaleService.create_sale(
            items=[{'product_id': 'prod001', 'quantity': 1}],
            staff_id='cashier',
            customer_id=self.customer.pk,
            credit_used=Decimal('1.00'),
            paid_amount_cash=Decimal('0.50'),
        )

        self.assertEqual(CreditService.available_credit(self.customer.pk), Decimal('0.50'))

    def test_outstanding_excludes_cancelled_sales(self):
        self.make_sale(quantity=2, paid_cash=Decimal('1.00'))
        unpaid = self.make_sale(quantity=1, paid_cash=Decimal('0'))
        self.assertEqual(CreditService.outstanding_balance(self.customer.pk), Decimal('3.50'))

        SaleService.cancel_sale(unpaid.id, staff_id='admin')

        self.assertEqual(CreditService.outstanding_balance(self.customer.pk), Decimal('2.00'))

    def test_walk_in_sales_not_counted(self):
        self.make_sale(quantity=2, paid_cash=Decimal('0'), customer=False)

        self.assertEqual(CreditService.outstanding_balance(self.customer.pk), Decimal('0.00'))

    def test_unknown_customer(self):
        with self.assertRaises(NotFoundError):
            CreditService.get_customer_credit(99999)
