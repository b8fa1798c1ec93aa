"""
Customer Credit Service

Derives a customer's account position from sales and returns. Nothing
here writes to the database.

    available credit    = sum(return.refund_amount) - sum(sale.credit_used)
    outstanding balance = sum(active sale.outstanding_balance)
                          + sum(return.outstanding_amount)

Available credit is not clamped; a negative figure means the customer
has used more credit than returns have issued.
"""

from decimal import Decimal

from django.db.models import Sum

from store.models import Customer, ReturnTransaction, Sale
from utils.constants import ZERO, quantize_money
from utils.exceptions import NotFoundError


class CreditService:

    @staticmethod
    def _require_customer(customer_id) -> Customer:
        try:
            return Customer.objects.get(pk=customer_id)
        except (Customer.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Customer with ID {customer_id} not found.")

    @staticmethod
    def available_credit(customer_id) -> Decimal:
        refunds = ReturnTransaction.objects.filter(
            customer_id=customer_id
        ).aggregate(total=Sum('refund_amount'))['total'] or ZERO

        credit_used = Sale.objects.filter(
            customer_id=customer_id
        ).aggregate(total=Sum('credit_used'))['total'] or ZERO

        return quantize_money(refunds - credit_used)

    @staticmethod
    def outstanding_balance(customer_id) -> Decimal:
        sales_outstanding = Sale.objects.filter(
            customer_id=customer_id,
            status=Sale.Status.ACTIVE
        ).aggregate(total=Sum('outstanding_balance'))['total'] or ZERO

        returns_outstanding = ReturnTransaction.objects.filter(
            customer_id=customer_id
        ).aggregate(total=Sum('outstanding_amount'))['total'] or ZERO

        return quantize_money(sales_outstanding + returns_outstanding)

    @staticmethod
    def get_customer_credit(customer_id) -> dict:
        """
        Credit and outstanding figures for one customer.

        Returns:
            dict with customer_id, available_credit, outstanding_balance

        Raises:
            NotFoundError: If the customer does not exist
        """
        customer = CreditService._require_customer(customer_id)
        return {
            'customer_id': customer.pk,
            'customer_name': customer.name,
            'available_credit': CreditService.available_credit(customer.pk),
            'outstanding_balance': CreditService.outstanding_balance(customer.pk),
        }
