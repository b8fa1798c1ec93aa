"""
Sale Service

Checkout, additional payments and cancellation of sales.

Business Rules:
1. Main-inventory sales debit product stock; vehicle sales only record an
   UNLOAD_FROM_VEHICLE audit row per line
2. Payments apply in the order credit, bank transfer, cheque, cash; only
   cash may exceed what is owed, and the excess is returned as change
3. total_amount_paid + outstanding_balance == total_amount for active sales
4. Cancelled sales accept no further payments, returns or cancellation
5. Cancellation reverses only units still held by the customer
   (quantity - returned_quantity), using the same reversal primitive as
   returns
"""

import logging
from collections import OrderedDict
from decimal import Decimal, InvalidOperation

from django.utils import timezone

from store.models import Customer, PaymentMethod, Sale, SaleItem, SalePayment, SaleType, Vehicle
from store.services.credit_service import CreditService
from store.services.inventory_service import InventoryService
from store.services.numbering import next_sale_id
from store.services.realtime import SALE_CREATED, SALE_UPDATED, broadcast_sale
from store.services.unit_of_work import UnitOfWork
from utils.constants import PAYMENT_METHOD_LABELS, PAYMENT_SUMMARY_ORDER, ZERO, quantize_money
from utils.exceptions import (
    AlreadyCancelledError,
    InsufficientCreditError,
    InvalidRequestError,
)

logger = logging.getLogger(__name__)


def _money(value, field: str) -> Decimal:
    try:
        amount = quantize_money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidRequestError(f"{field} must be a number")
    if amount < ZERO:
        raise InvalidRequestError(f"{field} cannot be negative")
    return amount


class SaleService:

    @staticmethod
    def payment_totals(sale: Sale) -> OrderedDict:
        """Amount received per payment method, checkout and later payments combined."""
        totals = OrderedDict((method, ZERO) for method in PAYMENT_SUMMARY_ORDER)
        totals['Credit'] += sale.credit_used
        totals['Cash'] += sale.paid_amount_cash
        totals['Cheque'] += sale.paid_amount_cheque
        totals['BankTransfer'] += sale.paid_amount_bank_transfer

        for payment in sale.additional_payments.all():
            totals[payment.method] += payment.amount

        return totals

    @staticmethod
    def build_payment_summary(sale: Sale) -> str:
        """
        Human readable payment summary.

        Examples:
            "N/A"
            "Cash"
            "Cash + Cheque"
            "Partial (Cash (500.00) + Cheque (200.00)) - Outstanding: 300.00"
            "Cancelled - Cash"
        """
        parts = [
            (PAYMENT_METHOD_LABELS[method], amount)
            for method, amount in SaleService.payment_totals(sale).items()
            if amount > ZERO
        ]

        if not parts:
            summary = 'N/A'
        elif sale.outstanding_balance > ZERO:
            paid = ' + '.join(f"{label} ({amount:.2f})" for label, amount in parts)
            summary = f"Partial ({paid}) - Outstanding: {sale.outstanding_balance:.2f}"
        else:
            summary = ' + '.join(label for label, _ in parts)

        if sale.is_cancelled:
            summary = f"Cancelled - {summary}"
        return summary

    @staticmethod
    def create_sale(
        items: list,
        staff_id: str,
        customer_id=None,
        customer_name: str = '',
        customer_shop_name: str = '',
        vehicle_id=None,
        discount_percentage=ZERO,
        paid_amount_cash=ZERO,
        paid_amount_cheque=ZERO,
        cheque_details: dict = None,
        paid_amount_bank_transfer=ZERO,
        bank_transfer_details: dict = None,
        credit_used=ZERO,
        sale_date=None,
    ) -> Sale:
        """
        Check out a cart.

        Args:
            items: List of dicts with product_id, quantity, sale_type and
                optional applied_price / is_offer_item
            staff_id: Cashier completing the sale
            customer_id: Optional registered customer
            vehicle_id: Set when the goods come off a vehicle load
            discount_percentage: Percentage discount on the subtotal
            paid_amount_cash: Cash tendered (excess becomes change)
            paid_amount_cheque, paid_amount_bank_transfer: Non-cash payments
            credit_used: Customer account credit applied

        Returns:
            The saved Sale

        Raises:
            InvalidRequestError: Missing fields, bad quantities or overpayment
            NotFoundError: Unknown product, customer or vehicle
            InsufficientStockError: Main stock too low for a line
            InsufficientCreditError: credit_used above available credit
        """
        if not staff_id:
            raise InvalidRequestError('staffId is required')
        if not items:
            raise InvalidRequestError('A sale needs at least one item')

        discount_percentage = _money(discount_percentage, 'discountPercentage')
        if discount_percentage > Decimal('100'):
            raise InvalidRequestError('discountPercentage cannot exceed 100')
        cash_tendered = _money(paid_amount_cash, 'paidAmountCash')
        cheque = _money(paid_amount_cheque, 'paidAmountCheque')
        bank = _money(paid_amount_bank_transfer, 'paidAmountBankTransfer')
        credit = _money(credit_used, 'creditUsed')

        for item in items:
            if not item.get('product_id'):
                raise InvalidRequestError('Every item needs a productId')
            if int(item.get('quantity') or 0) <= 0:
                raise InvalidRequestError(f"Quantity for {item['product_id']} must be greater than zero")

        with UnitOfWork() as uow:
            customer = None
            if customer_id:
                customer = uow.read(Customer, customer_id)
                customer_name = customer_name or customer.name
                customer_shop_name = customer_shop_name or customer.shop_name

            vehicle = uow.read(Vehicle, vehicle_id) if vehicle_id else None

            if credit > ZERO:
                if customer is None:
                    raise InvalidRequestError('creditUsed requires a customer')
                available = CreditService.available_credit(customer.pk)
                if credit > max(available, ZERO):
                    raise InsufficientCreditError(
                        f"Insufficient credit. Requested: {credit}, Available: {max(available, ZERO)}"
                    )

            products = uow.read_products(item['product_id'] for item in items)

            lines = []
            sub_total = ZERO
            for item in items:
                product = products[str(item['product_id'])]
                sale_type = item.get('sale_type') or SaleType.RETAIL
                if sale_type not in SaleType.values:
                    raise InvalidRequestError(f"Unknown sale type: {sale_type}")
                is_offer = bool(item.get('is_offer_item'))
                if is_offer:
                    price = ZERO
                elif item.get('applied_price') is not None:
                    price = _money(item['applied_price'], 'appliedPrice')
                else:
                    price = product.price_for(sale_type)
                quantity = int(item['quantity'])
                sub_total += price * quantity
                lines.append((product, quantity, price, sale_type, is_offer))

            sub_total = quantize_money(sub_total)
            discount_amount = quantize_money(sub_total * discount_percentage / Decimal('100'))
            total = sub_total - discount_amount

            non_cash = credit + bank + cheque
            if non_cash > total:
                raise InvalidRequestError(
                    f"Non-cash payments ({non_cash}) exceed the sale total ({total})"
                )
            cash_applied = min(cash_tendered, total - non_cash)
            change = cash_tendered - cash_applied
            total_paid = non_cash + cash_applied
            outstanding = total - total_paid

            sale = uow.add(Sale(
                id=next_sale_id(),
                customer=customer,
                customer_name=customer_name or '',
                customer_shop_name=customer_shop_name or '',
                sub_total=sub_total,
                discount_percentage=discount_percentage,
                discount_amount=discount_amount,
                total_amount=total,
                paid_amount_cash=cash_applied,
                paid_amount_cheque=cheque,
                cheque_details=cheque_details if cheque > ZERO else None,
                paid_amount_bank_transfer=bank,
                bank_transfer_details=bank_transfer_details if bank > ZERO else None,
                credit_used=credit,
                change_given=change,
                total_amount_paid=total_paid,
                outstanding_balance=outstanding,
                initial_outstanding_balance=outstanding,
                vehicle=vehicle,
                offer_applied=any(line[4] for line in lines),
                sale_date=sale_date or timezone.now(),
                staff_id=staff_id,
            ))

            for product, quantity, price, sale_type, is_offer in lines:
                uow.add(SaleItem(
                    sale=sale,
                    product=product,
                    quantity=quantity,
                    applied_price=price,
                    sale_type=sale_type,
                    is_offer_item=is_offer,
                    product_name=product.name,
                    product_category=product.category,
                    product_price=product.price,
                    product_sku=product.sku,
                ))
                InventoryService.issue_stock(
                    uow, product, quantity,
                    vehicle=vehicle, user_id=staff_id,
                    reference=f"Sale: {sale.id}",
                )

            uow.write(sale, payment_summary=SaleService.build_payment_summary(sale))
            uow.on_commit(lambda: broadcast_sale(SALE_CREATED, sale))

        logger.info(
            f"Sale {sale.id} created: total {sale.total_amount}, paid {sale.total_amount_paid}, "
            f"outstanding {sale.outstanding_balance}"
        )
        return sale

    @staticmethod
    def add_payment(
        sale_id: str,
        amount,
        method: str,
        staff_id: str,
        payment_date=None,
        notes: str = '',
        details: dict = None,
    ) -> Sale:
        """
        Record a payment received after checkout.

        Args:
            sale_id: Sale being paid
            amount: Amount received (must be positive)
            method: Cash, Cheque or BankTransfer
            staff_id: Staff member receiving the payment
            payment_date: When the payment was received (defaults to now)
            notes: Optional notes
            details: Cheque or bank transfer details

        Returns:
            Updated Sale

        Raises:
            InvalidRequestError: Bad amount/method, missing staff or overpayment
            NotFoundError: Unknown sale
            AlreadyCancelledError: Sale is cancelled
        """
        try:
            amount = quantize_money(amount)
        except (InvalidOperation, ValueError, TypeError):
            raise InvalidRequestError('Invalid payment amount')
        if amount <= ZERO:
            raise InvalidRequestError('Invalid payment amount')
        if not staff_id:
            raise InvalidRequestError('Staff ID is required for payment record')
        if method not in PaymentMethod.values:
            raise InvalidRequestError(f"Unknown payment method: {method}")
        if method == PaymentMethod.RETURN_CREDIT:
            raise InvalidRequestError("Return credit can only be applied by processing a return")

        with UnitOfWork() as uow:
            sale = uow.read(Sale, sale_id)

            if sale.is_cancelled:
                logger.warning(f"Attempted payment on cancelled sale {sale.id}")
                raise AlreadyCancelledError(f"Sale {sale.id} is cancelled and cannot accept payments")

            if amount > sale.outstanding_balance:
                raise InvalidRequestError(
                    f"Payment of {amount} exceeds outstanding balance of {sale.outstanding_balance}"
                )

            uow.add(SalePayment(
                sale=sale,
                amount=amount,
                method=method,
                payment_date=payment_date or timezone.now(),
                notes=notes or '',
                details=details,
                staff_id=staff_id,
            ))

            total_paid = sale.total_amount_paid + amount
            uow.write(
                sale,
                total_amount_paid=total_paid,
                outstanding_balance=max(ZERO, sale.total_amount - total_paid),
            )
            uow.write(sale, payment_summary=SaleService.build_payment_summary(sale))
            uow.on_commit(lambda: broadcast_sale(SALE_UPDATED, sale))

        logger.info(
            f"Payment of {amount} ({method}) added to sale {sale.id}. "
            f"Outstanding: {sale.outstanding_balance}"
        )
        return sale

    @staticmethod
    def cancel_sale(sale_id: str, staff_id: str = '', reason: str = '') -> Sale:
        """
        Cancel a sale and put its goods back.

        Units already taken back by returns are not reversed again.
        Vehicle sales record LOAD_TO_VEHICLE audit rows; main-inventory
        sales get their stock back.

        Raises:
            NotFoundError: Unknown sale
            AlreadyCancelledError: Sale was already cancelled
        """
        with UnitOfWork() as uow:
            sale = uow.read(Sale, sale_id)

            if sale.is_cancelled:
                logger.warning(f"Attempted to cancel already cancelled sale {sale.id}")
                raise AlreadyCancelledError(f"Sale {sale.id} is already cancelled")

            items = list(sale.items.all())
            products = uow.read_products(item.product_id for item in items)
            vehicle = sale.vehicle

            for item in items:
                quantity = item.remaining_quantity
                if quantity <= 0:
                    continue
                InventoryService.restore_stock(
                    uow, products[item.product_id], quantity,
                    vehicle=vehicle, resellable=True, user_id=staff_id,
                    reference=f"Cancelled sale: {sale.id}",
                )

            uow.write(
                sale,
                status=Sale.Status.CANCELLED,
                outstanding_balance=ZERO,
                cancelled_at=timezone.now(),
                cancellation_reason=reason or '',
            )
            uow.write(sale, payment_summary=SaleService.build_payment_summary(sale))
            uow.on_commit(lambda: broadcast_sale(SALE_UPDATED, sale))

        logger.warning(f"Sale {sale.id} CANCELLED by {staff_id or 'unknown'} - Reason: {reason or 'n/a'}")
        return sale
