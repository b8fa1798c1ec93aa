"""
Return/Exchange Settlement Service

Settles a return and/or exchange against an existing sale in one unit of
work: values the goods, offsets the sale's outstanding balance, decides
what the customer owes or is owed, moves stock and writes the immutable
ReturnTransaction.

Settlement arithmetic:
    return_total_value       = sum(sold price x returned quantity)
    exchange_total_value     = sum(exchange price x exchanged quantity)
    net_credit_after_settle  = return_total_value - settle_outstanding_amount
    final_difference         = exchange_total_value - net_credit_after_settle

    final_difference > 0  balance due; payment.amount_paid covers part or
                          all of it, the rest is kept as outstanding_amount
    final_difference < 0  refund due; paid as cash_paid_out and/or
                          refund_amount (account credit)
    final_difference == 0 nothing changes hands

Business Rules:
1. Returned lines are priced at what the customer paid on the sale line
2. Returned quantity can never exceed quantity sold minus already returned
3. settle_outstanding_amount cannot exceed the sale's outstanding balance
4. Resellable returns restock main inventory, or go back on the vehicle
   (audit only) for vehicle-sourced returns
5. Non-resellable returns leave stock alone and record wastage
6. Exchanged goods come out of main inventory and never drive stock negative
7. A repeated idempotency key returns the original return unchanged
"""

import logging
from decimal import Decimal, InvalidOperation

from django.db import IntegrityError

from store.conf import pos_setting
from store.models import (
    Customer, PaymentMethod, ReturnLineItem, ReturnTransaction,
    Sale, SalePayment, SaleType, Vehicle,
)
from store.services.inventory_service import InventoryService
from store.services.numbering import next_return_id
from store.services.realtime import SALE_UPDATED, broadcast_return, broadcast_sale
from store.services.sale_service import SaleService
from store.services.unit_of_work import UnitOfWork
from utils.constants import ZERO, quantize_money
from utils.exceptions import (
    AlreadyCancelledError,
    EmptyTransactionError,
    InvalidRequestError,
    NotFoundError,
    OutstandingBalanceExceededError,
    ReturnQuantityExceededError,
    SettlementMismatchError,
)

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = 'Return/Exchange processed successfully and stock updated.'


def _amount(value, field: str, allow_none: bool = False):
    if value is None or value == '':
        return None if allow_none else ZERO
    try:
        amount = quantize_money(value)
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidRequestError(f"{field} must be a number")
    if amount < ZERO:
        raise InvalidRequestError(f"{field} cannot be negative")
    return amount


def _quantity(item: dict) -> int:
    try:
        quantity = int(item.get('quantity'))
    except (TypeError, ValueError):
        raise InvalidRequestError(f"Invalid quantity for product {item.get('product_id')}")
    if quantity <= 0:
        raise InvalidRequestError(f"Quantity for product {item.get('product_id')} must be greater than zero")
    return quantity


class ReturnService:

    @staticmethod
    def compute_settlement(
        return_total_value: Decimal,
        exchange_total_value: Decimal,
        settle_outstanding_amount: Decimal = ZERO,
    ) -> dict:
        """
        Net monetary outcome of a return/exchange.

        Returns:
            dict with return_total_value, exchange_total_value,
            net_credit_after_settle, final_difference, balance_due, refund_due
        """
        return_total_value = quantize_money(return_total_value)
        exchange_total_value = quantize_money(exchange_total_value)
        settle_outstanding_amount = quantize_money(settle_outstanding_amount)

        net_credit = return_total_value - settle_outstanding_amount
        final_difference = exchange_total_value - net_credit

        return {
            'return_total_value': return_total_value,
            'exchange_total_value': exchange_total_value,
            'net_credit_after_settle': net_credit,
            'final_difference': final_difference,
            'balance_due': max(final_difference, ZERO),
            'refund_due': max(-final_difference, ZERO),
        }

    @staticmethod
    def resolve_refund_split(settlement: dict, refund_amount, cash_paid_out, amount_paid) -> dict:
        """
        Work out refund credit, cash payout and unpaid balance for a settlement.

        When a refund is due and the caller gives neither refund_amount nor
        cash_paid_out, the whole refund goes to the customer's account.

        Raises:
            SettlementMismatchError: Figures inconsistent with the settlement
        """
        enforce = pos_setting('ENFORCE_REFUND_SPLIT')
        difference = settlement['final_difference']

        if difference > ZERO:
            if enforce and ((refund_amount or ZERO) > ZERO or (cash_paid_out or ZERO) > ZERO):
                raise SettlementMismatchError(
                    f"Customer owes {difference}; no refund or cash payout is allowed"
                )
            if amount_paid > difference:
                raise SettlementMismatchError(
                    f"Payment of {amount_paid} exceeds balance due of {difference}"
                )
            return {
                'refund_amount': ZERO if enforce else (refund_amount or ZERO),
                'cash_paid_out': ZERO if enforce else (cash_paid_out or ZERO),
                'amount_paid': amount_paid,
                'outstanding_amount': difference - amount_paid,
            }

        if difference < ZERO:
            refund_due = -difference
            if amount_paid > ZERO:
                raise SettlementMismatchError(
                    f"Customer is owed {refund_due}; no payment should be collected"
                )
            if refund_amount is None and cash_paid_out is None:
                refund_amount, cash_paid_out = refund_due, ZERO
            refund_amount = refund_amount or ZERO
            cash_paid_out = cash_paid_out or ZERO
            if enforce and refund_amount + cash_paid_out != refund_due:
                raise SettlementMismatchError(
                    f"Cash paid out ({cash_paid_out}) plus refund credit ({refund_amount}) "
                    f"must equal the refund due ({refund_due})"
                )
            return {
                'refund_amount': refund_amount,
                'cash_paid_out': cash_paid_out,
                'amount_paid': ZERO,
                'outstanding_amount': ZERO,
            }

        if enforce and ((refund_amount or ZERO) > ZERO or (cash_paid_out or ZERO) > ZERO or amount_paid > ZERO):
            raise SettlementMismatchError('Nothing is owed either way; refund and payment must be zero')
        return {
            'refund_amount': refund_amount or ZERO,
            'cash_paid_out': cash_paid_out or ZERO,
            'amount_paid': amount_paid,
            'outstanding_amount': ZERO,
        }

    @staticmethod
    def _allocate_returned(sale_items: list, item: dict) -> list:
        """
        Spread a returned quantity over the matching sale lines.

        Paid lines are used before free offer lines. Mutates
        returned_quantity on the in-memory lines.

        Returns:
            List of (sale_item, quantity) allocations

        Raises:
            ReturnQuantityExceededError: Product not on the sale or over-returned
        """
        product_id = str(item['product_id'])
        sale_type = item['sale_type']
        quantity = item['quantity']

        candidates = sorted(
            (line for line in sale_items
             if line.product_id == product_id and line.sale_type == sale_type),
            key=lambda line: (line.is_offer_item, line.pk)
        )
        if not candidates:
            raise ReturnQuantityExceededError(
                f"Item {product_id} ({sale_type}) not found in original sale."
            )

        sold = sum(line.quantity for line in candidates)
        already_returned = sum(line.returned_quantity for line in candidates)
        if already_returned + quantity > sold:
            raise ReturnQuantityExceededError(
                f"Cannot return {quantity} of {candidates[0].product_name}. "
                f"Already returned: {already_returned}, Max: {sold}"
            )

        allocations = []
        remaining = quantity
        for line in candidates:
            if remaining == 0:
                break
            take = min(line.remaining_quantity, remaining)
            if take <= 0:
                continue
            line.returned_quantity += take
            remaining -= take
            allocations.append((line, take))
        return allocations

    @staticmethod
    def _find_replay(idempotency_key: str, sale_id: str):
        if not idempotency_key:
            return None
        existing = ReturnTransaction.objects.filter(idempotency_key=idempotency_key).first()
        if existing is None:
            return None
        if existing.original_sale_id != sale_id:
            raise InvalidRequestError(
                f"Idempotency key {idempotency_key} was already used for sale {existing.original_sale_id}"
            )
        logger.info(f"Replayed return {existing.id} for idempotency key {idempotency_key}")
        return {
            'success': True,
            'message': SUCCESS_MESSAGE,
            'return_id': existing.id,
            'return_transaction': existing,
            'replayed': True,
        }

    @staticmethod
    def process_return(
        sale_id: str,
        staff_id: str,
        returned_items: list = None,
        exchanged_items: list = None,
        customer_id=None,
        customer_name: str = '',
        customer_shop_name: str = '',
        settle_outstanding_amount=None,
        refund_amount=None,
        cash_paid_out=None,
        payment: dict = None,
        vehicle_id=None,
        idempotency_key: str = None,
        notes: str = '',
    ) -> dict:
        """
        Settle a return and/or exchange against a sale.

        Args:
            sale_id: Original sale
            staff_id: Staff member processing the return
            returned_items: Dicts with product_id, sale_type, quantity, is_resellable
            exchanged_items: Dicts with product_id, quantity and optional
                applied_price / sale_type
            customer_id, customer_name, customer_shop_name: Default to the sale's
            settle_outstanding_amount: Return credit used to pay down the sale
            refund_amount: Credit added to the customer's account
            cash_paid_out: Cash handed back to the customer
            payment: Dict with amount_paid, payment_summary, change_given,
                cheque_details, bank_transfer_details for a balance due
            vehicle_id: Vehicle the goods go back onto (defaults to the sale's)
            idempotency_key: Client token; resubmission returns the first result
            notes: Free text

        Returns:
            dict with success, message, return_id, return_transaction, replayed

        Raises:
            InvalidRequestError, EmptyTransactionError, NotFoundError,
            AlreadyCancelledError, ReturnQuantityExceededError,
            OutstandingBalanceExceededError, SettlementMismatchError,
            InsufficientStockError
        """
        if not sale_id or not staff_id:
            raise InvalidRequestError('Invalid request body. Missing required fields.')

        returned = []
        for item in returned_items or []:
            if not item.get('product_id'):
                raise InvalidRequestError('Every returned item needs a productId')
            returned.append({
                'product_id': str(item['product_id']),
                'sale_type': item.get('sale_type') or SaleType.RETAIL,
                'quantity': _quantity(item),
                'is_resellable': bool(item.get('is_resellable', True)),
            })

        exchanged = []
        for item in exchanged_items or []:
            if not item.get('product_id'):
                raise InvalidRequestError('Every exchanged item needs a productId')
            exchanged.append({
                'product_id': str(item['product_id']),
                'sale_type': item.get('sale_type') or SaleType.RETAIL,
                'quantity': _quantity(item),
                'applied_price': _amount(item.get('applied_price'), 'appliedPrice', allow_none=True),
            })

        for item in returned + exchanged:
            if item['sale_type'] not in SaleType.values:
                raise InvalidRequestError(f"Unknown sale type: {item['sale_type']}")

        settle = _amount(settle_outstanding_amount, 'settleOutstandingAmount')
        refund = _amount(refund_amount, 'refundAmount', allow_none=True)
        cash_out = _amount(cash_paid_out, 'cashPaidOut', allow_none=True)
        payment = payment or {}
        amount_paid = _amount(payment.get('amount_paid'), 'payment.amountPaid')
        change_given = _amount(payment.get('change_given'), 'payment.changeGiven')

        if (not returned and not exchanged
                and not refund and not cash_out and not settle):
            raise EmptyTransactionError()

        replay = ReturnService._find_replay(idempotency_key, sale_id)
        if replay:
            return replay

        try:
            return_txn, sale = ReturnService._settle(
                sale_id=sale_id,
                staff_id=staff_id,
                returned=returned,
                exchanged=exchanged,
                customer_id=customer_id,
                customer_name=customer_name,
                customer_shop_name=customer_shop_name,
                settle=settle,
                refund=refund,
                cash_out=cash_out,
                amount_paid=amount_paid,
                change_given=change_given,
                payment=payment,
                vehicle_id=vehicle_id,
                idempotency_key=idempotency_key or None,
                notes=notes,
            )
        except IntegrityError:
            # Lost a race with an identical submission
            replay = ReturnService._find_replay(idempotency_key, sale_id)
            if replay:
                return replay
            raise

        logger.info(
            f"Return {return_txn.id} processed for sale {sale.id}: "
            f"returned {return_txn.return_total_value}, exchanged {return_txn.exchange_total_value}, "
            f"difference {return_txn.final_difference}"
        )
        return {
            'success': True,
            'message': SUCCESS_MESSAGE,
            'return_id': return_txn.id,
            'return_transaction': return_txn,
            'replayed': False,
        }

    @staticmethod
    def _settle(
        sale_id, staff_id, returned, exchanged, customer_id, customer_name,
        customer_shop_name, settle, refund, cash_out, amount_paid, change_given,
        payment, vehicle_id, idempotency_key, notes,
    ):
        with UnitOfWork() as uow:
            # Sale first, then products in id order
            sale = uow.read(Sale, sale_id)
            if sale.is_cancelled:
                logger.warning(f"Attempted return on cancelled sale {sale.id}")
                raise AlreadyCancelledError(f"Sale {sale.id} is cancelled and cannot be returned against")

            if customer_id:
                try:
                    customer = Customer.objects.get(pk=customer_id)
                except (Customer.DoesNotExist, ValueError, TypeError):
                    raise NotFoundError(f"Customer with ID {customer_id} not found.")
            else:
                customer = sale.customer

            vehicle = uow.read(Vehicle, vehicle_id) if vehicle_id else sale.vehicle

            products = uow.read_products(
                [item['product_id'] for item in returned] + [item['product_id'] for item in exchanged]
            )
            sale_items = list(sale.items.all())

            # Value returned goods at what the customer paid
            returned_lines = []
            touched_lines = {}
            return_total = ZERO
            for item in returned:
                for line, quantity in ReturnService._allocate_returned(sale_items, item):
                    touched_lines[line.pk] = line
                    return_total += line.applied_price * quantity
                    returned_lines.append((item, line, quantity))

            exchange_lines = []
            exchange_total = ZERO
            for item in exchanged:
                product = products[item['product_id']]
                price = item['applied_price']
                if price is None:
                    price = product.price_for(item['sale_type'])
                exchange_total += price * item['quantity']
                exchange_lines.append((item, product, price))

            if settle > sale.outstanding_balance:
                raise OutstandingBalanceExceededError(
                    f"Cannot settle {settle}. Outstanding balance is only {sale.outstanding_balance}."
                )

            settlement = ReturnService.compute_settlement(return_total, exchange_total, settle)
            split = ReturnService.resolve_refund_split(settlement, refund, cash_out, amount_paid)

            return_id = next_return_id()
            reference = f"Return ID: {return_id}"

            if settle > ZERO:
                uow.add(SalePayment(
                    sale=sale,
                    amount=settle,
                    method=PaymentMethod.RETURN_CREDIT,
                    notes=f"Credit from Return ID: {return_id}",
                    staff_id=staff_id,
                ))
                uow.write(
                    sale,
                    total_amount_paid=sale.total_amount_paid + settle,
                    outstanding_balance=sale.outstanding_balance - settle,
                )

            # Returns go back before exchanges come out
            for item in returned:
                InventoryService.restore_stock(
                    uow, products[item['product_id']], item['quantity'],
                    vehicle=vehicle, resellable=item['is_resellable'],
                    user_id=staff_id, reference=reference,
                )

            exchange_vehicle = vehicle if pos_setting('VEHICLE_EXCHANGE_FROM_VEHICLE') else None
            for item, product, _ in exchange_lines:
                InventoryService.issue_stock(
                    uow, product, item['quantity'],
                    vehicle=exchange_vehicle, user_id=staff_id,
                    reference=f"Exchange in {reference}",
                )

            for line in touched_lines.values():
                uow.write(line, returned_quantity=line.returned_quantity)

            uow.write(sale, payment_summary=SaleService.build_payment_summary(sale))

            return_txn = uow.add(ReturnTransaction(
                id=return_id,
                original_sale=sale,
                customer=customer,
                customer_name=customer_name or (customer.name if customer else sale.customer_name),
                customer_shop_name=customer_shop_name or (customer.shop_name if customer else sale.customer_shop_name),
                vehicle=vehicle,
                staff_id=staff_id,
                return_total_value=settlement['return_total_value'],
                exchange_total_value=settlement['exchange_total_value'],
                final_difference=settlement['final_difference'],
                settle_outstanding_amount=settle,
                refund_amount=split['refund_amount'],
                cash_paid_out=split['cash_paid_out'],
                amount_paid=split['amount_paid'],
                payment_summary=payment.get('payment_summary') or '',
                change_given=change_given,
                cheque_details=payment.get('cheque_details'),
                bank_transfer_details=payment.get('bank_transfer_details'),
                outstanding_amount=split['outstanding_amount'],
                idempotency_key=idempotency_key,
                notes=notes or '',
            ))

            for item, line, quantity in returned_lines:
                uow.add(ReturnLineItem(
                    return_transaction=return_txn,
                    kind=ReturnLineItem.Kind.RETURNED,
                    product_id=line.product_id,
                    quantity=quantity,
                    applied_price=line.applied_price,
                    sale_type=line.sale_type,
                    is_resellable=item['is_resellable'],
                    product_name=line.product_name,
                    product_category=line.product_category,
                    product_price=line.product_price,
                    product_sku=line.product_sku,
                ))

            for item, product, price in exchange_lines:
                uow.add(ReturnLineItem(
                    return_transaction=return_txn,
                    kind=ReturnLineItem.Kind.EXCHANGED,
                    product=product,
                    quantity=item['quantity'],
                    applied_price=price,
                    sale_type=item['sale_type'],
                    product_name=product.name,
                    product_category=product.category,
                    product_price=product.price,
                    product_sku=product.sku,
                ))

            uow.on_commit(lambda: broadcast_return(return_txn))
            uow.on_commit(lambda: broadcast_sale(SALE_UPDATED, sale))

        return return_txn, sale
