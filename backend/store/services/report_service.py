"""
Reporting Service

Read-only rollups over sales, returns, payments, expenses and the stock
ledger. Reports are built on demand and never stored.

Reports:
- Day-end: money in and out for one business day
- Full: line-level sales/returns/samples for a date range
- Vehicle: loaded vs unloaded quantities per product for one vehicle
"""

import logging
from collections import OrderedDict
from datetime import datetime, time, timedelta

from django.db.models import Q, Sum
from django.utils import timezone

from store.models import (
    Expense, PaymentMethod, ReturnLineItem, ReturnTransaction, Sale, SaleItem,
    SalePayment, StockTransaction, Vehicle,
)
from utils.constants import ZERO, quantize_money
from utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def _day_bounds(report_date):
    """Aware [start, end) datetimes for a local calendar day."""
    tz = timezone.get_current_timezone()
    start = timezone.make_aware(datetime.combine(report_date, time.min), tz)
    return start, start + timedelta(days=1)


def _range_bounds(start_date, end_date):
    start, _ = _day_bounds(start_date)
    _, end = _day_bounds(end_date)
    return start, end


def _sum(queryset, field):
    return queryset.aggregate(total=Sum(field))['total'] or ZERO


class ReportService:

    @staticmethod
    def generate_day_end_report(report_date=None) -> dict:
        """
        Day-end cash-up for one day.

        Args:
            report_date: Date to report on (defaults to today)

        Returns:
            Dictionary of totals; money values are Decimals
        """
        if report_date is None:
            report_date = timezone.localdate()

        start, end = _day_bounds(report_date)

        day_sales = Sale.objects.filter(sale_date__gte=start, sale_date__lt=end)
        active_sales = day_sales.filter(status=Sale.Status.ACTIVE)
        day_payments = SalePayment.objects.filter(
            payment_date__gte=start, payment_date__lt=end,
            sale__status=Sale.Status.ACTIVE,
        )
        day_returns = ReturnTransaction.objects.filter(return_date__gte=start, return_date__lt=end)
        day_expenses = Expense.objects.filter(expense_date__gte=start, expense_date__lt=end)
        day_samples = StockTransaction.objects.filter(
            type=StockTransaction.Type.ISSUE_SAMPLE,
            transaction_date__gte=start, transaction_date__lt=end,
        )

        gross_sales = _sum(active_sales, 'sub_total')
        discounts = _sum(active_sales, 'discount_amount')

        returns_on_today_sales = day_returns.filter(
            original_sale__sale_date__gte=start, original_sale__sale_date__lt=end
        )
        refunds_for_today_sales = _sum(returns_on_today_sales, 'return_total_value')
        refunds_for_past_sales = _sum(day_returns, 'return_total_value') - refunds_for_today_sales

        cash_in = _sum(active_sales, 'paid_amount_cash') + _sum(
            day_payments.filter(method=PaymentMethod.CASH), 'amount'
        )
        cheque_in = _sum(active_sales, 'paid_amount_cheque') + _sum(
            day_payments.filter(method=PaymentMethod.CHEQUE), 'amount'
        )
        bank_in = _sum(active_sales, 'paid_amount_bank_transfer') + _sum(
            day_payments.filter(method=PaymentMethod.BANK_TRANSFER), 'amount'
        )
        return_payments_in = _sum(day_returns, 'amount_paid')

        cash_paid_out = _sum(day_returns, 'cash_paid_out')
        expenses = _sum(day_expenses, 'amount')

        new_credit = _sum(active_sales, 'initial_outstanding_balance')
        still_outstanding = _sum(active_sales, 'outstanding_balance')

        cheque_numbers = []
        bank_refs = []
        for sale in active_sales.only('cheque_details', 'bank_transfer_details'):
            if sale.cheque_details and sale.cheque_details.get('number'):
                cheque_numbers.append(sale.cheque_details['number'])
            if sale.bank_transfer_details and sale.bank_transfer_details.get('referenceNumber'):
                bank_refs.append(sale.bank_transfer_details['referenceNumber'])
        for payment in day_payments.exclude(details__isnull=True):
            if payment.method == PaymentMethod.CHEQUE and payment.details.get('number'):
                cheque_numbers.append(payment.details['number'])
            if payment.method == PaymentMethod.BANK_TRANSFER and payment.details.get('referenceNumber'):
                bank_refs.append(payment.details['referenceNumber'])

        report = {
            'report_date': report_date.isoformat(),
            'total_transactions': active_sales.count(),
            'cancelled_sales_count': day_sales.filter(status=Sale.Status.CANCELLED).count(),
            'gross_sales_value': quantize_money(gross_sales),
            'total_discounts': quantize_money(discounts),
            'refunds_for_today_sales': quantize_money(refunds_for_today_sales),
            'refunds_for_past_sales': quantize_money(refunds_for_past_sales),
            'net_sales_value': quantize_money(gross_sales - discounts - refunds_for_today_sales - refunds_for_past_sales),
            'total_cash_in': quantize_money(cash_in),
            'total_cheque_in': quantize_money(cheque_in),
            'total_bank_transfer_in': quantize_money(bank_in),
            'total_credit_used': quantize_money(_sum(active_sales, 'credit_used')),
            'total_change_given': quantize_money(_sum(active_sales, 'change_given')),
            'returns_count': day_returns.count(),
            'total_exchange_value': quantize_money(_sum(day_returns, 'exchange_total_value')),
            'total_return_payments_in': quantize_money(return_payments_in),
            'total_refund_credit_issued': quantize_money(_sum(day_returns, 'refund_amount')),
            'total_refunds_paid_today': quantize_money(cash_paid_out),
            'outstanding_settled_by_returns': quantize_money(_sum(day_returns, 'settle_outstanding_amount')),
            'total_expenses': quantize_money(expenses),
            'net_cash_in_hand': quantize_money(cash_in - cash_paid_out - expenses),
            'new_credit_issued': quantize_money(new_credit),
            'paid_against_new_credit': quantize_money(new_credit - still_outstanding),
            'net_outstanding_from_today': quantize_money(still_outstanding),
            'cheque_numbers': cheque_numbers,
            'bank_transfer_refs': bank_refs,
            'credit_sales_count': active_sales.filter(initial_outstanding_balance__gt=ZERO).count(),
            'samples_issued_count': day_samples.aggregate(total=Sum('quantity'))['total'] or 0,
            'sample_transactions_count': day_samples.count(),
        }

        logger.info(
            f"Day-end report for {report_date}: {report['total_transactions']} sales, "
            f"cash in hand {report['net_cash_in_hand']}"
        )
        return report

    @staticmethod
    def generate_full_report(start_date, end_date) -> dict:
        """
        Line-level report of sales, returns and samples in a date range.

        Returned lines carry negative quantity and line total; exchanged
        lines are positive. Cancelled sales are excluded.

        Returns:
            {
                'start_date', 'end_date',
                'entries': [...],
                'category_totals': {category: {'quantity', 'value'}},
                'totals': {'sales_value', 'returns_value', 'exchange_value', 'net_value'}
            }
        """
        start, end = _range_bounds(start_date, end_date)
        entries = []

        sale_items = SaleItem.objects.filter(
            sale__sale_date__gte=start, sale__sale_date__lt=end,
            sale__status=Sale.Status.ACTIVE,
        ).select_related('sale').order_by('sale__sale_date', 'id')

        for item in sale_items:
            sale = item.sale
            local_dt = timezone.localtime(sale.sale_date)
            entries.append({
                'transaction_id': sale.id,
                'transaction_type': 'Sale',
                'transaction_date': local_dt.date().isoformat(),
                'transaction_time': local_dt.strftime('%H:%M'),
                'related_id': None,
                'customer_name': sale.customer_name or 'Walk-in Customer',
                'product_id': item.product_id,
                'product_name': item.product_name,
                'product_category': item.product_category,
                'quantity': item.quantity,
                'applied_price': item.applied_price,
                'line_total': quantize_money(item.line_total),
                'sale_type': item.sale_type,
                'is_offer_item': item.is_offer_item,
                'payment_summary': sale.payment_summary,
                'staff_id': sale.staff_id,
            })

        return_lines = ReturnLineItem.objects.filter(
            return_transaction__return_date__gte=start,
            return_transaction__return_date__lt=end,
        ).select_related('return_transaction').order_by('return_transaction__return_date', 'id')

        for line in return_lines:
            ret = line.return_transaction
            local_dt = timezone.localtime(ret.return_date)
            sign = -1 if line.kind == ReturnLineItem.Kind.RETURNED else 1
            entries.append({
                'transaction_id': ret.id,
                'transaction_type': 'Return',
                'transaction_date': local_dt.date().isoformat(),
                'transaction_time': local_dt.strftime('%H:%M'),
                'related_id': ret.original_sale_id,
                'customer_name': ret.customer_name or 'Walk-in Customer',
                'product_id': line.product_id,
                'product_name': line.product_name,
                'product_category': line.product_category,
                'quantity': sign * line.quantity,
                'applied_price': line.applied_price,
                'line_total': quantize_money(sign * line.line_total),
                'sale_type': line.sale_type,
                'is_offer_item': False,
                'payment_summary': ret.payment_summary,
                'staff_id': ret.staff_id,
            })

        samples = StockTransaction.objects.filter(
            type=StockTransaction.Type.ISSUE_SAMPLE,
            transaction_date__gte=start, transaction_date__lt=end,
        ).select_related('product').order_by('transaction_date')

        for sample in samples:
            local_dt = timezone.localtime(sample.transaction_date)
            entries.append({
                'transaction_id': str(sample.id),
                'transaction_type': 'Sample',
                'transaction_date': local_dt.date().isoformat(),
                'transaction_time': local_dt.strftime('%H:%M'),
                'related_id': None,
                'customer_name': sample.notes or 'N/A',
                'product_id': sample.product_id,
                'product_name': sample.product_name,
                'product_category': sample.product.category,
                'quantity': sample.quantity,
                'applied_price': ZERO,
                'line_total': ZERO,
                'sale_type': None,
                'is_offer_item': False,
                'payment_summary': 'Sample',
                'staff_id': sample.user_id,
            })

        entries.sort(key=lambda e: (e['transaction_date'], e['transaction_time']))

        category_totals = OrderedDict()
        sales_value = returns_value = exchange_value = ZERO
        for entry in entries:
            bucket = category_totals.setdefault(
                entry['product_category'] or 'Other', {'quantity': 0, 'value': ZERO}
            )
            bucket['quantity'] += entry['quantity']
            bucket['value'] += entry['line_total']
            if entry['transaction_type'] == 'Sale':
                sales_value += entry['line_total']
            elif entry['transaction_type'] == 'Return':
                if entry['line_total'] < ZERO:
                    returns_value += -entry['line_total']
                else:
                    exchange_value += entry['line_total']

        return {
            'start_date': start_date.isoformat(),
            'end_date': end_date.isoformat(),
            'entries': entries,
            'category_totals': category_totals,
            'totals': {
                'sales_value': quantize_money(sales_value),
                'returns_value': quantize_money(returns_value),
                'exchange_value': quantize_money(exchange_value),
                'net_value': quantize_money(sales_value - returns_value + exchange_value),
            },
        }

    @staticmethod
    def generate_vehicle_report(vehicle_id, start_date, end_date) -> dict:
        """
        Loaded and unloaded quantities per product for one vehicle.

        Raises:
            NotFoundError: If the vehicle does not exist
        """
        try:
            vehicle = Vehicle.objects.get(pk=vehicle_id)
        except (Vehicle.DoesNotExist, ValueError, TypeError):
            raise NotFoundError(f"Vehicle with ID {vehicle_id} not found.")

        start, end = _range_bounds(start_date, end_date)
        Type = StockTransaction.Type

        rows = StockTransaction.objects.filter(
            vehicle=vehicle,
            type__in=[Type.LOAD_TO_VEHICLE, Type.UNLOAD_FROM_VEHICLE],
            transaction_date__gte=start,
            transaction_date__lt=end,
        ).values('product_id', 'product_name', 'product_sku').annotate(
            total_loaded=Sum('quantity', filter=Q(type=Type.LOAD_TO_VEHICLE)),
            total_unloaded=Sum('quantity', filter=Q(type=Type.UNLOAD_FROM_VEHICLE)),
        ).order_by('product_name')

        items = []
        for row in rows:
            loaded = row['total_loaded'] or 0
            unloaded = row['total_unloaded'] or 0
            items.append({
                'product_id': row['product_id'],
                'product_name': row['product_name'],
                'product_sku': row['product_sku'],
                'total_loaded': loaded,
                'total_unloaded': unloaded,
                'net_change': loaded - unloaded,
            })

        return {
            'vehicle_id': vehicle.pk,
            'vehicle_number': vehicle.vehicle_number,
            'start_date': start_date.isoformat(),
            'end_date': end_date.isoformat(),
            'items': items,
        }
