from decimal import Decimal

from rest_framework import serializers

from .models import (
    Customer, Expense, PaymentMethod, Product, ReturnLineItem, ReturnTransaction,
    Sale, SaleItem, SalePayment, SaleType, StaffUser, StockTransaction, Vehicle,
)

MIN_ZERO = Decimal('0.00')
MIN_CENT = Decimal('0.01')

# ReturnCredit is only written by return settlement
COLLECTED_PAYMENT_METHODS = [
    choice for choice in PaymentMethod.choices if choice[0] != PaymentMethod.RETURN_CREDIT
]


def money(source=None, **kwargs):
    """Read-only two-decimal money field."""
    return serializers.DecimalField(
        source=source, max_digits=12, decimal_places=2, read_only=True, **kwargs
    )


def money_input(source=None, **kwargs):
    kwargs.setdefault('min_value', MIN_ZERO)
    return serializers.DecimalField(source=source, max_digits=12, decimal_places=2, **kwargs)


# ============================================================================
# Catalog
# ============================================================================

class ProductSerializer(serializers.ModelSerializer):
    """Product with stock status for POS and inventory screens."""
    wholesalePrice = serializers.DecimalField(
        source='wholesale_price', max_digits=10, decimal_places=2, read_only=True, allow_null=True
    )
    reorderLevel = serializers.IntegerField(source='reorder_level', read_only=True)
    stockStatus = serializers.CharField(source='stock_status', read_only=True)
    stockStatusColor = serializers.CharField(source='get_stock_status_color', read_only=True)
    isLowStock = serializers.BooleanField(source='is_low_stock', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Product
        fields = [
            'id', 'name', 'category', 'price', 'wholesalePrice', 'stock',
            'reorderLevel', 'stockStatus', 'stockStatusColor', 'isLowStock',
            'sku', 'description', 'createdAt', 'updatedAt'
        ]
        read_only_fields = fields


class CustomerSerializer(serializers.ModelSerializer):
    shopName = serializers.CharField(source='shop_name', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Customer
        fields = ['id', 'name', 'phone', 'shopName', 'address', 'status', 'createdAt']
        read_only_fields = fields


class VehicleSerializer(serializers.ModelSerializer):
    vehicleNumber = serializers.CharField(source='vehicle_number', read_only=True)
    driverName = serializers.CharField(source='driver_name', read_only=True)

    class Meta:
        model = Vehicle
        fields = ['id', 'vehicleNumber', 'driverName', 'notes']
        read_only_fields = fields


# ============================================================================
# Sales
# ============================================================================

class SaleItemSerializer(serializers.ModelSerializer):
    productId = serializers.CharField(source='product_id', read_only=True)
    productName = serializers.CharField(source='product_name', read_only=True)
    productCategory = serializers.CharField(source='product_category', read_only=True)
    productPrice = money('product_price')
    productSku = serializers.CharField(source='product_sku', read_only=True)
    appliedPrice = money('applied_price')
    saleType = serializers.CharField(source='sale_type', read_only=True)
    isOfferItem = serializers.BooleanField(source='is_offer_item', read_only=True)
    returnedQuantity = serializers.IntegerField(source='returned_quantity', read_only=True)
    lineTotal = money('line_total')

    class Meta:
        model = SaleItem
        fields = [
            'productId', 'productName', 'productCategory', 'productPrice', 'productSku',
            'quantity', 'appliedPrice', 'saleType', 'isOfferItem', 'returnedQuantity', 'lineTotal'
        ]
        read_only_fields = fields


class SalePaymentSerializer(serializers.ModelSerializer):
    paymentDate = serializers.DateTimeField(source='payment_date', read_only=True)
    staffId = serializers.CharField(source='staff_id', read_only=True)
    amount = money()

    class Meta:
        model = SalePayment
        fields = ['id', 'amount', 'method', 'paymentDate', 'notes', 'details', 'staffId']
        read_only_fields = fields


class SaleSerializer(serializers.ModelSerializer):
    """Full sale record including lines and later payments."""
    customerId = serializers.IntegerField(source='customer_id', read_only=True, allow_null=True)
    customerName = serializers.CharField(source='customer_name', read_only=True)
    customerShopName = serializers.CharField(source='customer_shop_name', read_only=True)
    items = SaleItemSerializer(many=True, read_only=True)
    subTotal = money('sub_total')
    discountPercentage = money('discount_percentage')
    discountAmount = money('discount_amount')
    totalAmount = money('total_amount')
    paidAmountCash = money('paid_amount_cash')
    paidAmountCheque = money('paid_amount_cheque')
    chequeDetails = serializers.JSONField(source='cheque_details', read_only=True)
    paidAmountBankTransfer = money('paid_amount_bank_transfer')
    bankTransferDetails = serializers.JSONField(source='bank_transfer_details', read_only=True)
    creditUsed = money('credit_used')
    changeGiven = money('change_given')
    totalAmountPaid = money('total_amount_paid')
    outstandingBalance = money('outstanding_balance')
    initialOutstandingBalance = money('initial_outstanding_balance')
    paymentSummary = serializers.CharField(source='payment_summary', read_only=True)
    additionalPayments = SalePaymentSerializer(source='additional_payments', many=True, read_only=True)
    vehicleId = serializers.IntegerField(source='vehicle_id', read_only=True, allow_null=True)
    offerApplied = serializers.BooleanField(source='offer_applied', read_only=True)
    saleDate = serializers.DateTimeField(source='sale_date', read_only=True)
    staffId = serializers.CharField(source='staff_id', read_only=True)
    cancelledAt = serializers.DateTimeField(source='cancelled_at', read_only=True)
    cancellationReason = serializers.CharField(source='cancellation_reason', read_only=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = Sale
        fields = [
            'id', 'customerId', 'customerName', 'customerShopName', 'items',
            'subTotal', 'discountPercentage', 'discountAmount', 'totalAmount',
            'paidAmountCash', 'paidAmountCheque', 'chequeDetails',
            'paidAmountBankTransfer', 'bankTransferDetails', 'creditUsed', 'changeGiven',
            'totalAmountPaid', 'outstandingBalance', 'initialOutstandingBalance',
            'paymentSummary', 'additionalPayments', 'status', 'vehicleId', 'offerApplied',
            'saleDate', 'staffId', 'cancelledAt', 'cancellationReason', 'createdAt', 'updatedAt'
        ]
        read_only_fields = fields


class SaleItemInputSerializer(serializers.Serializer):
    productId = serializers.CharField(source='product_id')
    quantity = serializers.IntegerField(min_value=1)
    saleType = serializers.ChoiceField(choices=SaleType.choices, default=SaleType.RETAIL, source='sale_type')
    appliedPrice = money_input('applied_price', required=False, allow_null=True)
    isOfferItem = serializers.BooleanField(default=False, source='is_offer_item')


class SaleCreateSerializer(serializers.Serializer):
    """
    Checkout payload.

    Example:
    {
        "items": [{"productId": "prod001", "quantity": 2, "saleType": "retail"}],
        "customerId": 3,
        "discountPercentage": "5.00",
        "paidAmountCash": "10.00",
        "staffId": "cashier"
    }
    """
    items = SaleItemInputSerializer(many=True, allow_empty=False)
    staffId = serializers.CharField(source='staff_id')
    customerId = serializers.IntegerField(source='customer_id', required=False, allow_null=True)
    customerName = serializers.CharField(source='customer_name', required=False, allow_blank=True, default='')
    customerShopName = serializers.CharField(source='customer_shop_name', required=False, allow_blank=True, default='')
    vehicleId = serializers.IntegerField(source='vehicle_id', required=False, allow_null=True)
    discountPercentage = serializers.DecimalField(
        source='discount_percentage', max_digits=5, decimal_places=2,
        min_value=MIN_ZERO, max_value=Decimal('100.00'), default=MIN_ZERO
    )
    paidAmountCash = money_input('paid_amount_cash', default=MIN_ZERO)
    paidAmountCheque = money_input('paid_amount_cheque', default=MIN_ZERO)
    chequeDetails = serializers.JSONField(source='cheque_details', required=False, allow_null=True)
    paidAmountBankTransfer = money_input('paid_amount_bank_transfer', default=MIN_ZERO)
    bankTransferDetails = serializers.JSONField(source='bank_transfer_details', required=False, allow_null=True)
    creditUsed = money_input('credit_used', default=MIN_ZERO)
    saleDate = serializers.DateTimeField(source='sale_date', required=False, allow_null=True)


class AddPaymentSerializer(serializers.Serializer):
    paymentAmount = money_input('amount', min_value=MIN_CENT)
    paymentMethod = serializers.ChoiceField(choices=COLLECTED_PAYMENT_METHODS, source='method')
    paymentDate = serializers.DateTimeField(source='payment_date', required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    details = serializers.JSONField(required=False, allow_null=True)
    staffId = serializers.CharField(source='staff_id')


class CancelSaleSerializer(serializers.Serializer):
    staffId = serializers.CharField(source='staff_id', required=False, allow_blank=True, default='')
    reason = serializers.CharField(required=False, allow_blank=True, default='')


# ============================================================================
# Returns
# ============================================================================

class ReturnLineItemSerializer(serializers.ModelSerializer):
    productId = serializers.CharField(source='product_id', read_only=True)
    productName = serializers.CharField(source='product_name', read_only=True)
    productCategory = serializers.CharField(source='product_category', read_only=True)
    productPrice = money('product_price')
    productSku = serializers.CharField(source='product_sku', read_only=True)
    appliedPrice = money('applied_price')
    saleType = serializers.CharField(source='sale_type', read_only=True)
    isResellable = serializers.BooleanField(source='is_resellable', read_only=True, allow_null=True)
    lineTotal = money('line_total')

    class Meta:
        model = ReturnLineItem
        fields = [
            'productId', 'productName', 'productCategory', 'productPrice', 'productSku',
            'quantity', 'appliedPrice', 'saleType', 'isResellable', 'lineTotal'
        ]
        read_only_fields = fields


class ReturnTransactionSerializer(serializers.ModelSerializer):
    """Return/exchange receipt data."""
    originalSaleId = serializers.CharField(source='original_sale_id', read_only=True)
    customerId = serializers.IntegerField(source='customer_id', read_only=True, allow_null=True)
    customerName = serializers.CharField(source='customer_name', read_only=True)
    customerShopName = serializers.CharField(source='customer_shop_name', read_only=True)
    vehicleId = serializers.IntegerField(source='vehicle_id', read_only=True, allow_null=True)
    returnDate = serializers.DateTimeField(source='return_date', read_only=True)
    staffId = serializers.CharField(source='staff_id', read_only=True)
    returnedItems = serializers.SerializerMethodField()
    exchangedItems = serializers.SerializerMethodField()
    returnTotalValue = money('return_total_value')
    exchangeTotalValue = money('exchange_total_value')
    finalDifference = money('final_difference')
    settleOutstandingAmount = money('settle_outstanding_amount')
    refundAmount = money('refund_amount')
    cashPaidOut = money('cash_paid_out')
    amountPaid = money('amount_paid')
    paymentSummary = serializers.CharField(source='payment_summary', read_only=True)
    changeGiven = money('change_given')
    chequeDetails = serializers.JSONField(source='cheque_details', read_only=True)
    bankTransferDetails = serializers.JSONField(source='bank_transfer_details', read_only=True)
    outstandingAmount = money('outstanding_amount')
    idempotencyKey = serializers.CharField(source='idempotency_key', read_only=True, allow_null=True)
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = ReturnTransaction
        fields = [
            'id', 'originalSaleId', 'customerId', 'customerName', 'customerShopName',
            'vehicleId', 'returnDate', 'staffId', 'returnedItems', 'exchangedItems',
            'returnTotalValue', 'exchangeTotalValue', 'finalDifference',
            'settleOutstandingAmount', 'refundAmount', 'cashPaidOut',
            'amountPaid', 'paymentSummary', 'changeGiven', 'chequeDetails',
            'bankTransferDetails', 'outstandingAmount', 'idempotencyKey', 'notes', 'createdAt'
        ]
        read_only_fields = fields

    def _lines(self, obj, kind):
        lines = [line for line in obj.line_items.all() if line.kind == kind]
        return ReturnLineItemSerializer(lines, many=True).data

    def get_returnedItems(self, obj):
        return self._lines(obj, ReturnLineItem.Kind.RETURNED)

    def get_exchangedItems(self, obj):
        return self._lines(obj, ReturnLineItem.Kind.EXCHANGED)


class ReturnedItemInputSerializer(serializers.Serializer):
    productId = serializers.CharField(source='product_id')
    saleType = serializers.ChoiceField(choices=SaleType.choices, default=SaleType.RETAIL, source='sale_type')
    quantity = serializers.IntegerField(min_value=1)
    isResellable = serializers.BooleanField(default=True, source='is_resellable')


class ExchangedItemInputSerializer(serializers.Serializer):
    productId = serializers.CharField(source='product_id')
    saleType = serializers.ChoiceField(choices=SaleType.choices, default=SaleType.RETAIL, source='sale_type')
    quantity = serializers.IntegerField(min_value=1)
    appliedPrice = money_input('applied_price', required=False, allow_null=True)


class ReturnPaymentInputSerializer(serializers.Serializer):
    amountPaid = money_input('amount_paid', default=MIN_ZERO)
    paymentSummary = serializers.CharField(source='payment_summary', required=False, allow_blank=True, default='')
    changeGiven = money_input('change_given', default=MIN_ZERO)
    chequeDetails = serializers.JSONField(source='cheque_details', required=False, allow_null=True)
    bankTransferDetails = serializers.JSONField(source='bank_transfer_details', required=False, allow_null=True)


class ReturnCreateSerializer(serializers.Serializer):
    """
    Return/exchange payload.

    Example:
    {
        "saleId": "sale-0614-3",
        "returnedItems": [{"productId": "prod001", "saleType": "retail", "quantity": 1, "isResellable": true}],
        "exchangedItems": [{"productId": "prod004", "quantity": 1}],
        "staffId": "cashier",
        "settleOutstandingAmount": "0.00",
        "payment": {"amountPaid": "1.00", "paymentSummary": "Cash"}
    }
    """
    saleId = serializers.CharField(source='sale_id')
    staffId = serializers.CharField(source='staff_id')
    returnedItems = ReturnedItemInputSerializer(source='returned_items', many=True, required=False, default=list)
    exchangedItems = ExchangedItemInputSerializer(source='exchanged_items', many=True, required=False, default=list)
    customerId = serializers.IntegerField(source='customer_id', required=False, allow_null=True)
    customerName = serializers.CharField(source='customer_name', required=False, allow_blank=True, default='')
    customerShopName = serializers.CharField(source='customer_shop_name', required=False, allow_blank=True, default='')
    settleOutstandingAmount = money_input('settle_outstanding_amount', required=False, allow_null=True)
    refundAmount = money_input('refund_amount', required=False, allow_null=True)
    cashPaidOut = money_input('cash_paid_out', required=False, allow_null=True)
    payment = ReturnPaymentInputSerializer(required=False, allow_null=True)
    vehicleId = serializers.IntegerField(source='vehicle_id', required=False, allow_null=True)
    idempotencyKey = serializers.CharField(source='idempotency_key', required=False, allow_blank=True, max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


# ============================================================================
# Inventory & Expenses
# ============================================================================

class StockTransactionSerializer(serializers.ModelSerializer):
    """Serializer for stock transactions (audit trail)."""
    productId = serializers.CharField(source='product_id', read_only=True)
    productName = serializers.CharField(source='product_name', read_only=True)
    productSku = serializers.CharField(source='product_sku', read_only=True)
    typeDisplay = serializers.CharField(source='get_type_display', read_only=True)
    previousStock = serializers.IntegerField(source='previous_stock', read_only=True)
    newStock = serializers.IntegerField(source='new_stock', read_only=True)
    transactionDate = serializers.DateTimeField(source='transaction_date', read_only=True)
    vehicleId = serializers.IntegerField(source='vehicle_id', read_only=True, allow_null=True)
    userId = serializers.CharField(source='user_id', read_only=True)
    startMeter = serializers.IntegerField(source='start_meter', read_only=True, allow_null=True)
    endMeter = serializers.IntegerField(source='end_meter', read_only=True, allow_null=True)

    class Meta:
        model = StockTransaction
        fields = [
            'id', 'productId', 'productName', 'productSku', 'type', 'typeDisplay',
            'quantity', 'previousStock', 'newStock', 'transactionDate', 'notes',
            'vehicleId', 'userId', 'startMeter', 'endMeter'
        ]
        read_only_fields = fields


class StockTransactionCreateSerializer(serializers.Serializer):
    productId = serializers.CharField(source='product_id')
    type = serializers.ChoiceField(choices=StockTransaction.Type.choices, source='txn_type')
    quantity = serializers.IntegerField(min_value=1)
    vehicleId = serializers.IntegerField(source='vehicle_id', required=False, allow_null=True)
    userId = serializers.CharField(source='user_id', required=False, allow_blank=True, default='')
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    transactionDate = serializers.DateTimeField(source='transaction_date', required=False, allow_null=True)
    startMeter = serializers.IntegerField(source='start_meter', required=False, allow_null=True, min_value=0)
    endMeter = serializers.IntegerField(source='end_meter', required=False, allow_null=True, min_value=0)

    def validate(self, data):
        start, end = data.get('start_meter'), data.get('end_meter')
        if start is not None and end is not None and end < start:
            raise serializers.ValidationError('endMeter cannot be less than startMeter')
        return data


class ExpenseSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=MIN_CENT)
    expenseDate = serializers.DateTimeField(source='expense_date', required=False)
    staffId = serializers.CharField(source='staff_id')
    vehicleId = serializers.PrimaryKeyRelatedField(
        source='vehicle', queryset=Vehicle.objects.all(), required=False, allow_null=True
    )
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)

    class Meta:
        model = Expense
        fields = ['id', 'category', 'amount', 'description', 'expenseDate', 'staffId', 'vehicleId', 'createdAt']
        read_only_fields = ['id', 'createdAt']


# ============================================================================
# Staff
# ============================================================================

class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(trim_whitespace=False)


class StaffUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = StaffUser
        fields = ['id', 'username', 'name', 'role']
        read_only_fields = fields
