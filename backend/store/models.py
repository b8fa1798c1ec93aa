from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from utils.constants import STOCK_STATUS_COLORS, ZERO


class DocumentCounter(models.Model):
    """
    Monotonic counters backing human readable document IDs.

    Keys are either daily (``sales-2025-06-14``) or global (``returns``).
    Incremented inside the caller's database transaction so a rolled back
    sale or return does not consume a number.
    """
    key = models.CharField(max_length=50, unique=True)
    count = models.PositiveIntegerField(default=0)

    class Meta:
        verbose_name = 'Document Counter'
        verbose_name_plural = 'Document Counters'

    def __str__(self):
        return f"{self.key}: {self.count}"


# ============================================================
# CATALOG & PEOPLE
# ============================================================

class Product(models.Model):
    """
    Dairy product with its current main-inventory stock level.

    Stock held on vehicles is not tracked here; vehicle movements only
    leave an audit trail in StockTransaction.
    """

    class Category(models.TextChoices):
        YOGURT = 'Yogurt', 'Yogurt'
        DRINK = 'Drink', 'Drink'
        ICE_CREAM = 'Ice Cream', 'Ice Cream'
        DESSERT = 'Dessert', 'Dessert'
        CURD = 'Curd', 'Curd'
        OTHER = 'Other', 'Other'

    id = models.CharField(
        primary_key=True,
        max_length=40,
        help_text="Product ID (e.g., prod-0614-3)"
    )
    name = models.CharField(max_length=200)
    category = models.CharField(
        max_length=20,
        choices=Category.choices,
        default=Category.OTHER
    )
    price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Retail selling price"
    )
    wholesale_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Wholesale price (falls back to retail price when empty)"
    )
    stock = models.IntegerField(
        default=0,
        help_text="Current main inventory stock level"
    )
    reorder_level = models.IntegerField(
        default=10,
        help_text="Minimum stock level before reorder alert"
    )
    sku = models.CharField(max_length=100, blank=True, db_index=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = 'Product'
        verbose_name_plural = 'Products'
        indexes = [
            models.Index(fields=['category']),
            models.Index(fields=['name']),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(stock__gte=0),
                name='product_stock_non_negative',
                violation_error_message='Stock cannot be negative'
            ),
        ]

    def __str__(self):
        return f"{self.id} - {self.name}"

    def save(self, *args, **kwargs):
        if not self.id:
            from store.services.numbering import next_product_id
            self.id = next_product_id()
        super().save(*args, **kwargs)

    @property
    def is_low_stock(self):
        """Check if product is at or below reorder level"""
        return self.stock <= self.reorder_level

    @property
    def stock_status(self):
        if self.stock <= 0:
            return 'OUT_OF_STOCK'
        if self.stock <= self.reorder_level:
            return 'LOW_STOCK'
        return 'IN_STOCK'

    def get_stock_status_color(self):
        return STOCK_STATUS_COLORS.get(self.stock_status, '#6B7280')

    def price_for(self, sale_type):
        """Default unit price for a retail or wholesale line."""
        if sale_type == SaleType.WHOLESALE and self.wholesale_price is not None:
            return self.wholesale_price
        return self.price

    def clean(self):
        """Validate product data"""
        super().clean()

        if self.price is not None and self.price < ZERO:
            raise ValidationError({
                'price': 'Price cannot be negative'
            })

        if self.wholesale_price is not None and self.wholesale_price < ZERO:
            raise ValidationError({
                'wholesale_price': 'Wholesale price cannot be negative'
            })

        if self.stock < 0:
            raise ValidationError({
                'stock': 'Stock cannot be negative'
            })


class Customer(models.Model):
    """
    Shop or individual buying from the distributor.

    Available credit and outstanding balance are derived from sales and
    returns by CreditService, never stored here.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        PENDING = 'pending', 'Pending'

    name = models.CharField(max_length=255)
    phone = models.CharField(max_length=50, blank=True)
    shop_name = models.CharField(max_length=255, blank=True)
    address = models.TextField(blank=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        if self.shop_name:
            return f"{self.name} ({self.shop_name})"
        return self.name


class Vehicle(models.Model):
    """Distribution vehicle that carries a load of stock on its route."""
    vehicle_number = models.CharField(max_length=50, unique=True)
    driver_name = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['vehicle_number']

    def __str__(self):
        return self.vehicle_number


class StaffUser(models.Model):
    """
    POS operator account.

    Passwords are stored with Django's password hashers and checked
    through store.auth.UserRepository.
    """

    class Role(models.TextChoices):
        ADMIN = 'admin', 'Admin'
        CASHIER = 'cashier', 'Cashier'

    username = models.CharField(max_length=150, unique=True)
    name = models.CharField(max_length=255)
    role = models.CharField(max_length=10, choices=Role.choices, default=Role.CASHIER)
    password = models.CharField(max_length=255)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['username']
        verbose_name = 'Staff User'
        verbose_name_plural = 'Staff Users'

    def __str__(self):
        return f"{self.username} ({self.role})"

    def save(self, *args, **kwargs):
        self.username = self.username.lower()
        super().save(*args, **kwargs)


# ============================================================
# SALES
# ============================================================

class SaleType(models.TextChoices):
    RETAIL = 'retail', 'Retail'
    WHOLESALE = 'wholesale', 'Wholesale'


class PaymentMethod(models.TextChoices):
    CASH = 'Cash', 'Cash'
    CHEQUE = 'Cheque', 'Cheque'
    BANK_TRANSFER = 'BankTransfer', 'Bank Transfer'
    RETURN_CREDIT = 'ReturnCredit', 'Return Credit'


class Sale(models.Model):
    """
    Completed point-of-sale checkout.

    Sales are never deleted. Later mutations are limited to additional
    payments, return bookkeeping (returned quantities, outstanding
    settlement) and cancellation.
    """

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        CANCELLED = 'cancelled', 'Cancelled'

    id = models.CharField(
        primary_key=True,
        max_length=40,
        help_text="Sale ID (e.g., sale-0614-12)"
    )
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='sales'
    )
    customer_name = models.CharField(max_length=255, blank=True)
    customer_shop_name = models.CharField(max_length=255, blank=True)

    sub_total = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=ZERO)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    # Payment breakdown at checkout
    paid_amount_cash = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    paid_amount_cheque = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    cheque_details = models.JSONField(
        null=True,
        blank=True,
        help_text="Cheque number, bank, date and amount"
    )
    paid_amount_bank_transfer = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    bank_transfer_details = models.JSONField(
        null=True,
        blank=True,
        help_text="Bank name and reference number"
    )
    credit_used = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Customer account credit applied to this sale"
    )
    change_given = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    total_amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    outstanding_balance = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    initial_outstanding_balance = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Outstanding balance at checkout (credit issued)"
    )
    payment_summary = models.CharField(max_length=255, blank=True)

    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE,
        db_index=True
    )
    vehicle = models.ForeignKey(
        Vehicle,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='sales',
        help_text="Set when stock was sold off a vehicle load"
    )
    offer_applied = models.BooleanField(default=False)
    sale_date = models.DateTimeField(default=timezone.now, db_index=True)
    staff_id = models.CharField(max_length=150)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-sale_date']
        indexes = [
            models.Index(fields=['-sale_date']),
            models.Index(fields=['customer', 'status']),
        ]

    def __str__(self):
        return f"Sale {self.id} of {self.total_amount}"

    @property
    def is_cancelled(self):
        return self.status == self.Status.CANCELLED

    @property
    def is_vehicle_sale(self):
        return self.vehicle_id is not None

    def clean(self):
        super().clean()

        if self.outstanding_balance < ZERO:
            raise ValidationError({
                'outstanding_balance': 'Outstanding balance cannot be negative'
            })


class SaleItem(models.Model):
    """
    One line of a sale.

    Product name, category, price and SKU are copied at checkout so
    receipts and reports survive later catalog edits.
    """
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name='items')
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='sale_items')
    quantity = models.PositiveIntegerField()
    applied_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Unit price actually charged"
    )
    sale_type = models.CharField(max_length=10, choices=SaleType.choices, default=SaleType.RETAIL)
    is_offer_item = models.BooleanField(default=False)
    returned_quantity = models.PositiveIntegerField(
        default=0,
        help_text="Units already taken back through returns"
    )

    product_name = models.CharField(max_length=200)
    product_category = models.CharField(max_length=20, blank=True)
    product_price = models.DecimalField(max_digits=10, decimal_places=2)
    product_sku = models.CharField(max_length=100, blank=True)

    class Meta:
        ordering = ['id']
        constraints = [
            models.CheckConstraint(
                condition=models.Q(returned_quantity__lte=models.F('quantity')),
                name='sale_item_returned_within_sold',
                violation_error_message='Returned quantity cannot exceed quantity sold'
            ),
        ]

    def __str__(self):
        return f"{self.quantity}x {self.product_name} (Sale: {self.sale_id})"

    @property
    def line_total(self):
        return self.applied_price * self.quantity

    @property
    def remaining_quantity(self):
        """Units still held by the customer"""
        return self.quantity - self.returned_quantity


class SalePayment(models.Model):
    """Payment received against a sale after checkout."""
    sale = models.ForeignKey(Sale, on_delete=models.CASCADE, related_name='additional_payments')
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_date = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True)
    details = models.JSONField(
        null=True,
        blank=True,
        help_text="Cheque or bank transfer details"
    )
    staff_id = models.CharField(max_length=150)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['payment_date', 'id']
        indexes = [
            models.Index(fields=['payment_date']),
            models.Index(fields=['method']),
        ]

    def __str__(self):
        return f"{self.get_method_display()} payment of {self.amount} on {self.sale_id}"

    def clean(self):
        super().clean()

        if self.amount <= ZERO:
            raise ValidationError({
                'amount': 'Amount must be greater than zero'
            })


# ============================================================
# RETURNS & EXCHANGES
# ============================================================

class ReturnTransaction(models.Model):
    """
    Immutable record of one return/exchange event against a sale.

    Holds every figure of the settlement verbatim for receipts and audit.
    ``refund_amount`` feeds the customer's available credit.
    """
    id = models.CharField(
        primary_key=True,
        max_length=40,
        help_text="Return ID (e.g., RET-250614-0007)"
    )
    original_sale = models.ForeignKey(Sale, on_delete=models.PROTECT, related_name='returns')
    customer = models.ForeignKey(
        Customer,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='returns'
    )
    customer_name = models.CharField(max_length=255, blank=True)
    customer_shop_name = models.CharField(max_length=255, blank=True)
    vehicle = models.ForeignKey(
        Vehicle,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='returns'
    )
    return_date = models.DateTimeField(default=timezone.now, db_index=True)
    staff_id = models.CharField(max_length=150)

    return_total_value = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    exchange_total_value = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    final_difference = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Positive: balance due from customer. Negative: refund due."
    )
    settle_outstanding_amount = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    refund_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Credit added to the customer's account"
    )
    cash_paid_out = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)

    # Payment collected for a balance due
    amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    payment_summary = models.CharField(max_length=255, blank=True)
    change_given = models.DecimalField(max_digits=12, decimal_places=2, default=ZERO)
    cheque_details = models.JSONField(null=True, blank=True)
    bank_transfer_details = models.JSONField(null=True, blank=True)
    outstanding_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text="Balance due left unpaid by the customer"
    )

    idempotency_key = models.CharField(
        max_length=100,
        unique=True,
        null=True,
        blank=True,
        help_text="Client token that makes resubmission safe"
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-return_date']
        indexes = [
            models.Index(fields=['-return_date']),
            models.Index(fields=['customer']),
        ]

    def __str__(self):
        return f"Return {self.id} on sale {self.original_sale_id}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Return transactions are immutable once recorded')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Return transactions cannot be deleted')

    @property
    def balance_due(self):
        return max(self.final_difference, ZERO)

    @property
    def refund_due(self):
        return max(-self.final_difference, ZERO)


class ReturnLineItem(models.Model):
    """A returned or exchanged product line within a ReturnTransaction."""

    class Kind(models.TextChoices):
        RETURNED = 'RETURNED', 'Returned'
        EXCHANGED = 'EXCHANGED', 'Exchanged'

    return_transaction = models.ForeignKey(
        ReturnTransaction,
        on_delete=models.CASCADE,
        related_name='line_items'
    )
    kind = models.CharField(max_length=10, choices=Kind.choices)
    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='return_lines')
    quantity = models.PositiveIntegerField()
    applied_price = models.DecimalField(max_digits=10, decimal_places=2)
    sale_type = models.CharField(max_length=10, choices=SaleType.choices, default=SaleType.RETAIL)
    is_resellable = models.BooleanField(
        null=True,
        blank=True,
        help_text="Returned lines only: restock when true, wastage when false"
    )

    product_name = models.CharField(max_length=200)
    product_category = models.CharField(max_length=20, blank=True)
    product_price = models.DecimalField(max_digits=10, decimal_places=2)
    product_sku = models.CharField(max_length=100, blank=True)

    class Meta:
        ordering = ['id']

    def __str__(self):
        return f"{self.get_kind_display()}: {self.quantity}x {self.product_name}"

    @property
    def line_total(self):
        return self.applied_price * self.quantity


# ============================================================
# INVENTORY LEDGER
# ============================================================

class StockTransaction(models.Model):
    """
    Append-only audit trail of stock movements.

    Vehicle loads and unloads tied to sales and returns record
    previous_stock == new_stock because main inventory is untouched.
    """

    class Type(models.TextChoices):
        ADD_STOCK_INVENTORY = 'ADD_STOCK_INVENTORY', 'Add Stock to Inventory'
        LOAD_TO_VEHICLE = 'LOAD_TO_VEHICLE', 'Load to Vehicle'
        UNLOAD_FROM_VEHICLE = 'UNLOAD_FROM_VEHICLE', 'Unload from Vehicle'
        REMOVE_STOCK_WASTAGE = 'REMOVE_STOCK_WASTAGE', 'Remove Stock (Wastage)'
        STOCK_ADJUSTMENT_MANUAL = 'STOCK_ADJUSTMENT_MANUAL', 'Manual Stock Adjustment'
        ISSUE_SAMPLE = 'ISSUE_SAMPLE', 'Issue Sample'

    product = models.ForeignKey(Product, on_delete=models.PROTECT, related_name='stock_transactions')
    product_name = models.CharField(max_length=200)
    product_sku = models.CharField(max_length=100, blank=True)
    type = models.CharField(max_length=30, choices=Type.choices, db_index=True)
    quantity = models.PositiveIntegerField()
    previous_stock = models.IntegerField(help_text="Main stock before the movement")
    new_stock = models.IntegerField(help_text="Main stock after the movement")
    transaction_date = models.DateTimeField(default=timezone.now, db_index=True)
    notes = models.TextField(blank=True)
    vehicle = models.ForeignKey(
        Vehicle,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='stock_transactions'
    )
    user_id = models.CharField(max_length=150, blank=True)
    start_meter = models.PositiveIntegerField(null=True, blank=True, help_text="Odometer at load")
    end_meter = models.PositiveIntegerField(null=True, blank=True, help_text="Odometer at unload")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-transaction_date', '-id']
        verbose_name = 'Stock Transaction'
        verbose_name_plural = 'Stock Transactions'
        indexes = [
            models.Index(fields=['-transaction_date']),
            models.Index(fields=['product', '-transaction_date']),
            models.Index(fields=['vehicle', '-transaction_date']),
        ]

    def __str__(self):
        return f"{self.get_type_display()}: {self.quantity} {self.product_name}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError('Stock transactions are append-only')
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError('Stock transactions cannot be deleted')

    @property
    def stock_change(self):
        return self.new_stock - self.previous_stock


# ============================================================
# EXPENSES
# ============================================================

class Expense(models.Model):
    """Operating expense paid out of the day's cash."""
    category = models.CharField(max_length=100)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    description = models.TextField(blank=True)
    expense_date = models.DateTimeField(default=timezone.now, db_index=True)
    staff_id = models.CharField(max_length=150)
    vehicle = models.ForeignKey(
        Vehicle,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='expenses'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-expense_date']

    def __str__(self):
        return f"{self.category}: {self.amount}"

    def clean(self):
        super().clean()

        if self.amount is not None and self.amount <= Decimal('0.00'):
            raise ValidationError({
                'amount': 'Amount must be greater than zero'
            })
