from django.contrib import admin
from django.utils.html import format_html

from .models import (
    Customer, Expense, Product, ReturnLineItem, ReturnTransaction, Sale, SaleItem,
    SalePayment, StaffUser, StockTransaction, Vehicle,
)


def badge(color, label):
    return format_html(
        '<span style="background-color: {}; color: white; padding: 3px 10px; border-radius: 3px;">{}</span>',
        color,
        label
    )


class AppendOnlyAdmin(admin.ModelAdmin):
    """Records that are written only by the services and never edited."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'category', 'price', 'wholesale_price', 'stock', 'stock_badge']
    list_filter = ['category']
    search_fields = ['id', 'name', 'sku']
    readonly_fields = ['stock', 'created_at', 'updated_at']

    fieldsets = (
        ('Product Information', {
            'fields': ('id', 'name', 'category', 'sku', 'description')
        }),
        ('Pricing', {
            'fields': ('price', 'wholesale_price')
        }),
        ('Inventory', {
            'fields': ('stock', 'reorder_level'),
            'description': 'Stock changes go through stock transactions'
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def stock_badge(self, obj):
        return badge(obj.get_stock_status_color(), obj.stock_status.replace('_', ' ').title())
    stock_badge.short_description = 'Stock Status'


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'shop_name', 'phone', 'status']
    list_filter = ['status']
    search_fields = ['name', 'shop_name', 'phone']


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ['vehicle_number', 'driver_name']
    search_fields = ['vehicle_number', 'driver_name']


@admin.register(StaffUser)
class StaffUserAdmin(admin.ModelAdmin):
    list_display = ['username', 'name', 'role', 'is_active']
    list_filter = ['role', 'is_active']
    search_fields = ['username', 'name']
    readonly_fields = ['password', 'created_at']


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    can_delete = False
    readonly_fields = [
        'product', 'product_name', 'quantity', 'applied_price', 'sale_type',
        'is_offer_item', 'returned_quantity'
    ]
    fields = readonly_fields


class SalePaymentInline(admin.TabularInline):
    model = SalePayment
    extra = 0
    can_delete = False
    readonly_fields = ['amount', 'method', 'payment_date', 'staff_id', 'notes']
    fields = readonly_fields


@admin.register(Sale)
class SaleAdmin(AppendOnlyAdmin):
    list_display = [
        'id', 'customer_name', 'sale_date', 'total_amount',
        'outstanding_display', 'status_badge', 'vehicle'
    ]
    list_filter = ['status', 'vehicle', 'sale_date']
    search_fields = ['id', 'customer_name', 'customer_shop_name']
    date_hierarchy = 'sale_date'
    inlines = [SaleItemInline, SalePaymentInline]

    def status_badge(self, obj):
        if obj.is_cancelled:
            return badge('#EF4444', 'Cancelled')
        return badge('#10B981', 'Active')
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    def outstanding_display(self, obj):
        if obj.outstanding_balance > 0:
            return format_html('<span style="color: #F59E0B;">{}</span>', obj.outstanding_balance)
        return obj.outstanding_balance
    outstanding_display.short_description = 'Outstanding'
    outstanding_display.admin_order_field = 'outstanding_balance'


class ReturnLineItemInline(admin.TabularInline):
    model = ReturnLineItem
    extra = 0
    can_delete = False
    readonly_fields = ['kind', 'product', 'product_name', 'quantity', 'applied_price', 'sale_type', 'is_resellable']
    fields = readonly_fields


@admin.register(ReturnTransaction)
class ReturnTransactionAdmin(AppendOnlyAdmin):
    list_display = [
        'id', 'original_sale', 'customer_name', 'return_date',
        'return_total_value', 'exchange_total_value', 'difference_badge'
    ]
    list_filter = ['return_date', 'vehicle']
    search_fields = ['id', 'original_sale__id', 'customer_name']
    inlines = [ReturnLineItemInline]

    def difference_badge(self, obj):
        if obj.final_difference > 0:
            return badge('#F59E0B', f'Due {obj.final_difference}')
        if obj.final_difference < 0:
            return badge('#3B82F6', f'Refund {-obj.final_difference}')
        return badge('#6B7280', 'Even')
    difference_badge.short_description = 'Difference'
    difference_badge.admin_order_field = 'final_difference'


@admin.register(StockTransaction)
class StockTransactionAdmin(AppendOnlyAdmin):
    list_display = [
        'transaction_date', 'product_name', 'type_badge', 'quantity',
        'previous_stock', 'new_stock', 'vehicle', 'user_id'
    ]
    list_filter = ['type', 'vehicle', 'transaction_date']
    search_fields = ['product_name', 'product_sku', 'notes']
    date_hierarchy = 'transaction_date'

    def type_badge(self, obj):
        colors = {
            StockTransaction.Type.ADD_STOCK_INVENTORY: '#10B981',
            StockTransaction.Type.LOAD_TO_VEHICLE: '#3B82F6',
            StockTransaction.Type.UNLOAD_FROM_VEHICLE: '#8B5CF6',
            StockTransaction.Type.REMOVE_STOCK_WASTAGE: '#EF4444',
            StockTransaction.Type.STOCK_ADJUSTMENT_MANUAL: '#F59E0B',
            StockTransaction.Type.ISSUE_SAMPLE: '#6B7280',
        }
        return badge(colors.get(obj.type, '#6B7280'), obj.get_type_display())
    type_badge.short_description = 'Type'
    type_badge.admin_order_field = 'type'


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['expense_date', 'category', 'amount', 'staff_id', 'vehicle']
    list_filter = ['category', 'vehicle']
    search_fields = ['category', 'description']
    date_hierarchy = 'expense_date'
