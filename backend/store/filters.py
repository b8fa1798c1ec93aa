from django.db.models import Q
from django_filters import rest_framework as filters

from .models import Customer, Expense, Product, ReturnTransaction, Sale, StockTransaction


class CharInFilter(filters.BaseInFilter, filters.CharFilter):
    pass


class ProductFilter(filters.FilterSet):
    """
    Product catalog filtering.

    Available filters:
    - Text search: q (name, SKU or id)
    - category, low_stock
    - ids: comma-separated product ids
    """
    q = filters.CharFilter(
        method='filter_q',
        help_text="Match name, SKU or id"
    )
    category = filters.ChoiceFilter(
        choices=Product.Category.choices,
        help_text="Product category"
    )
    ids = CharInFilter(
        field_name='id',
        lookup_expr='in',
        help_text="Comma-separated product ids"
    )
    low_stock = filters.BooleanFilter(
        method='filter_low_stock',
        help_text="Only products at or below their reorder level"
    )

    class Meta:
        model = Product
        fields = ['q', 'category', 'ids', 'low_stock']

    def filter_q(self, queryset, name, value):
        return queryset.filter(
            Q(name__icontains=value) | Q(sku__icontains=value) | Q(id__icontains=value)
        )

    def filter_low_stock(self, queryset, name, value):
        from django.db.models import F

        if value is True:
            return queryset.filter(stock__lte=F('reorder_level'))
        elif value is False:
            return queryset.filter(stock__gt=F('reorder_level'))
        return queryset


class CustomerFilter(filters.FilterSet):
    q = filters.CharFilter(method='filter_q', help_text="Match name, shop name or phone")
    status = filters.ChoiceFilter(choices=Customer.Status.choices)

    class Meta:
        model = Customer
        fields = ['q', 'status']

    def filter_q(self, queryset, name, value):
        return queryset.filter(
            Q(name__icontains=value) | Q(shop_name__icontains=value) | Q(phone__icontains=value)
        )


class SaleFilter(filters.FilterSet):
    """
    Sale history filtering.

    Available filters:
    - Date range: start_date, end_date (sale_date)
    - customerId, vehicleId, status
    - has_outstanding: sales with a balance still owed
    """
    start_date = filters.DateTimeFilter(
        field_name='sale_date',
        lookup_expr='gte',
        help_text="Sales on or after this timestamp"
    )
    end_date = filters.DateTimeFilter(
        field_name='sale_date',
        lookup_expr='lte',
        help_text="Sales on or before this timestamp"
    )
    customerId = filters.NumberFilter(field_name='customer_id')
    vehicleId = filters.NumberFilter(field_name='vehicle_id')
    status = filters.ChoiceFilter(choices=Sale.Status.choices)
    has_outstanding = filters.BooleanFilter(
        method='filter_has_outstanding',
        help_text="True for sales with an outstanding balance"
    )

    class Meta:
        model = Sale
        fields = ['start_date', 'end_date', 'customerId', 'vehicleId', 'status', 'has_outstanding']

    def filter_has_outstanding(self, queryset, name, value):
        if value is True:
            return queryset.filter(outstanding_balance__gt=0)
        elif value is False:
            return queryset.filter(outstanding_balance=0)
        return queryset


class ReturnFilter(filters.FilterSet):
    saleId = filters.CharFilter(field_name='original_sale_id')
    customerId = filters.NumberFilter(field_name='customer_id')
    vehicleId = filters.NumberFilter(field_name='vehicle_id')
    start_date = filters.DateTimeFilter(field_name='return_date', lookup_expr='gte')
    end_date = filters.DateTimeFilter(field_name='return_date', lookup_expr='lte')

    class Meta:
        model = ReturnTransaction
        fields = ['saleId', 'customerId', 'vehicleId', 'start_date', 'end_date']


class StockTransactionFilter(filters.FilterSet):
    """
    Stock ledger filtering.

    Available filters:
    - Date range: start_date, end_date (transaction_date)
    - productId, vehicleId, type
    """
    start_date = filters.DateTimeFilter(field_name='transaction_date', lookup_expr='gte')
    end_date = filters.DateTimeFilter(field_name='transaction_date', lookup_expr='lte')
    productId = filters.CharFilter(field_name='product_id')
    vehicleId = filters.NumberFilter(field_name='vehicle_id')
    type = filters.MultipleChoiceFilter(
        choices=StockTransaction.Type.choices,
        help_text="One or more transaction types"
    )

    class Meta:
        model = StockTransaction
        fields = ['start_date', 'end_date', 'productId', 'vehicleId', 'type']


class ExpenseFilter(filters.FilterSet):
    start_date = filters.DateTimeFilter(field_name='expense_date', lookup_expr='gte')
    end_date = filters.DateTimeFilter(field_name='expense_date', lookup_expr='lte')
    category = filters.CharFilter(lookup_expr='iexact')
    vehicleId = filters.NumberFilter(field_name='vehicle_id')
    staffId = filters.CharFilter(field_name='staff_id')

    class Meta:
        model = Expense
        fields = ['start_date', 'end_date', 'category', 'vehicleId', 'staffId']
