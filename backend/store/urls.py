from django.urls import path
from .views import (
    ReturnCreateView, ReturnHistoryView,
    SaleListCreateView, SaleDetailView,
    CustomerListView, VehicleListView, customer_credit,
    ProductListView, StockTransactionListCreateView,
    ExpenseListCreateView, ExpenseDetailView,
    day_end_report, full_report, vehicle_report,
    LoginView,
)

urlpatterns = [
    # Returns & exchanges
    path('returns/', ReturnCreateView.as_view(), name='return-create'),
    path('returns/history/', ReturnHistoryView.as_view(), name='return-history'),
    # Sales
    path('sales/', SaleListCreateView.as_view(), name='sale-list'),
    path('sales/<str:sale_id>/', SaleDetailView.as_view(), name='sale-detail'),
    # Customers & vehicles
    path('customers/', CustomerListView.as_view(), name='customer-list'),
    path('customers/credit/', customer_credit, name='customer-credit'),
    path('vehicles/', VehicleListView.as_view(), name='vehicle-list'),
    # Inventory
    path('products/', ProductListView.as_view(), name='product-list'),
    path('stock-transactions/', StockTransactionListCreateView.as_view(), name='stock-transaction-list'),
    # Expenses
    path('expenses/', ExpenseListCreateView.as_view(), name='expense-list'),
    path('expenses/<int:pk>/', ExpenseDetailView.as_view(), name='expense-detail'),
    # Reports
    path('reports/day-end/', day_end_report, name='report-day-end'),
    path('reports/full/', full_report, name='report-full'),
    path('reports/vehicle/', vehicle_report, name='report-vehicle'),
    # Staff
    path('auth/login/', LoginView.as_view(), name='auth-login'),
]
