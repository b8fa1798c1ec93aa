import logging

from django.utils.dateparse import parse_date
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, generics, status
from rest_framework.decorators import api_view
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import APIView

from .auth import get_user_repository
from .filters import (
    CustomerFilter, ExpenseFilter, ProductFilter, ReturnFilter, SaleFilter, StockTransactionFilter,
)
from .models import Customer, Expense, Product, ReturnTransaction, Sale, StockTransaction, Vehicle
from .serializers import (
    AddPaymentSerializer, CancelSaleSerializer, CustomerSerializer, ExpenseSerializer,
    LoginSerializer, ProductSerializer, ReturnCreateSerializer, ReturnTransactionSerializer,
    SaleCreateSerializer, SaleSerializer, StaffUserSerializer, StockTransactionCreateSerializer,
    StockTransactionSerializer, VehicleSerializer,
)
from .services import CreditService, InventoryService, ReportService, ReturnService, SaleService

logger = logging.getLogger(__name__)


def error_response(message, exc):
    """Render a service failure as {error, details} with the exception's status."""
    return Response(
        {'error': message, 'details': exc.detail},
        status=exc.status_code
    )


def validation_error(serializer):
    return Response(
        {'error': 'Invalid request body.', 'details': serializer.errors},
        status=status.HTTP_400_BAD_REQUEST
    )


def server_error(message, exc):
    logger.error(f"{message}: {exc}", exc_info=True)
    return Response(
        {'error': message, 'details': str(exc)},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def sale_queryset():
    return Sale.objects.select_related('customer', 'vehicle').prefetch_related(
        'items', 'additional_payments'
    )


def return_queryset():
    return ReturnTransaction.objects.select_related('original_sale', 'customer', 'vehicle').prefetch_related(
        'line_items'
    )


# ============================================================================
# Returns & Exchanges
# ============================================================================

class ReturnCreateView(APIView):
    """
    Process a return and/or exchange against a sale.

    POST /api/v1/returns/
    {
        "saleId": "sale-0614-3",
        "returnedItems": [{"productId": "prod001", "saleType": "retail", "quantity": 1, "isResellable": true}],
        "exchangedItems": [],
        "staffId": "cashier",
        "refundAmount": "1.50",
        "idempotencyKey": "tablet-7-000123"
    }

    Returns:
    - message, returnId, returnData (the saved return transaction)
    """

    def post(self, request, *args, **kwargs):
        serializer = ReturnCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        try:
            result = ReturnService.process_return(**serializer.validated_data)
        except APIException as e:
            return error_response('Failed to process return.', e)
        except Exception as e:
            return server_error('Failed to process return.', e)

        return_txn = return_queryset().get(pk=result['return_id'])
        return Response({
            'message': result['message'],
            'returnId': result['return_id'],
            'returnData': ReturnTransactionSerializer(return_txn).data,
        }, status=status.HTTP_200_OK)


class ReturnHistoryView(generics.ListAPIView):
    """
    List returns, newest first.

    Filters: saleId, customerId, vehicleId, start_date, end_date
    """
    serializer_class = ReturnTransactionSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = ReturnFilter
    search_fields = ['id', 'customer_name', 'customer_shop_name', 'original_sale__id']
    ordering_fields = ['return_date', 'created_at', 'final_difference']
    ordering = ['-return_date']

    def get_queryset(self):
        return return_queryset()


# ============================================================================
# Sales
# ============================================================================

class SaleListCreateView(generics.ListAPIView):
    """
    List sales or check out a new one.

    GET  /api/v1/sales/?customerId=3&status=active
    POST /api/v1/sales/  (see SaleCreateSerializer)
    """
    serializer_class = SaleSerializer
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = SaleFilter
    search_fields = ['id', 'customer_name', 'customer_shop_name']
    ordering_fields = ['sale_date', 'total_amount', 'outstanding_balance']
    ordering = ['-sale_date']

    def get_queryset(self):
        return sale_queryset()

    def post(self, request, *args, **kwargs):
        serializer = SaleCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        try:
            sale = SaleService.create_sale(**serializer.validated_data)
        except APIException as e:
            return error_response('Failed to create sale.', e)
        except Exception as e:
            return server_error('Failed to create sale.', e)

        return Response(
            SaleSerializer(sale_queryset().get(pk=sale.pk)).data,
            status=status.HTTP_201_CREATED
        )


class SaleDetailView(APIView):
    """
    GET    /api/v1/sales/<id>/  sale detail
    PATCH  /api/v1/sales/<id>/  record an additional payment
    DELETE /api/v1/sales/<id>/  cancel the sale and reverse its stock
    """

    def get(self, request, sale_id, *args, **kwargs):
        try:
            sale = sale_queryset().get(pk=sale_id)
        except Sale.DoesNotExist:
            return Response(
                {'error': f'Sale with ID {sale_id} not found.'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(SaleSerializer(sale).data)

    def patch(self, request, sale_id, *args, **kwargs):
        serializer = AddPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        try:
            SaleService.add_payment(sale_id=sale_id, **serializer.validated_data)
        except APIException as e:
            return error_response('Failed to add payment.', e)
        except Exception as e:
            return server_error('Failed to add payment.', e)

        return Response(SaleSerializer(sale_queryset().get(pk=sale_id)).data)

    def delete(self, request, sale_id, *args, **kwargs):
        data = request.data if request.data else request.query_params
        serializer = CancelSaleSerializer(data=data)
        if not serializer.is_valid():
            return validation_error(serializer)

        try:
            SaleService.cancel_sale(sale_id, **serializer.validated_data)
        except APIException as e:
            return error_response('Failed to cancel sale.', e)
        except Exception as e:
            return server_error('Failed to cancel sale.', e)

        return Response({
            'message': f'Sale {sale_id} cancelled and stock restored.',
            'sale': SaleSerializer(sale_queryset().get(pk=sale_id)).data,
        })


# ============================================================================
# Customers & Vehicles
# ============================================================================

class CustomerListView(generics.ListAPIView):
    serializer_class = CustomerSerializer
    queryset = Customer.objects.all()
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = CustomerFilter
    ordering = ['name']


class VehicleListView(generics.ListAPIView):
    serializer_class = VehicleSerializer
    queryset = Vehicle.objects.all()


@api_view(['GET'])
def customer_credit(request):
    """
    Available credit and outstanding balance for one customer.

    Usage:
    GET /api/v1/customers/credit/?id=3
    """
    customer_id = request.query_params.get('id')
    if not customer_id:
        return Response(
            {'error': 'Customer ID is required.'},
            status=status.HTTP_400_BAD_REQUEST
        )

    try:
        credit = CreditService.get_customer_credit(customer_id)
    except APIException as e:
        return error_response('Failed to fetch customer credit.', e)

    return Response({
        'customerId': credit['customer_id'],
        'customerName': credit['customer_name'],
        'availableCredit': str(credit['available_credit']),
        'outstandingBalance': str(credit['outstanding_balance']),
    })


# ============================================================================
# Inventory
# ============================================================================

class ProductListView(generics.ListAPIView):
    """
    List products.

    Filters: q (name/SKU/id), category, ids (comma-separated), low_stock
    """
    serializer_class = ProductSerializer
    queryset = Product.objects.all()
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = ProductFilter
    ordering_fields = ['name', 'stock', 'price', 'category']
    ordering = ['category', 'name']


class StockTransactionListCreateView(generics.ListAPIView):
    """
    Stock ledger.

    GET  /api/v1/stock-transactions/?vehicleId=2&type=LOAD_TO_VEHICLE
    POST /api/v1/stock-transactions/
    {
        "productId": "prod001",
        "type": "ADD_STOCK_INVENTORY",
        "quantity": 24,
        "userId": "admin",
        "notes": "Morning delivery"
    }
    """
    serializer_class = StockTransactionSerializer
    queryset = StockTransaction.objects.select_related('product', 'vehicle')
    filter_backends = [DjangoFilterBackend, filters.SearchFilter, filters.OrderingFilter]
    filterset_class = StockTransactionFilter
    search_fields = ['product_name', 'product_sku', 'notes']
    ordering_fields = ['transaction_date', 'quantity']
    ordering = ['-transaction_date', '-id']

    def post(self, request, *args, **kwargs):
        serializer = StockTransactionCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)

        try:
            stock_txn = InventoryService.record_stock_transaction(**serializer.validated_data)
        except APIException as e:
            return error_response('Failed to record stock transaction.', e)
        except Exception as e:
            return server_error('Failed to record stock transaction.', e)

        return Response(
            StockTransactionSerializer(stock_txn).data,
            status=status.HTTP_201_CREATED
        )


# ============================================================================
# Expenses
# ============================================================================

class ExpenseListCreateView(generics.ListCreateAPIView):
    serializer_class = ExpenseSerializer
    queryset = Expense.objects.select_related('vehicle')
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_class = ExpenseFilter
    ordering = ['-expense_date']

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        if not serializer.is_valid():
            return validation_error(serializer)
        expense = serializer.save()
        logger.info(f"Expense {expense.id} recorded: {expense.category} {expense.amount}")
        return Response(self.get_serializer(expense).data, status=status.HTTP_201_CREATED)


class ExpenseDetailView(generics.RetrieveDestroyAPIView):
    serializer_class = ExpenseSerializer
    queryset = Expense.objects.all()

    def perform_destroy(self, instance):
        logger.info(f"Expense {instance.id} deleted")
        instance.delete()


# ============================================================================
# Reports
# ============================================================================

def _parse_range(request):
    """Return (start_date, end_date, error_response)."""
    start_date_str = request.query_params.get('start_date')
    end_date_str = request.query_params.get('end_date')

    if not start_date_str or not end_date_str:
        return None, None, Response(
            {'error': 'Both start_date and end_date are required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    start_date = parse_date(start_date_str)
    end_date = parse_date(end_date_str)
    if not start_date or not end_date:
        return None, None, Response(
            {'error': 'Invalid date format. Use YYYY-MM-DD'},
            status=status.HTTP_400_BAD_REQUEST
        )
    if start_date > end_date:
        return None, None, Response(
            {'error': 'start_date must be before or equal to end_date'},
            status=status.HTTP_400_BAD_REQUEST
        )
    return start_date, end_date, None


@api_view(['GET'])
def day_end_report(request):
    """
    Day-end cash-up.

    Query params:
    - date: YYYY-MM-DD (defaults to today)

    Example:
    GET /api/v1/reports/day-end/?date=2025-06-14
    """
    date_str = request.query_params.get('date')
    if date_str:
        report_date = parse_date(date_str)
        if not report_date:
            return Response(
                {'error': 'Invalid date format. Use YYYY-MM-DD'},
                status=status.HTTP_400_BAD_REQUEST
            )
    else:
        report_date = None  # Will default to today

    try:
        return Response(ReportService.generate_day_end_report(report_date))
    except Exception as e:
        return server_error('Failed to generate report', e)


@api_view(['GET'])
def full_report(request):
    """
    Line-level sales, returns and samples for a date range.

    Example:
    GET /api/v1/reports/full/?start_date=2025-06-01&end_date=2025-06-14
    """
    start_date, end_date, error = _parse_range(request)
    if error:
        return error

    try:
        return Response(ReportService.generate_full_report(start_date, end_date))
    except Exception as e:
        return server_error('Failed to generate report', e)


@api_view(['GET'])
def vehicle_report(request):
    """
    Loaded vs unloaded quantities per product for one vehicle.

    Example:
    GET /api/v1/reports/vehicle/?vehicle_id=2&start_date=2025-06-01&end_date=2025-06-14
    """
    vehicle_id = request.query_params.get('vehicle_id')
    if not vehicle_id:
        return Response(
            {'error': 'vehicle_id is required'},
            status=status.HTTP_400_BAD_REQUEST
        )

    start_date, end_date, error = _parse_range(request)
    if error:
        return error

    try:
        return Response(ReportService.generate_vehicle_report(vehicle_id, start_date, end_date))
    except APIException as e:
        return error_response('Failed to generate report', e)
    except Exception as e:
        return server_error('Failed to generate report', e)


# ============================================================================
# Staff
# ============================================================================

class LoginView(APIView):
    """
    POST /api/v1/auth/login/
    {"username": "cashier", "password": "..."}

    Returns the staff user (without password) on success.
    """

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'error': 'Username and password are required.', 'details': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        user = get_user_repository().authenticate(
            serializer.validated_data['username'],
            serializer.validated_data['password']
        )
        if user is None:
            logger.warning(f"Failed login for {serializer.validated_data['username']}")
            return Response(
                {'error': 'Invalid username or password.'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        logger.info(f"Staff user {user.username} logged in")
        return Response({
            'message': 'Login successful',
            'user': StaffUserSerializer(user).data,
        })
