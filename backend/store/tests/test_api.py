from decimal import Decimal

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from store.models import Customer, Expense, Product, Sale, Vehicle
from store.services import SaleService


class StoreAPITestCase(APITestCase):

    def setUp(self):
        self.yogurt = Product.objects.create(
            id='prod001', name='Set Yogurt 80g', category=Product.Category.YOGURT,
            price=Decimal('1.50'), stock=10, sku='YOG-080',
        )
        self.choc_milk = Product.objects.create(
            id='prod004', name='Chocolate Milk 200ml', category=Product.Category.DRINK,
            price=Decimal('2.50'), stock=10, sku='MLK-C200',
        )
        self.customer = Customer.objects.create(name='Kamal Silva', shop_name='Silva Stores')
        self.vehicle = Vehicle.objects.create(vehicle_number='WP-CAB-1234')
        self.sale = SaleService.create_sale(
            items=[{'product_id': 'prod001', 'quantity': 2}],
            staff_id='cashier',
            customer_id=self.customer.pk,
            paid_amount_cash=Decimal('3.00'),
        )

    def return_payload(self, **overrides):
        payload = {
            'saleId': self.sale.id,
            'staffId': 'cashier',
            'returnedItems': [
                {'productId': 'prod001', 'saleType': 'retail', 'quantity': 1, 'isResellable': True}
            ],
            'exchangedItems': [],
        }
        payload.update(overrides)
        return payload


class ReturnAPITest(StoreAPITestCase):

    def test_process_return(self):
        response = self.client.post(reverse('return-create'), self.return_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['message'], 'Return/Exchange processed successfully and stock updated.')
        data = response.data['returnData']
        self.assertEqual(response.data['returnId'], data['id'])
        self.assertEqual(data['originalSaleId'], self.sale.id)
        self.assertEqual(data['returnTotalValue'], '1.50')
        self.assertEqual(data['finalDifference'], '-1.50')
        self.assertEqual(data['refundAmount'], '1.50')
        self.assertEqual(len(data['returnedItems']), 1)
        self.assertEqual(data['returnedItems'][0]['productId'], 'prod001')
        self.assertEqual(data['exchangedItems'], [])

        self.yogurt.refresh_from_db()
        self.assertEqual(self.yogurt.stock, 9)

    def test_exchange(self):
        payload = self.return_payload(
            exchangedItems=[{'productId': 'prod004', 'quantity': 1}],
            payment={'amountPaid': '1.00', 'paymentSummary': 'Cash'},
        )

        response = self.client.post(reverse('return-create'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['returnData']['finalDifference'], '1.00')
        self.assertEqual(response.data['returnData']['amountPaid'], '1.00')
        self.assertEqual(response.data['returnData']['paymentSummary'], 'Cash')

    def test_missing_fields(self):
        response = self.client.post(reverse('return-create'), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('saleId', response.data['details'])
        self.assertIn('staffId', response.data['details'])

    def test_empty_transaction(self):
        payload = self.return_payload(returnedItems=[])

        response = self.client.post(reverse('return-create'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Failed to process return.')

    def test_over_return(self):
        payload = self.return_payload(
            returnedItems=[{'productId': 'prod001', 'saleType': 'retail', 'quantity': 5}]
        )

        response = self.client.post(reverse('return-create'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('Cannot return 5', str(response.data['details']))

    def test_unknown_sale(self):
        response = self.client.post(
            reverse('return-create'), self.return_payload(saleId='sale-0000-1'), format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_cancelled_sale(self):
        SaleService.cancel_sale(self.sale.id, staff_id='admin')

        response = self.client.post(reverse('return-create'), self.return_payload(), format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_idempotent_resubmission(self):
        payload = self.return_payload(idempotencyKey='tablet-3-0042')

        first = self.client.post(reverse('return-create'), payload, format='json')
        second = self.client.post(reverse('return-create'), payload, format='json')

        self.assertEqual(first.data['returnId'], second.data['returnId'])
        self.yogurt.refresh_from_db()
        self.assertEqual(self.yogurt.stock, 9)

    def test_history_filter_by_sale(self):
        self.client.post(reverse('return-create'), self.return_payload(), format='json')
        other = SaleService.create_sale(
            items=[{'product_id': 'prod004', 'quantity': 1}], staff_id='cashier',
            paid_amount_cash=Decimal('2.50'),
        )

        response = self.client.get(reverse('return-history'), {'saleId': self.sale.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        response = self.client.get(reverse('return-history'), {'saleId': other.id})
        self.assertEqual(len(response.data), 0)


class SaleAPITest(StoreAPITestCase):

    def test_create_sale(self):
        payload = {
            'items': [{'productId': 'prod004', 'quantity': 2, 'saleType': 'retail'}],
            'staffId': 'cashier',
            'customerId': self.customer.pk,
            'paidAmountCash': '6.00',
        }

        response = self.client.post(reverse('sale-list'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['totalAmount'], '5.00')
        self.assertEqual(response.data['changeGiven'], '1.00')
        self.assertEqual(response.data['items'][0]['productId'], 'prod004')
        self.assertEqual(response.data['customerName'], 'Kamal Silva')

    def test_create_sale_insufficient_stock(self):
        payload = {
            'items': [{'productId': 'prod004', 'quantity': 50}],
            'staffId': 'cashier',
        }

        response = self.client.post(reverse('sale-list'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertIn('Insufficient stock', str(response.data['details']))

    def test_create_sale_requires_items(self):
        response = self.client.post(reverse('sale-list'), {'items': [], 'staffId': 'cashier'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_filter_by_customer(self):
        SaleService.create_sale(
            items=[{'product_id': 'prod004', 'quantity': 1}], staff_id='cashier',
            paid_amount_cash=Decimal('2.50'),
        )

        response = self.client.get(reverse('sale-list'), {'customerId': self.customer.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['id'], self.sale.id)

    def test_sale_detail(self):
        response = self.client.get(reverse('sale-detail', args=[self.sale.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['paymentSummary'], 'Cash')

        response = self.client.get(reverse('sale-detail', args=['sale-0000-9']))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_add_payment(self):
        sale = SaleService.create_sale(
            items=[{'product_id': 'prod004', 'quantity': 2}], staff_id='cashier',
            paid_amount_cash=Decimal('1.00'),
        )
        payload = {'paymentAmount': '4.00', 'paymentMethod': 'BankTransfer', 'staffId': 'cashier',
                   'details': {'referenceNumber': 'BT-9911'}}

        response = self.client.patch(reverse('sale-detail', args=[sale.id]), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['outstandingBalance'], '0.00')
        self.assertEqual(response.data['paymentSummary'], 'Cash + Bank Transfer')
        self.assertEqual(len(response.data['additionalPayments']), 1)

    def test_add_payment_over_outstanding(self):
        payload = {'paymentAmount': '1.00', 'paymentMethod': 'Cash', 'staffId': 'cashier'}

        response = self.client.patch(reverse('sale-detail', args=[self.sale.id]), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_add_payment_rejects_return_credit(self):
        sale = SaleService.create_sale(
            items=[{'product_id': 'prod001', 'quantity': 2}], staff_id='cashier',
        )
        payload = {'paymentAmount': '3.00', 'paymentMethod': 'ReturnCredit', 'staffId': 'cashier'}

        response = self.client.patch(reverse('sale-detail', args=[sale.id]), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        sale.refresh_from_db()
        self.assertEqual(sale.outstanding_balance, Decimal('3.00'))

    def test_cancel_sale_twice(self):
        url = reverse('sale-detail', args=[self.sale.id])

        response = self.client.delete(url, {'staffId': 'admin', 'reason': 'Duplicate'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['sale']['status'], Sale.Status.CANCELLED)
        self.yogurt.refresh_from_db()
        self.assertEqual(self.yogurt.stock, 10)

        response = self.client.delete(url, {'staffId': 'admin'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.yogurt.refresh_from_db()
        self.assertEqual(self.yogurt.stock, 10)


class CustomerCreditAPITest(StoreAPITestCase):

    def test_credit_after_refund(self):
        self.client.post(reverse('return-create'), self.return_payload(), format='json')

        response = self.client.get(reverse('customer-credit'), {'id': self.customer.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customerId'], self.customer.pk)
        self.assertEqual(response.data['availableCredit'], '1.50')
        self.assertEqual(response.data['outstandingBalance'], '0.00')

    def test_missing_and_unknown_customer(self):
        response = self.client.get(reverse('customer-credit'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse('customer-credit'), {'id': 99999})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class InventoryAPITest(StoreAPITestCase):

    def test_product_filters(self):
        url = reverse('product-list')

        self.assertEqual(len(self.client.get(url, {'q': 'yogurt'}).data), 1)
        self.assertEqual(len(self.client.get(url, {'category': 'Drink'}).data), 1)
        self.assertEqual(len(self.client.get(url, {'ids': 'prod001,prod004'}).data), 2)

        response = self.client.get(url, {'ids': 'prod001'})
        self.assertEqual(response.data[0]['stock'], 8)
        self.assertEqual(response.data[0]['stockStatus'], 'IN_STOCK')

    def test_record_and_list_stock_transactions(self):
        payload = {'productId': 'prod004', 'type': 'ADD_STOCK_INVENTORY', 'quantity': 5, 'userId': 'admin'}

        response = self.client.post(reverse('stock-transaction-list'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['previousStock'], 10)
        self.assertEqual(response.data['newStock'], 15)

        response = self.client.get(reverse('stock-transaction-list'), {'productId': 'prod004'})
        self.assertEqual(len(response.data), 1)

    def test_vehicle_load_requires_vehicle(self):
        payload = {'productId': 'prod004', 'type': 'LOAD_TO_VEHICLE', 'quantity': 5}

        response = self.client.post(reverse('stock-transaction-list'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_filter_by_vehicle(self):
        payload = {'productId': 'prod004', 'type': 'LOAD_TO_VEHICLE', 'quantity': 5, 'vehicleId': self.vehicle.pk}
        self.client.post(reverse('stock-transaction-list'), payload, format='json')

        response = self.client.get(reverse('stock-transaction-list'), {'vehicleId': self.vehicle.pk})

        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['type'], 'LOAD_TO_VEHICLE')


class ExpenseAPITest(StoreAPITestCase):

    def test_create_list_delete(self):
        payload = {'category': 'Fuel', 'amount': '12.50', 'staffId': 'driver', 'vehicleId': self.vehicle.pk}

        response = self.client.post(reverse('expense-list'), payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        expense_id = response.data['id']

        response = self.client.get(reverse('expense-list'))
        self.assertEqual(len(response.data), 1)

        response = self.client.delete(reverse('expense-detail', args=[expense_id]))
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Expense.objects.exists())

    def test_amount_must_be_positive(self):
        payload = {'category': 'Fuel', 'amount': '0', 'staffId': 'driver'}

        response = self.client.post(reverse('expense-list'), payload, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('amount', response.data['details'])


class ReportAPITest(StoreAPITestCase):

    def test_day_end(self):
        response = self.client.get(reverse('report-day-end'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_transactions'], 1)

    def test_day_end_bad_date(self):
        response = self.client.get(reverse('report-day-end'), {'date': '14/06/2025'})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_full_report_requires_range(self):
        response = self.client.get(reverse('report-full'), {'start_date': '2025-06-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse('report-full'), {'start_date': '2025-06-10', 'end_date': '2025-06-01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_vehicle_report(self):
        params = {'vehicle_id': self.vehicle.pk, 'start_date': '2025-06-01', 'end_date': '2025-06-14'}
        response = self.client.get(reverse('report-vehicle'), params)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['items'], [])

        params['vehicle_id'] = 9999
        response = self.client.get(reverse('report-vehicle'), params)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
