"""
Custom exceptions for the Dairy POS system.
"""

from rest_framework.exceptions import APIException
from rest_framework import status


class InvalidRequestError(APIException):
    """
    Exception raised when a required field is missing or the payload is malformed.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid request body. Missing required fields.'
    default_code = 'invalid_request'


class EmptyTransactionError(APIException):
    """
    Exception raised for a return request with no items and no financial impact.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Cannot process an empty transaction with no financial impact.'
    default_code = 'empty_transaction'


class NotFoundError(APIException):
    """
    Exception raised when a referenced sale, product, customer or vehicle does not exist.
    """
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'The requested record was not found.'
    default_code = 'not_found'


class AlreadyCancelledError(APIException):
    """
    Exception raised when acting on a sale that has already been cancelled.
    Cancelled sales are locked against payments, returns and re-cancellation.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This sale has already been cancelled.'
    default_code = 'already_cancelled'


class InsufficientStockError(APIException):
    """
    Exception raised when an operation would drive product stock below zero.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Insufficient stock for this operation.'
    default_code = 'insufficient_stock'


class ReturnQuantityExceededError(APIException):
    """
    Exception raised when returning more than was sold on a sale line.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Returned quantity exceeds the quantity sold.'
    default_code = 'return_quantity_exceeded'


class OutstandingBalanceExceededError(APIException):
    """
    Exception raised when settling more than a sale's outstanding balance.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Settlement amount exceeds the outstanding balance.'
    default_code = 'outstanding_balance_exceeded'


class SettlementMismatchError(APIException):
    """
    Exception raised when refund or payment figures do not match the computed settlement.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Refund and payment amounts do not match the settlement.'
    default_code = 'settlement_mismatch'


class InsufficientCreditError(APIException):
    """
    Exception raised when a sale tries to use more customer credit than is available.
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Insufficient customer credit available.'
    default_code = 'insufficient_credit'
