"""
Services package for store business logic.
"""
from .credit_service import CreditService
from .inventory_service import InventoryService
from .report_service import ReportService
from .return_service import ReturnService
from .sale_service import SaleService
from .unit_of_work import UnitOfWork

__all__ = [
    'CreditService',
    'InventoryService',
    'ReportService',
    'ReturnService',
    'SaleService',
    'UnitOfWork',
]
