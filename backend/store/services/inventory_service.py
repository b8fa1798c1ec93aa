"""
Inventory Ledger Service

Owns every change to Product.stock and every StockTransaction row.

Business Rules:
1. Main stock never goes below zero; a debit that would do so fails with
   InsufficientStockError and the surrounding unit of work rolls back
2. ADD_STOCK_INVENTORY and UNLOAD_FROM_VEHICLE increase main stock
3. LOAD_TO_VEHICLE, REMOVE_STOCK_WASTAGE, STOCK_ADJUSTMENT_MANUAL and
   ISSUE_SAMPLE decrease main stock
4. Stock sold off or returned to a vehicle never touches main stock; it is
   recorded as an audit row with previous_stock == new_stock
5. Stock transactions are append-only
"""

import logging

from django.utils import timezone

from store.conf import pos_setting
from store.models import Product, StockTransaction, Vehicle
from store.services.unit_of_work import UnitOfWork
from utils.exceptions import InsufficientStockError, InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)

Type = StockTransaction.Type

VEHICLE_TYPES = (Type.LOAD_TO_VEHICLE, Type.UNLOAD_FROM_VEHICLE)


class InventoryService:
    """
    Stock primitives shared by checkout, returns, cancellation and manual
    stock entry. All primitives expect products already locked by the
    caller's UnitOfWork.
    """

    @staticmethod
    def stock_direction(txn_type: str) -> int:
        """
        Sign of the main-stock change for a manually recorded transaction.

        Returns:
            +1 for increasing types, -1 for decreasing types

        Raises:
            InvalidRequestError: If the type is not a known StockTransaction type
        """
        if txn_type == Type.ADD_STOCK_INVENTORY:
            return 1
        elif txn_type == Type.UNLOAD_FROM_VEHICLE:
            return 1
        elif txn_type == Type.LOAD_TO_VEHICLE:
            return -1
        elif txn_type == Type.REMOVE_STOCK_WASTAGE:
            return -1
        elif txn_type == Type.STOCK_ADJUSTMENT_MANUAL:
            return -1
        elif txn_type == Type.ISSUE_SAMPLE:
            return -1
        raise InvalidRequestError(f"Unknown stock transaction type: {txn_type}")

    @staticmethod
    def audit(
        uow: UnitOfWork,
        product: Product,
        txn_type: str,
        quantity: int,
        previous_stock: int,
        new_stock: int,
        vehicle: Vehicle = None,
        user_id: str = '',
        notes: str = '',
        transaction_date=None,
        start_meter: int = None,
        end_meter: int = None,
    ) -> StockTransaction:
        """Append one StockTransaction row."""
        return uow.add(StockTransaction(
            product=product,
            product_name=product.name,
            product_sku=product.sku,
            type=txn_type,
            quantity=quantity,
            previous_stock=previous_stock,
            new_stock=new_stock,
            transaction_date=transaction_date or timezone.now(),
            notes=notes or '',
            vehicle=vehicle,
            user_id=user_id or '',
            start_meter=start_meter,
            end_meter=end_meter,
        ))

    @staticmethod
    def debit(uow: UnitOfWork, product: Product, quantity: int) -> tuple:
        """
        Take units out of main stock.

        Returns:
            (previous_stock, new_stock)

        Raises:
            InsufficientStockError: If stock would go negative
        """
        previous = product.stock
        if quantity > previous:
            logger.warning(
                f"Insufficient stock for {product.id}: requested {quantity}, available {previous}"
            )
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}. Available: {previous}, Requested: {quantity}"
            )
        uow.write(product, stock=previous - quantity)
        return previous, product.stock

    @staticmethod
    def credit(uow: UnitOfWork, product: Product, quantity: int) -> tuple:
        """
        Put units back into main stock.

        Returns:
            (previous_stock, new_stock)
        """
        previous = product.stock
        uow.write(product, stock=previous + quantity)
        return previous, product.stock

    @staticmethod
    def issue_stock(
        uow: UnitOfWork,
        product: Product,
        quantity: int,
        vehicle: Vehicle = None,
        user_id: str = '',
        reference: str = '',
    ):
        """
        Hand units to a customer for a sale or exchange.

        Vehicle-sourced stock only leaves an UNLOAD_FROM_VEHICLE audit row;
        otherwise main stock is debited.
        """
        if vehicle is not None:
            InventoryService.audit(
                uow, product, Type.UNLOAD_FROM_VEHICLE, quantity,
                previous_stock=product.stock, new_stock=product.stock,
                vehicle=vehicle, user_id=user_id, notes=reference,
            )
            return None
        return InventoryService.debit(uow, product, quantity)

    @staticmethod
    def restore_stock(
        uow: UnitOfWork,
        product: Product,
        quantity: int,
        vehicle: Vehicle = None,
        resellable: bool = True,
        user_id: str = '',
        reference: str = '',
    ):
        """
        Take units back from a customer (return or cancellation).

        - Resellable, main inventory: main stock += quantity
        - Resellable, vehicle: LOAD_TO_VEHICLE audit row, main stock untouched
        - Not resellable: REMOVE_STOCK_WASTAGE audit row, main stock untouched
        """
        if not resellable:
            if pos_setting('RECORD_RETURN_WASTAGE'):
                InventoryService.audit(
                    uow, product, Type.REMOVE_STOCK_WASTAGE, quantity,
                    previous_stock=product.stock, new_stock=product.stock,
                    vehicle=vehicle, user_id=user_id, notes=reference,
                )
            return None

        if vehicle is not None:
            InventoryService.audit(
                uow, product, Type.LOAD_TO_VEHICLE, quantity,
                previous_stock=product.stock, new_stock=product.stock,
                vehicle=vehicle, user_id=user_id, notes=reference,
            )
            return None

        return InventoryService.credit(uow, product, quantity)

    @staticmethod
    def record_stock_transaction(
        product_id: str,
        txn_type: str,
        quantity: int,
        user_id: str = '',
        vehicle_id=None,
        notes: str = '',
        transaction_date=None,
        start_meter: int = None,
        end_meter: int = None,
    ) -> StockTransaction:
        """
        Record a manual stock movement and apply it to main stock.

        Args:
            product_id: Product being moved
            txn_type: StockTransaction.Type value
            quantity: Units moved (must be positive)
            user_id: Staff member recording the movement
            vehicle_id: Required for LOAD_TO_VEHICLE and UNLOAD_FROM_VEHICLE
            notes: Free text
            transaction_date: When the movement happened (defaults to now)
            start_meter, end_meter: Optional odometer readings

        Returns:
            The new StockTransaction

        Raises:
            InvalidRequestError: Bad quantity, type or missing vehicle
            NotFoundError: Unknown product or vehicle
            InsufficientStockError: Decrease larger than current stock
        """
        if quantity is None or int(quantity) <= 0:
            raise InvalidRequestError('Quantity must be greater than zero')
        quantity = int(quantity)

        direction = InventoryService.stock_direction(txn_type)

        if txn_type in VEHICLE_TYPES and not vehicle_id:
            raise InvalidRequestError(f"vehicleId is required for {txn_type}")

        with UnitOfWork() as uow:
            vehicle = None
            if vehicle_id:
                try:
                    vehicle = Vehicle.objects.get(pk=vehicle_id)
                except (Vehicle.DoesNotExist, ValueError):
                    raise NotFoundError(f"Vehicle with ID {vehicle_id} not found.")

            product = uow.read_products([product_id])[str(product_id)]

            if direction > 0:
                previous, new = InventoryService.credit(uow, product, quantity)
            else:
                previous, new = InventoryService.debit(uow, product, quantity)

            stock_txn = InventoryService.audit(
                uow, product, txn_type, quantity,
                previous_stock=previous, new_stock=new,
                vehicle=vehicle, user_id=user_id, notes=notes,
                transaction_date=transaction_date,
                start_meter=start_meter, end_meter=end_meter,
            )

        logger.info(
            f"Recorded {txn_type} of {quantity} for {product.id}: {previous} -> {new}"
        )
        return stock_txn
