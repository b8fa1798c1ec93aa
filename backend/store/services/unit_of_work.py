"""
Explicit transaction scope for store mutations.

Every operation that touches stock, sales or returns runs inside one
UnitOfWork so the whole operation commits or rolls back together.

Lock ordering:
    1. The sale (when the operation references one)
    2. Every touched product, ascending by id

Usage:
    with UnitOfWork() as uow:
        sale = uow.read(Sale, sale_id)
        products = uow.read_products(['prod001', 'prod004'])
        uow.write(products['prod001'], stock=products['prod001'].stock + 1)
        uow.on_commit(lambda: notify(sale))
"""

import logging

from django.db import transaction

from store.models import Product
from utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """Context manager around ``transaction.atomic()`` with row-locked reads."""

    def __init__(self, using=None):
        self.using = using
        self._atomic = None
        self.touched = []

    def __enter__(self):
        self._atomic = transaction.atomic(using=self.using)
        self._atomic.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            logger.warning(f"Rolling back unit of work after {exc_type.__name__}: {exc}")
        return self._atomic.__exit__(exc_type, exc, tb)

    def read(self, model, pk, label: str = None):
        """
        Load one row and hold its lock until the unit of work ends.

        Raises:
            NotFoundError: If no row has this primary key
        """
        try:
            return model.objects.select_for_update().get(pk=pk)
        except (model.DoesNotExist, ValueError, TypeError):
            name = label or model._meta.verbose_name.title()
            raise NotFoundError(f"{name} with ID {pk} not found.")

    def read_products(self, product_ids) -> dict:
        """
        Lock every referenced product in ascending id order.

        Returns:
            Dict of product id -> Product

        Raises:
            NotFoundError: If any product id is unknown
        """
        wanted = sorted({str(pid) for pid in product_ids})
        if not wanted:
            return {}

        products = {
            p.pk: p
            for p in Product.objects.select_for_update().filter(pk__in=wanted).order_by('pk')
        }
        missing = [pid for pid in wanted if pid not in products]
        if missing:
            raise NotFoundError(f"Product with ID {missing[0]} not found.")
        return products

    def write(self, instance, **patch):
        """Apply field values to a locked row and save only those fields."""
        for field, value in patch.items():
            setattr(instance, field, value)

        update_fields = list(patch)
        if update_fields and any(f.name == 'updated_at' for f in instance._meta.concrete_fields):
            update_fields.append('updated_at')

        instance.save(update_fields=update_fields or None)
        self.touched.append(instance)
        return instance

    def add(self, instance):
        """Insert a new row."""
        instance.save(force_insert=True)
        self.touched.append(instance)
        return instance

    def on_commit(self, callback):
        """Run ``callback`` only if the unit of work commits."""
        transaction.on_commit(callback, using=self.using)
