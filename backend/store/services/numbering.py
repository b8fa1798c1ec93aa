"""
Human readable document numbers.

Formats:
    Products: prod-MMDD-N       (per calendar day, never reset)
    Sales:    sale-MMDD-N       (per calendar day, never reset)
    Returns:  RET-YYMMDD-NNNN   (running counter)

Counters live in DocumentCounter rows and are incremented under a row
lock, so numbers are unique across concurrent requests and roll back
together with the surrounding transaction.
"""

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from store.models import DocumentCounter


def _next_count(key: str) -> int:
    with transaction.atomic():
        counter, _ = DocumentCounter.objects.select_for_update().get_or_create(key=key)
        DocumentCounter.objects.filter(pk=counter.pk).update(count=F('count') + 1)
        counter.refresh_from_db(fields=['count'])
        return counter.count


def next_product_id(now=None) -> str:
    today = timezone.localtime(now or timezone.now())
    count = _next_count(f"products-{today:%m-%d}")
    return f"prod-{today:%m%d}-{count}"


def next_sale_id(now=None) -> str:
    today = timezone.localtime(now or timezone.now())
    count = _next_count(f"sales-{today:%m-%d}")
    return f"sale-{today:%m%d}-{count}"


def next_return_id(now=None) -> str:
    today = timezone.localtime(now or timezone.now())
    count = _next_count('returns')
    return f"RET-{today:%y%m%d}-{count:04d}"
