"""
WebSocket fan-out for sale and return events.

Events are pushed to the configured channel group (``sales`` by default)
and delivered by store.consumers.SalesConsumer. Failures are logged and
never propagate to the request that triggered them.
"""

import json
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

from store.conf import pos_setting

logger = logging.getLogger(__name__)

SALE_CREATED = 'sale.created'
SALE_UPDATED = 'sale.updated'
RETURN_CREATED = 'return.created'


def broadcast(event_type: str, payload_key: str, build_data, label: str = ''):
    """
    Send one event to the sales group.

    Args:
        event_type: Consumer handler name in dotted form (e.g. 'sale.created')
        payload_key: Key the serialized record is sent under
        build_data: Callable returning the serialized record
        label: Record id used in log lines
    """
    try:
        channel_layer = get_channel_layer()
        if channel_layer:
            # Round-trip through JSON so Decimals and datetimes become strings
            payload = json.loads(json.dumps(build_data(), default=str))
            async_to_sync(channel_layer.group_send)(
                pos_setting('BROADCAST_GROUP'),
                {
                    'type': event_type,
                    payload_key: payload,
                }
            )
            logger.info(f"Broadcasted {event_type} for {label} to WebSocket clients")
    except Exception as e:
        logger.error(f"Failed to broadcast {event_type} for {label}: {e}")


def broadcast_sale(event_type: str, sale):
    from store.serializers import SaleSerializer
    broadcast(event_type, 'sale', lambda: SaleSerializer(sale).data, label=sale.id)


def broadcast_return(return_txn):
    from store.serializers import ReturnTransactionSerializer
    broadcast(
        RETURN_CREATED, 'return',
        lambda: ReturnTransactionSerializer(return_txn).data,
        label=return_txn.id
    )
