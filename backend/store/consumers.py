"""
WebSocket consumer for real-time sale and return updates.

Events are produced by store.services.realtime after the database
transaction commits.
"""
import json
import logging

from channels.generic.websocket import AsyncWebsocketConsumer

from .conf import pos_setting

logger = logging.getLogger(__name__)


class SalesConsumer(AsyncWebsocketConsumer):
    """
    Clients connect to ws://host/ws/sales/ to receive:
    - New sales
    - Sale updates (payments, cancellations, return settlements)
    - New returns

    Messages sent to clients:
    {
        "type": "sale.created" | "sale.updated",
        "sale": {...serialized sale...}
    }
    {
        "type": "return.created",
        "return": {...serialized return transaction...}
    }
    """

    async def connect(self):
        self.group_name = pos_setting('BROADCAST_GROUP')

        if self.channel_layer:
            await self.channel_layer.group_add(self.group_name, self.channel_name)
        else:
            logger.warning("Channel layer is not configured; WebSocket will not receive broadcasts")

        await self.accept()

    async def disconnect(self, close_code):
        if self.channel_layer and hasattr(self, 'group_name'):
            await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # Broadcast-only channel
        pass

    async def sale_created(self, event):
        await self.send(text_data=json.dumps({
            'type': 'sale.created',
            'sale': event['sale']
        }))

    async def sale_updated(self, event):
        await self.send(text_data=json.dumps({
            'type': 'sale.updated',
            'sale': event['sale']
        }))

    async def return_created(self, event):
        await self.send(text_data=json.dumps({
            'type': 'return.created',
            'return': event['return']
        }))
