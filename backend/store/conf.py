"""
Access to the DAIRY_POS settings dict with defaults.
"""
from django.conf import settings

DEFAULTS = {
    'ENFORCE_REFUND_SPLIT': True,
    'RECORD_RETURN_WASTAGE': True,
    'VEHICLE_EXCHANGE_FROM_VEHICLE': False,
    'BROADCAST_GROUP': 'sales',
}


def pos_setting(name):
    return getattr(settings, 'DAIRY_POS', {}).get(name, DEFAULTS[name])
