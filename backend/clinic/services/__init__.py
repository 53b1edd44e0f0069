# Services package initialization
# This file makes the services directory a Python package
# and allows importing service modules

from . import appointment_service
from . import conflict_detector
from . import invoice_item_service
from . import invoice_service
from . import payment_service

__all__ = [
    "appointment_service",
    "conflict_detector",
    "invoice_item_service",
    "invoice_service",
    "payment_service",
]
