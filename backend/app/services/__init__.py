"""
Services module - Business logic layer
"""
from . import (
    action_item_service,
    customer_service,
    diagram_service,
    session_note_service,
    queue_service,
)

__all__ = [
    'action_item_service',
    'customer_service',
    'diagram_service',
    'session_note_service',
    'queue_service',
]
