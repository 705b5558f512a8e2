from .customer import Customer
from .diagram import Diagram, DiagramVersion, DiagramSession
from .session_note import SessionNote
from .action_item import ActionItem
from .queue_job import QueueJob, JobStatus

__all__ = [
    'Customer',
    'Diagram',
    'DiagramVersion',
    'DiagramSession',
    'SessionNote',
    'ActionItem',
    'QueueJob',
    'JobStatus',
]
