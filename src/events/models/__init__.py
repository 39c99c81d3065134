from .event import Event
from .ticket import Discount, TicketType

__all__ = [
    "Discount",
    "Event",
    "TicketType",
]
