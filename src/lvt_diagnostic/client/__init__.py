"""Request context exports."""

from lvt_diagnostic.client.decorator import TrafficDecorator, set_traffic_decorator
from lvt_diagnostic.client.models import PendingOperation, QueryHandle
from lvt_diagnostic.client.session import ClientSession, open_session

__all__ = [
    "ClientSession",
    "PendingOperation",
    "QueryHandle",
    "TrafficDecorator",
    "open_session",
    "set_traffic_decorator",
]
