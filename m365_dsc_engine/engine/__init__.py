from .context import ConnectionContext, RemoteGateway
from .events import EventSink
from .reader import Absent, Found, ReadFailed, ReadResult, current_state, read_state
from .comparator import DriftReport, FieldDrift, compare_states
from .writer import Transition, apply_state, plan_transition
from .exporter import Formatter, export_resource, export_tenant

__all__ = [
    "ConnectionContext",
    "RemoteGateway",
    "EventSink",
    "Absent",
    "Found",
    "ReadFailed",
    "ReadResult",
    "current_state",
    "read_state",
    "DriftReport",
    "FieldDrift",
    "compare_states",
    "Transition",
    "apply_state",
    "plan_transition",
    "Formatter",
    "export_resource",
    "export_tenant",
]
