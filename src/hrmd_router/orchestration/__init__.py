"""
Orchestration module for receiver determination.
"""

from .receiver_orchestrator import ReceiverDeterminationService
from .workflow_state import RoutingWorkflowState


__all__ = [
    "ReceiverDeterminationService",
    "RoutingWorkflowState",
]
