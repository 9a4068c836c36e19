"""
HRMD Receiver Determination

Decides which downstream systems an inbound HR master-data IDoc is routed to.
"""

__version__ = "1.0.0"
__author__ = "HRMD Router Team"

# Core exports
from .orchestration import ReceiverDeterminationService
from .models import MappingParameters, MessageContext, RoutingOutcome
from .utils import Config, RouterConfig

__all__ = [
    "ReceiverDeterminationService",
    "MappingParameters",
    "MessageContext",
    "RoutingOutcome",
    "Config",
    "RouterConfig",
    "__version__",
]
