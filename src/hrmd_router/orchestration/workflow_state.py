"""Workflow state for one receiver determination run.

This module provides the RoutingWorkflowState dataclass tracking a document as
it moves through the routing stages. It owns the per-document routing table
and broadcast flag, validates stage transitions and keeps the warnings raised
by recoverable failures.

Typical usage example:
    state = RoutingWorkflowState()
    state.update_stage(RoutingStage.CONFIG_LOADED)
    state.add_warning("Parameter 'R3000' is not defined")
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import ClassVar, Dict, List, Optional, Tuple

from ..models.data_structures import RoutingStage, RoutingTable


@dataclass
class RoutingWorkflowState:
    """Mutable state of one document's routing run.

    Never shared between invocations.

    Attributes:
        document_id: IDoc number, known once the document is parsed.
        current_stage: Current routing stage.
        routing_table: Company code to receiver system pairs.
        broadcast: Set once a management infotype is seen, never reset.
        trigger_code: Management infotype that set the broadcast flag.
        lookup_performed: Whether the directory fallback ran.
        timestamp: Last update timestamp (UTC).
        stage_history: List of (stage, timestamp) tuples tracking progression.
        warnings: Messages of recoverable failures.
        error_history: Messages of the failure that aborted the run.
    """

    document_id: Optional[str] = None
    current_stage: RoutingStage = RoutingStage.START
    routing_table: RoutingTable = field(default_factory=RoutingTable)
    broadcast: bool = False
    trigger_code: Optional[str] = None
    lookup_performed: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    stage_history: List[Tuple[RoutingStage, datetime]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    error_history: List[str] = field(default_factory=list)

    # ABORTED is allowed from every non-terminal stage
    _VALID_TRANSITIONS: ClassVar[Dict[RoutingStage, List[RoutingStage]]] = {
        RoutingStage.START: [RoutingStage.CONFIG_LOADED],
        RoutingStage.CONFIG_LOADED: [RoutingStage.PARSED],
        RoutingStage.PARSED: [RoutingStage.CLASSIFIED],
        RoutingStage.CLASSIFIED: [RoutingStage.TARGETED],
        RoutingStage.TARGETED: [RoutingStage.BROADCAST, RoutingStage.RESOLVED],
        RoutingStage.BROADCAST: [RoutingStage.ENCODED],
        RoutingStage.RESOLVED: [RoutingStage.ENCODED],
        RoutingStage.ENCODED: [RoutingStage.DONE],
        RoutingStage.DONE: [],
        RoutingStage.ABORTED: [],
    }

    def __post_init__(self) -> None:
        if not self.stage_history:
            self.stage_history.append((self.current_stage, self.timestamp))

    def __repr__(self) -> str:
        return (
            f"RoutingWorkflowState(document_id='{self.document_id}', "
            f"stage={self.current_stage.name}, "
            f"broadcast={self.broadcast}, receivers={len(self.routing_table)})"
        )

    @property
    def is_terminal(self) -> bool:
        return self.current_stage in (RoutingStage.DONE, RoutingStage.ABORTED)

    def update_stage(self, stage: RoutingStage) -> None:
        """Move to a new stage, validating the transition.

        Raises:
            ValueError: If `stage` is not a RoutingStage or the transition is
                not allowed.
        """
        if not isinstance(stage, RoutingStage):
            raise ValueError(
                f"Invalid stage: {stage}. Must be a RoutingStage enum value."
            )

        allowed = list(self._VALID_TRANSITIONS.get(self.current_stage, []))
        if not self.is_terminal:
            allowed.append(RoutingStage.ABORTED)

        if stage not in allowed:
            raise ValueError(
                f"Invalid stage transition from {self.current_stage.name} "
                f"to {stage.name}. Valid transitions: "
                f"{[s.name for s in allowed]}"
            )

        self.current_stage = stage
        self.timestamp = datetime.now(timezone.utc)
        self.stage_history.append((stage, self.timestamp))

    def set_broadcast(self, trigger_code: Optional[str] = None) -> None:
        """Raise the broadcast flag. The first trigger code is kept."""
        if not self.broadcast:
            self.broadcast = True
            self.trigger_code = trigger_code

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def mark_aborted(self, error_message: str) -> None:
        """Move to ABORTED and record the reason."""
        self.error_history.append(f"[{self.timestamp.isoformat()}] {error_message}")
        if self.current_stage is not RoutingStage.ABORTED:
            self.update_stage(RoutingStage.ABORTED)

    @property
    def stages(self) -> List[RoutingStage]:
        """Stages visited so far, in order."""
        return [stage for stage, _ in self.stage_history]
