"""
Receiver Determination Orchestrator

Runs one inbound HRMD IDoc through classification, targeted routing, the
directory fallback and encoding, and decides whether the document is
processed or aborted.
"""

import logging
from typing import Any, Optional

from ..export.receiver_encoder import encode_receivers
from ..lookup.directory_resolver import ChannelLocator, DirectoryFallbackResolver
from ..models.data_structures import (
    Document,
    MessageContext,
    RoutingOutcome,
    RoutingStage,
)
from ..processing.document_parser import InputDocument, parse_document, read_payload
from ..processing.organization_scanner import scan_organization_segments
from ..processing.person_route_extractor import (
    PersonRouteExtractor,
    parameter_resolver,
)
from ..processing.segment_classifier import classify_segments
from ..utils.config_loader import RouterConfig
from ..utils.error_handlers import (
    ConfigurationError,
    OutputDeliveryError,
    RoutingError,
    create_error_report,
    log_error_with_context,
)
from .workflow_state import RoutingWorkflowState

logger: logging.Logger = logging.getLogger(__name__)


class ReceiverDeterminationService:
    """Determines the receiver systems of HRMD IDocs.

    One instance may serve any number of concurrent documents: the
    configuration is read-only and every call to determine_receivers() works
    on its own RoutingWorkflowState.

    Attributes:
        config: Router configuration, created once per process.
        channel_locator: Finds the directory channel by (service, channel).
        output_sink: Optional object with write(bytes) receiving the decision.
        person_extractor: Targeted routing from personnel segments.
    """

    def __init__(
        self,
        config: RouterConfig,
        channel_locator: ChannelLocator,
        output_sink: Optional[Any] = None,
        person_extractor: Optional[PersonRouteExtractor] = None,
    ) -> None:
        self.config = config
        self.channel_locator = channel_locator
        self.output_sink = output_sink
        self.person_extractor = person_extractor or PersonRouteExtractor(
            open_ended_date=config.open_ended_date
        )

    def _build_directory_resolver(self) -> DirectoryFallbackResolver:
        return DirectoryFallbackResolver(
            service=self.config.lookup_service,
            channel=self.config.lookup_channel,
            channel_locator=self.channel_locator,
            timeout_seconds=self.config.lookup_timeout_seconds,
            parameter_prefix=self.config.parameter_prefix,
        )

    def determine_receivers(
        self, input_document: InputDocument, context: MessageContext
    ) -> RoutingOutcome:
        """Determine the receivers of one document.

        Never raises: configuration and parse failures abort the document and
        are reported in the outcome; lookup and routing-key failures are
        recorded as warnings.

        Args:
            input_document: Raw IDoc bytes, text, or an object with read().
            context: Scenario identity and mapping parameters of the message.

        Returns:
            RoutingOutcome in stage DONE (with payload) or ABORTED (without).
        """
        state = RoutingWorkflowState()
        logger.info("HRMD_A to ReceiverDetermination mapping started")

        try:
            self._check_config(state)
            document = self._parse(input_document, state)
            return self._route(document, state, context)

        except RoutingError as e:
            e.document_id = e.document_id or state.document_id
            return self._abort(state, e)

        except Exception as e:
            logger.error(
                f"Receiver determination failed: {e}",
                extra={"document_id": state.document_id},
                exc_info=True,
            )
            wrapped = RoutingError(
                f"Receiver determination failed: {e}",
                document_id=state.document_id,
                stage=state.current_stage.value,
                original_error=e,
            )
            return self._abort(state, wrapped)

    def _check_config(self, state: RoutingWorkflowState) -> None:
        missing = self.config.missing_keys()
        if missing:
            raise ConfigurationError(
                f"Can't process document, missing configuration values: {missing}",
                config_key=missing[0],
            )
        logger.debug(
            "Loaded configuration: service '%s', channel '%s', management infotypes %s",
            self.config.lookup_service,
            self.config.lookup_channel,
            list(self.config.management_infotypes),
        )
        state.update_stage(RoutingStage.CONFIG_LOADED)

    def _parse(
        self, input_document: InputDocument, state: RoutingWorkflowState
    ) -> Document:
        payload = read_payload(input_document)
        document = parse_document(payload)
        state.document_id = document.document_id
        state.update_stage(RoutingStage.PARSED)
        return document

    def _route(
        self,
        document: Document,
        state: RoutingWorkflowState,
        context: MessageContext,
    ) -> RoutingOutcome:
        document_id = state.document_id

        classified = classify_segments(document)
        state.update_stage(RoutingStage.CLASSIFIED)

        # Targeted pass: both parts read the classified buckets, one writes
        # the routing table, the other the broadcast flag.
        self.person_extractor.extract(
            classified.person_segments,
            parameter_resolver(context.parameters, self.config.parameter_prefix),
            state.routing_table,
            warnings=state.warnings,
            document_id=document_id,
        )
        decision = scan_organization_segments(
            classified.organization_segments,
            self.config.management_infotypes,
            document_id=document_id,
        )
        if decision.broadcast:
            state.set_broadcast(decision.trigger_code)

        self._publish_dynamic_configuration(state, context)
        state.update_stage(RoutingStage.TARGETED)

        if state.broadcast or not state.routing_table:
            if not state.broadcast:
                logger.debug(
                    "Could not determine receivers by company code, looking up "
                    "all possible receivers of the scenario",
                    extra={"document_id": document_id},
                )
            state.update_stage(RoutingStage.BROADCAST)
            self._build_directory_resolver().resolve(
                context,
                state.routing_table,
                warnings=state.warnings,
                document_id=document_id,
            )
            state.lookup_performed = True
        else:
            state.update_stage(RoutingStage.RESOLVED)

        receivers = state.routing_table.receivers()
        if not receivers:
            message = "Could not determine any receiver system"
            logger.warning(message, extra={"document_id": document_id})
            state.add_warning(message)

        payload = encode_receivers(receivers, document_id=document_id)
        state.update_stage(RoutingStage.ENCODED)

        self._deliver(payload, state)
        state.update_stage(RoutingStage.DONE)

        logger.info(
            "HRMD_A to ReceiverDetermination mapping finished with %d receiver(s)",
            len(receivers),
            extra={
                "document_id": document_id,
                "broadcast": state.broadcast,
                "lookup_performed": state.lookup_performed,
            },
        )

        return RoutingOutcome(
            stage=state.current_stage,
            receivers=receivers,
            payload=payload,
            broadcast=state.broadcast,
            lookup_performed=state.lookup_performed,
            routing_pairs=state.routing_table.items(),
            document_id=document_id,
            warnings=list(state.warnings),
        )

    def _publish_dynamic_configuration(
        self, state: RoutingWorkflowState, context: MessageContext
    ) -> None:
        namespace = self.config.dynamic_configuration_namespace
        store = context.dynamic_configuration
        if not namespace or store is None:
            return
        for company_code, system_id in state.routing_table.items():
            store.put(namespace, f"{self.config.parameter_prefix}{company_code}", system_id)
            logger.debug(
                "Put new pair to dynamic configuration. Key: %s, value: %s",
                company_code,
                system_id,
                extra={"document_id": state.document_id},
            )

    def _deliver(self, payload: bytes, state: RoutingWorkflowState) -> None:
        if self.output_sink is None:
            return
        try:
            self.output_sink.write(payload)
        except OSError as e:
            error = OutputDeliveryError(
                f"Failed to write routing decision: {e}",
                document_id=state.document_id,
                original_error=e,
            )
            logger.warning(error.message, extra={"document_id": state.document_id})
            state.add_warning(error.message)

    def _abort(self, state: RoutingWorkflowState, error: RoutingError) -> RoutingOutcome:
        log_error_with_context(
            error,
            logger,
            {"document_id": state.document_id, "stage": state.current_stage.value},
        )
        report = create_error_report(error)
        state.mark_aborted(error.message)
        return RoutingOutcome(
            stage=state.current_stage,
            broadcast=state.broadcast,
            lookup_performed=state.lookup_performed,
            routing_pairs=state.routing_table.items(),
            document_id=state.document_id,
            warnings=list(state.warnings),
            error_report=report,
        )
