"""
Integration tests for receiver determination.

Runs complete HRMD IDocs through the service with a fake directory channel.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from hrmd_router.lookup.soap_channel import SoapDirectoryChannel
from hrmd_router.models.data_structures import (
    MappingParameters,
    MessageContext,
    RoutingStage,
)
from hrmd_router.orchestration.receiver_orchestrator import (
    ReceiverDeterminationService,
)
from tests.fixtures.idoc_builder import (
    hrmd_idoc,
    organization,
    person,
    time_slice,
)
from tests.utils.test_helpers import (
    FakeChannel,
    create_test_config,
    locator_for,
    lookup_answer,
    service_ids,
)


@pytest.mark.integration
class TestReceiverDetermination:
    """Test the routing scenarios end to end."""

    def setup_method(self):
        """Setup test environment."""
        self.config = create_test_config()
        self.channel = FakeChannel(
            lookup_answer([("R1000", "SYS_A"), ("R2000", "SYS_B")])
        )
        self.service = ReceiverDeterminationService(
            self.config, locator_for(self.channel, self.config)
        )

    def run(self, idoc, context):
        outcome = self.service.determine_receivers(idoc, context)
        assert outcome.stage is RoutingStage.DONE
        assert set(service_ids(outcome.payload)) == set(outcome.receivers)
        return outcome

    def test_single_person_is_routed_to_its_company_system(self, message_context):
        outcome = self.run(hrmd_idoc(person("00001234", time_slice("1000"))), message_context)

        assert service_ids(outcome.payload) == ["SYS_A"]
        assert outcome.lookup_performed is False
        assert self.channel.call_count == 0

    def test_management_infotype_broadcasts_to_directory_set(self, message_context):
        outcome = self.run(hrmd_idoc(organization("50000001", "1000")), message_context)

        assert outcome.broadcast is True
        assert outcome.lookup_performed is True
        assert outcome.receivers == frozenset({"SYS_A", "SYS_B"})
        assert self.channel.call_count == 1

    def test_broadcast_takes_precedence_over_targeted_match(self, message_context):
        outcome = self.run(
            hrmd_idoc(
                person("00001234", time_slice("1000")),
                organization("50000001", "1001"),
            ),
            message_context,
        )

        assert outcome.receivers == frozenset({"SYS_A", "SYS_B"})
        assert self.channel.call_count == 1

    def test_expired_assignment_falls_back_to_directory(self, message_context):
        outcome = self.run(
            hrmd_idoc(person("00001234", time_slice("1000", valid_until="20201231"))),
            message_context,
        )

        assert outcome.broadcast is False
        assert outcome.lookup_performed is True
        assert outcome.receivers == frozenset({"SYS_A", "SYS_B"})
        assert self.channel.call_count == 1

    def test_unresolvable_company_code_falls_back_once(self, message_context):
        outcome = self.run(
            hrmd_idoc(person("00001234", time_slice("3000"))), message_context
        )

        assert self.channel.call_count == 1
        assert outcome.receivers == frozenset({"SYS_A", "SYS_B"})
        assert any("3000" in warning for warning in outcome.warnings)

    def test_malformed_directory_answer_keeps_targeted_set(self, message_context):
        self.channel.answer = b"<IntegratedConfigurationReadResponse/>"

        outcome = self.run(
            hrmd_idoc(
                person("00001234", time_slice("1000")),
                organization("50000001", "1000"),
            ),
            message_context,
        )

        assert outcome.receivers == frozenset({"SYS_A"})
        assert outcome.lookup_performed is True
        assert any("MappingParameters" in warning for warning in outcome.warnings)

    def test_failed_fallback_yields_empty_receiver_list(self, message_context):
        self.channel.error = TimeoutError("directory did not answer")

        outcome = self.run(hrmd_idoc(organization("50000001", "1002")), message_context)

        assert outcome.receivers == frozenset()
        assert service_ids(outcome.payload) == []
        assert any("Could not determine any receiver" in w for w in outcome.warnings)

    def test_invalid_directory_endpoint_keeps_targeted_set(self, message_context):
        channel = SoapDirectoryChannel("https://[::1/x")
        service = ReceiverDeterminationService(
            self.config, locator_for(channel, self.config)
        )

        outcome = service.determine_receivers(
            hrmd_idoc(
                person("00001000", time_slice("1000")),
                organization("50000001", "1000"),
            ),
            message_context,
        )
        channel.close()

        assert outcome.stage is RoutingStage.DONE
        assert outcome.receivers == frozenset({"SYS_A"})
        assert service_ids(outcome.payload) == ["SYS_A"]
        assert any("Invalid directory endpoint" in w for w in outcome.warnings)

    def test_same_system_for_two_company_codes_is_one_receiver(self):
        context = MessageContext(
            sender_service="HR_ERP_100",
            interface_name="HRMD_A.HRMD_A07",
            interface_namespace="urn:sap-com:document:sap:idoc:messages",
            parameters=MappingParameters({"R1000": "SYS_A", "R1100": "SYS_A"}),
        )

        outcome = self.run(
            hrmd_idoc(
                person("00001234", time_slice("1000")),
                person("00005678", time_slice("1100")),
            ),
            context,
        )

        assert service_ids(outcome.payload) == ["SYS_A"]
        assert len(outcome.routing_pairs) == 2

    def test_repeated_runs_give_same_receivers(self, message_context):
        idoc = hrmd_idoc(
            person("00001234", time_slice("1000")),
            person("00005678", time_slice("2000")),
        )

        first = self.run(idoc, message_context)
        second = self.run(idoc, message_context)

        assert first.receivers == second.receivers == frozenset({"SYS_A", "SYS_B"})

    def test_concurrent_documents_do_not_share_state(self, message_context):
        idocs = [
            hrmd_idoc(person(str(i), time_slice("1000" if i % 2 else "2000")))
            for i in range(20)
        ]

        with ThreadPoolExecutor(max_workers=4) as executor:
            outcomes = list(
                executor.map(
                    lambda idoc: self.service.determine_receivers(idoc, message_context),
                    idocs,
                )
            )

        for i, outcome in enumerate(outcomes):
            expected = "SYS_A" if i % 2 else "SYS_B"
            assert outcome.receivers == frozenset({expected})
