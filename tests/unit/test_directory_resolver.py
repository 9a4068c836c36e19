"""
Unit tests for directory_resolver module.

Tests request construction, answer parsing and the recoverable failure modes
of the directory fallback.
"""

import xml.etree.ElementTree as ET

import pytest

from hrmd_router.lookup.directory_resolver import (
    BASIS_NAMESPACE,
    DirectoryFallbackResolver,
    build_lookup_request,
    parse_lookup_answer,
)
from hrmd_router.models.data_structures import DirectoryEntry, RoutingTable
from hrmd_router.utils.error_handlers import DirectoryLookupError
from tests.utils.test_helpers import FakeChannel, FakeLocator, lookup_answer


@pytest.fixture
def resolver(test_config, channel_locator):
    return DirectoryFallbackResolver(
        service=test_config.lookup_service,
        channel=test_config.lookup_channel,
        channel_locator=channel_locator,
        timeout_seconds=test_config.lookup_timeout_seconds,
    )


def resolver_with(channel, test_config):
    return DirectoryFallbackResolver(
        service=test_config.lookup_service,
        channel=test_config.lookup_channel,
        channel_locator=FakeLocator(
            {(test_config.lookup_service, test_config.lookup_channel): channel}
        ),
    )


@pytest.mark.unit
class TestBuildLookupRequest:
    """Test the IntegratedConfigurationReadRequest."""

    def test_request_identifies_scenario(self, message_context):
        root = ET.fromstring(build_lookup_request(message_context))

        assert root.tag == f"{{{BASIS_NAMESPACE}}}IntegratedConfigurationReadRequest"
        configuration_id = root.find("IntegratedConfigurationID")
        assert configuration_id.findtext("SenderComponentID") == "HR_ERP_100"
        assert configuration_id.findtext("InterfaceName") == "HRMD_A.HRMD_A07"
        assert (
            configuration_id.findtext("InterfaceNamespace")
            == "urn:sap-com:document:sap:idoc:messages"
        )


@pytest.mark.unit
class TestParseLookupAnswer:
    """Test parsing of the directory answer."""

    def test_prefix_is_stripped(self):
        answer = parse_lookup_answer(lookup_answer([("R1000", "SYS_A"), ("R2000", "SYS_B")]))

        assert answer == [
            DirectoryEntry("1000", "SYS_A"),
            DirectoryEntry("2000", "SYS_B"),
        ]

    def test_correctly_spelled_element_is_accepted(self):
        answer = parse_lookup_answer(
            lookup_answer([("R1000", "SYS_A")], element="MappingParameters")
        )

        assert answer == [DirectoryEntry("1000", "SYS_A")]

    def test_empty_name_or_value_is_skipped(self):
        answer = parse_lookup_answer(
            lookup_answer([("", "SYS_A"), ("R2000", ""), ("R3000", "SYS_C")])
        )

        assert answer == [DirectoryEntry("3000", "SYS_C")]

    def test_names_without_prefix_are_kept(self):
        answer = parse_lookup_answer(lookup_answer([("1000", "SYS_A")]))

        assert answer == [DirectoryEntry("1000", "SYS_A")]

    def test_missing_parameters_element(self):
        with pytest.raises(DirectoryLookupError, match="MappingParameters"):
            parse_lookup_answer(b"<IntegratedConfigurationReadResponse/>")

    def test_answer_not_xml(self):
        with pytest.raises(DirectoryLookupError, match="not valid XML"):
            parse_lookup_answer(b"Service Unavailable")

    def test_namespaced_answer(self):
        payload = (
            b'<n0:IntegratedConfigurationReadResponse xmlns:n0="http://sap.com/xi/BASIS">'
            b"<IntegratedConfiguration><MappingParamters>"
            b"<String><Name>R1000</Name><Value>SYS_A</Value></String>"
            b"</MappingParamters></IntegratedConfiguration>"
            b"</n0:IntegratedConfigurationReadResponse>"
        )

        assert parse_lookup_answer(payload) == [DirectoryEntry("1000", "SYS_A")]


@pytest.mark.unit
class TestDirectoryFallbackResolver:
    """Test lookup and merge behaviour."""

    def test_resolve_fills_routing_table(
        self, resolver, directory_channel, message_context
    ):
        table = RoutingTable()

        answer = resolver.resolve(message_context, table)

        assert len(answer) == 2
        assert table.receivers() == frozenset({"SYS_A", "SYS_B"})
        assert directory_channel.call_count == 1
        assert directory_channel.timeouts == [5.0]

    def test_existing_pairs_are_kept(self, resolver, message_context):
        table = RoutingTable()
        table.add("1000", "SYS_TARGETED")

        resolver.resolve(message_context, table)

        assert table.items() == [("1000", "SYS_TARGETED"), ("2000", "SYS_B")]

    def test_missing_channel_yields_empty_answer(self, test_config, message_context):
        resolver = DirectoryFallbackResolver(
            service=test_config.lookup_service,
            channel=test_config.lookup_channel,
            channel_locator=FakeLocator(),
        )
        warnings = []

        assert resolver.lookup(message_context, warnings) == []
        assert "SOAP_ICO_LOOKUP" in warnings[0]

    @pytest.mark.parametrize(
        "error",
        [
            DirectoryLookupError("HTTP 503", status_code=503),
            TimeoutError("timed out"),
            ConnectionRefusedError("refused"),
        ],
    )
    def test_channel_failure_yields_empty_answer(
        self, test_config, message_context, error
    ):
        resolver = resolver_with(FakeChannel(error=error), test_config)
        table = RoutingTable()
        warnings = []

        answer = resolver.resolve(message_context, table, warnings)

        assert answer == []
        assert not table
        assert len(warnings) == 1

    def test_malformed_answer_yields_empty_answer(self, test_config, message_context):
        resolver = resolver_with(FakeChannel(answer=b"<Fault/>"), test_config)
        warnings = []

        assert resolver.lookup(message_context, warnings) == []
        assert "MappingParameters" in warnings[0]


@pytest.mark.unit
class TestUnexpectedChannelFailures:
    """Test that any channel failure degrades to an empty answer."""

    def test_unexpected_exception_yields_empty_answer(
        self, test_config, message_context
    ):
        resolver = resolver_with(FakeChannel(error=ValueError("bad answer")), test_config)
        table = RoutingTable()
        table.add("1000", "SYS_A")
        warnings = []

        answer = resolver.resolve(message_context, table, warnings)

        assert answer == []
        assert table.items() == [("1000", "SYS_A")]
        assert warnings == ["Directory lookup failed: bad answer"]
