"""
Pytest configuration and fixtures.
"""

import pytest

from hrmd_router.models.data_structures import (
    DynamicConfiguration,
    MappingParameters,
    MessageContext,
)
from tests.utils.test_helpers import (
    FakeChannel,
    create_test_config,
    locator_for,
    lookup_answer,
)


@pytest.fixture(scope="session")
def test_config():
    """Create test configuration."""
    return create_test_config()


@pytest.fixture(scope="function")
def mapping_parameters():
    """Create operation-mapping parameters for company codes 1000 and 2000."""
    return MappingParameters({"R1000": "SYS_A", "R2000": "SYS_B"})


@pytest.fixture(scope="function")
def message_context(mapping_parameters):
    """Create a message context with an empty dynamic configuration."""
    return MessageContext(
        sender_service="HR_ERP_100",
        interface_name="HRMD_A.HRMD_A07",
        interface_namespace="urn:sap-com:document:sap:idoc:messages",
        parameters=mapping_parameters,
        dynamic_configuration=DynamicConfiguration(),
    )


@pytest.fixture(scope="function")
def directory_channel():
    """Create a directory channel answering with two receivers."""
    return FakeChannel(lookup_answer([("R1000", "SYS_A"), ("R2000", "SYS_B")]))


@pytest.fixture(scope="function")
def channel_locator(directory_channel, test_config):
    """Create a locator serving the directory channel."""
    return locator_for(directory_channel, test_config)


# Markers for different test categories
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line(
        "markers", "integration: Integration tests for multiple components"
    )
