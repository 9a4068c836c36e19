"""
Unit tests for data_structures module.
"""

import pytest

from hrmd_router.models.data_structures import (
    DirectoryEntry,
    Document,
    DynamicConfiguration,
    MappingParameters,
    Node,
    RoutingTable,
    TimeSlice,
)
from hrmd_router.utils.error_handlers import RoutingKeyUndefinedError


@pytest.mark.unit
class TestRoutingTable:
    """Test first-writer-wins routing table."""

    def test_first_writer_wins(self):
        table = RoutingTable()

        assert table.add("1000", "SYS_A") is True
        assert table.add("1000", "SYS_B") is False
        assert table.items() == [("1000", "SYS_A")]

    def test_merge_only_fills_gaps(self):
        table = RoutingTable()
        table.add("1000", "SYS_A")

        added = table.merge(
            [DirectoryEntry("1000", "SYS_X"), DirectoryEntry("2000", "SYS_B")]
        )

        assert added == 1
        assert table.items() == [("1000", "SYS_A"), ("2000", "SYS_B")]

    def test_receivers_are_distinct_and_non_empty(self):
        table = RoutingTable()
        table.add("1000", "SYS_A")
        table.add("1100", "SYS_A")
        table.add("2000", "")

        assert table.receivers() == frozenset({"SYS_A"})
        assert len(table) == 3


@pytest.mark.unit
class TestMappingParameters:
    """Test operation-mapping parameters."""

    def test_get_string(self):
        assert MappingParameters({"R1000": "SYS_A"}).get_string("R1000") == "SYS_A"

    def test_undefined_parameter(self):
        with pytest.raises(RoutingKeyUndefinedError) as exc_info:
            MappingParameters().get_string("R3000")

        assert exc_info.value.parameter_name == "R3000"
        assert exc_info.value.recoverable is True

    def test_from_pairs(self):
        parameters = MappingParameters.from_pairs(["R1000=SYS_A", " R2000 = SYS_B "])

        assert parameters.to_dict() == {"R1000": "SYS_A", "R2000": "SYS_B"}

    @pytest.mark.parametrize("pair", ["R1000", "=SYS_A"])
    def test_from_pairs_rejects_malformed(self, pair):
        with pytest.raises(ValueError):
            MappingParameters.from_pairs([pair])


@pytest.mark.unit
class TestDocumentModel:
    """Test tree navigation helpers."""

    def test_iter_with_prune(self):
        tree = Node(
            "A",
            children=(
                Node("B", children=(Node("C", "1"),)),
                Node("C", "2"),
            ),
        )

        assert [n.text for n in tree.iter("C")] == ["1", "2"]
        assert [n.text for n in tree.iter("C", prune="B")] == ["2"]

    def test_document_iter_includes_root(self):
        document = Document(root=Node("E1PLOGI", children=(Node("E1PLOGI"),)))

        assert len(list(document.iter("E1PLOGI"))) == 2

    def test_time_slice_is_effective(self):
        assert TimeSlice("1000", valid_until="99991231").is_effective()
        assert not TimeSlice("1000", valid_until="20201231").is_effective()
        assert not TimeSlice("1000").is_effective()


@pytest.mark.unit
def test_dynamic_configuration_store():
    store = DynamicConfiguration()

    store.put("urn:ns", "R1000", "SYS_A")

    assert store.get("urn:ns", "R1000") == "SYS_A"
    assert store.get("urn:other", "R1000") is None
    assert len(store) == 1
