"""
Core data structures for HRMD receiver determination.

Holds the immutable document model, the typed segments produced by the
classifier, the per-invocation routing table and the message context the bus
supplies with every document.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Dict,
    FrozenSet,
    Iterator,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Tuple,
)

from ..utils.error_handlers import RoutingKeyUndefinedError

# IDoc segment and field names
LOGICAL_RECORD_TAG = "E1PLOGI"
RECORD_KIND_FIELD = "OTYPE"
OBJECT_ID_FIELD = "OBJID"
INFO_SEGMENT_TAG = "E1PITYP"
INFO_TYPE_FIELD = "INFTY"
TIME_SLICE_TAG = "E1P0001"
COMPANY_CODE_FIELD = "BUKRS"
VALID_FROM_FIELD = "BEGDA"
VALID_UNTIL_FIELD = "ENDDA"
CONTROL_RECORD_TAG = "EDI_DC40"
DOCUMENT_NUMBER_FIELD = "DOCNUM"

PERSON_RECORD_KIND = "P"
ORGANIZATIONAL_ASSIGNMENT_INFOTYPE = "0001"
OPEN_ENDED_DATE = "99991231"


class RoutingStage(Enum):
    """Stages of one receiver determination run."""

    START = "start"
    CONFIG_LOADED = "config_loaded"
    PARSED = "parsed"
    CLASSIFIED = "classified"
    TARGETED = "targeted"
    BROADCAST = "broadcast"
    RESOLVED = "resolved"
    ENCODED = "encoded"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True)
class Node:
    """One element of a parsed document.

    Attributes:
        tag: Element name with any XML namespace removed.
        text: Stripped text of a leaf element, None for elements with children
            or without text.
        children: Child elements in document order.
    """

    tag: str
    text: Optional[str] = None
    children: Tuple["Node", ...] = ()

    def iter(self, tag: str, prune: Optional[str] = None) -> Iterator["Node"]:
        """Yield descendants named `tag` in document order.

        The node itself is not included. When `prune` is given, the walk does
        not descend below descendants named `prune` (they are still yielded if
        they match `tag`).
        """
        for child in self.children:
            if child.tag == tag:
                yield child
            if prune is not None and child.tag == prune:
                continue
            yield from child.iter(tag, prune)

    def child(self, tag: str) -> Optional["Node"]:
        """Return the first direct child named `tag`, or None."""
        for child in self.children:
            if child.tag == tag:
                return child
        return None

    def child_text(self, tag: str) -> Optional[str]:
        """Return the text of the first direct child named `tag`."""
        node = self.child(tag)
        return node.text if node is not None else None

    def find_text(self, tag: str) -> Optional[str]:
        """Return the text of the first descendant named `tag`."""
        for node in self.iter(tag):
            return node.text
        return None


@dataclass(frozen=True)
class Document:
    """A parsed inbound IDoc.

    Attributes:
        root: Root element of the document.
        document_id: IDoc number from the control record, if present.
    """

    root: Node
    document_id: Optional[str] = None

    def iter(self, tag: str, prune: Optional[str] = None) -> Iterator[Node]:
        """Yield every element named `tag`, including the root itself."""
        if self.root.tag == tag:
            yield self.root
            if prune == tag:
                return
        yield from self.root.iter(tag, prune)


@dataclass(frozen=True)
class TimeSlice:
    """A time-dependent organizational assignment (E1P0001).

    Attributes:
        company_code: BUKRS value, None when the field is absent.
        valid_from: BEGDA value.
        valid_until: ENDDA value.
    """

    company_code: Optional[str]
    valid_from: Optional[str] = None
    valid_until: Optional[str] = None

    def is_effective(self, open_ended_date: str = OPEN_ENDED_DATE) -> bool:
        """True if the slice has no expiry, i.e. is the current assignment."""
        return self.valid_until == open_ended_date


@dataclass(frozen=True)
class InfoSegment:
    """One infotype segment (E1PITYP) of a logical record.

    Attributes:
        info_type_code: INFTY value, None when absent.
        time_slices: E1P0001 children in document order.
        object_id: OBJID of the owning logical record.
    """

    info_type_code: Optional[str]
    time_slices: Tuple[TimeSlice, ...] = ()
    object_id: Optional[str] = None


@dataclass(frozen=True)
class LogicalRecord:
    """One E1PLOGI group: a person or an organizational object."""

    record_kind: Optional[str]
    object_id: Optional[str]
    segments: Tuple[InfoSegment, ...] = ()

    @property
    def is_person(self) -> bool:
        return self.record_kind == PERSON_RECORD_KIND


@dataclass(frozen=True)
class ClassifiedSegments:
    """Info segments split by the kind of record they came from."""

    person_segments: Tuple[InfoSegment, ...] = ()
    organization_segments: Tuple[InfoSegment, ...] = ()


class DirectoryEntry(NamedTuple):
    """One (company code, system id) pair returned by the directory."""

    company_code: str
    system_id: str


DirectoryAnswer = List[DirectoryEntry]


class RoutingTable:
    """Company code to receiver system mapping for one document.

    The first value written for a company code is kept; later writes for the
    same code are ignored. Entries are never removed.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}

    def add(self, company_code: str, system_id: str) -> bool:
        """Insert a pair unless the company code is already present.

        Returns:
            True if the pair was inserted.
        """
        if company_code in self._entries:
            return False
        self._entries[company_code] = system_id
        return True

    def merge(self, entries: List[DirectoryEntry]) -> int:
        """Add directory pairs that fill gaps. Returns the number inserted."""
        added = 0
        for entry in entries:
            if self.add(entry.company_code, entry.system_id):
                added += 1
        return added

    def receivers(self) -> FrozenSet[str]:
        """Distinct, non-empty receiver system ids."""
        return frozenset(value for value in self._entries.values() if value)

    def items(self) -> List[Tuple[str, str]]:
        """Company code to system id pairs in insertion order."""
        return list(self._entries.items())

    def __contains__(self, company_code: object) -> bool:
        return company_code in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __repr__(self) -> str:
        return f"RoutingTable({self._entries!r})"


class MappingParameters:
    """Read-only operation-mapping parameters of the current scenario.

    Parameter names are the routing prefix followed by a company code
    (e.g. "R1000"), values are receiver system ids.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None) -> None:
        self._values: Dict[str, str] = {
            str(name): str(value)
            for name, value in (values or {}).items()
            if value is not None
        }

    @classmethod
    def from_pairs(cls, pairs: List[str]) -> "MappingParameters":
        """Build parameters from "NAME=VALUE" strings.

        Raises:
            ValueError: If a pair has no "=" or an empty name.
        """
        values: Dict[str, str] = {}
        for pair in pairs:
            name, sep, value = pair.partition("=")
            if not sep or not name.strip():
                raise ValueError(f"Parameter must look like NAME=VALUE, got {pair!r}")
            values[name.strip()] = value.strip()
        return cls(values)

    def get_string(self, name: str) -> str:
        """Return the value of parameter `name`.

        Raises:
            RoutingKeyUndefinedError: If the parameter is not defined.
        """
        try:
            return self._values[name]
        except KeyError:
            raise RoutingKeyUndefinedError(
                f"Parameter '{name}' is not defined", parameter_name=name
            ) from None

    def to_dict(self) -> Dict[str, str]:
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._values)


class DynamicConfiguration:
    """Message-level key/value store shared with later pipeline steps.

    Keys are (namespace, name) pairs.
    """

    def __init__(self) -> None:
        self._values: Dict[Tuple[str, str], str] = {}

    def put(self, namespace: str, name: str, value: str) -> None:
        """Store `value` under (namespace, name), replacing any earlier value.

        Args:
            namespace: Key namespace, e.g. "urn:ru:SAP:CustomNamespace:10".
            name: Key name, e.g. "R1000".
            value: Receiver system id.
        """
        self._values[(namespace, name)] = value

    def get(self, namespace: str, name: str) -> Optional[str]:
        """Return the value stored under (namespace, name), or None."""
        return self._values.get((namespace, name))

    def items(self) -> List[Tuple[Tuple[str, str], str]]:
        """All ((namespace, name), value) entries in insertion order."""
        return list(self._values.items())

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class MessageContext:
    """Per-message data supplied by the invoking bus.

    Attributes:
        sender_service: Sender communication component of the scenario.
        interface_name: Sender interface name.
        interface_namespace: Sender interface namespace.
        parameters: Operation-mapping parameters used as routing-key source.
        dynamic_configuration: Optional store receiving targeted routing pairs.
    """

    sender_service: str
    interface_name: str
    interface_namespace: str
    parameters: MappingParameters = field(default_factory=MappingParameters)
    dynamic_configuration: Optional[DynamicConfiguration] = None


@dataclass
class RoutingOutcome:
    """Result of one receiver determination run.

    Attributes:
        stage: Terminal stage (DONE or ABORTED).
        receivers: Distinct receiver system ids written to the output.
        payload: Encoded routing decision, None when aborted.
        broadcast: Whether a management infotype forced broadcast routing.
        lookup_performed: Whether the directory fallback ran.
        routing_pairs: Final company code to system id pairs.
        document_id: IDoc number, if known.
        warnings: Recoverable problems met during the run.
        error_report: Structured report of the abort reason, if aborted.
    """

    stage: RoutingStage
    receivers: FrozenSet[str] = frozenset()
    payload: Optional[bytes] = None
    broadcast: bool = False
    lookup_performed: bool = False
    routing_pairs: List[Tuple[str, str]] = field(default_factory=list)
    document_id: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    error_report: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.stage is RoutingStage.DONE
