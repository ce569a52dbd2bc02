"""
Attribute-level change tracking for persistent records.

recordstate knows, at any moment, which attributes of a record differ from the
value last known to be durably stored, and produces a type-correct diff that a
persistence layer can use to build partial writes, bump optimistic lock
versions, or report what a save changed.

Key Features:
- Type-aware equality ("0" == 0, "" == None for numeric and temporal types)
- In-place mutation detection for JSON and binary values
- Zone-aware timestamps compared by instant
- Partial writes with timestamp and lock-version bookkeeping
- Change history of the most recent save
- Independent duplicates and partial loads

Quick Start:
    >>> from recordstate import Record, RecordSchema, AttributeDefinition, InMemoryTable
    >>>
    >>> class Pirate(Record):
    ...     schema = RecordSchema("pirates", [
    ...         AttributeDefinition("id", "integer", primary_key=True),
    ...         AttributeDefinition("catchphrase", "string"),
    ...         AttributeDefinition("updated_on", "datetime"),
    ...     ])
    >>>
    >>> Pirate.table = InMemoryTable(Pirate.schema)
    >>> pirate = Pirate.create(catchphrase="arrr")
    >>> pirate.catchphrase = "arrr"
    >>> pirate.has_changes
    False

Architecture:
    types            AttributeType descriptors (cast / equal / changed_in_place)
    schema           RecordSchema + SchemaConfig for one record kind
    attribute_set    AttributeSlot / AttributeStore (per-record state)
    change_detector  changed names, changes, changed(from=, to=)
    change_history   previous_changes snapshot
    write_planner    INSERT / UPDATE / SKIP plans
    persistence      executor interface + InMemoryTable
    record           Record base class
"""

# Errors
from recordstate.errors import (
    RecordStateError,
    CastError,
    UnknownAttributeError,
    MissingAttributeError,
    PersistenceError,
    StaleRecordError,
    RecordNotFound,
)

# Types
from recordstate.types import (
    AttributeType,
    ValueType,
    StringType,
    IntegerType,
    FloatType,
    DecimalType,
    BooleanType,
    DateTimeType,
    DateType,
    JSONType,
    BinaryType,
    cast_attribute,
    lookup_type,
    register_type,
)

# Schema
from recordstate.schema import AttributeDefinition, RecordSchema, SchemaConfig

# Engine
from recordstate.attribute_set import AttributeSlot, AttributeStore
from recordstate.change_detector import ChangeDetector
from recordstate.change_history import ChangeHistory, SavedChanges
from recordstate.write_planner import WriteKind, WritePlan, WritePlanner

# Persistence
from recordstate.persistence import PersistenceExecutor, InMemoryTable, WriteLogEntry

# Record
from recordstate.record import Record, with_partial_writes

__all__ = [
    # Errors
    'RecordStateError',
    'CastError',
    'UnknownAttributeError',
    'MissingAttributeError',
    'PersistenceError',
    'StaleRecordError',
    'RecordNotFound',
    # Types
    'AttributeType',
    'ValueType',
    'StringType',
    'IntegerType',
    'FloatType',
    'DecimalType',
    'BooleanType',
    'DateTimeType',
    'DateType',
    'JSONType',
    'BinaryType',
    'cast_attribute',
    'lookup_type',
    'register_type',
    # Schema
    'AttributeDefinition',
    'RecordSchema',
    'SchemaConfig',
    # Engine
    'AttributeSlot',
    'AttributeStore',
    'ChangeDetector',
    'ChangeHistory',
    'SavedChanges',
    'WriteKind',
    'WritePlan',
    'WritePlanner',
    # Persistence
    'PersistenceExecutor',
    'InMemoryTable',
    'WriteLogEntry',
    # Record
    'Record',
    'with_partial_writes',
]

__version__ = '1.0.0'
__description__ = 'Attribute-level change tracking for persistent records'
