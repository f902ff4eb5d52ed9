from proto_stream.core.types._exception_types import (
    FATAL_SERDE_EXCEPTIONS,
    RETRYABLE_REGISTRY_EXCEPTIONS,
    AuthError,
    ConfigError,
    DecodeError,
    ErrorKind,
    FormatError,
    NetworkError,
    RegistryError,
    SchemaCacheConflictError,
    SchemaCompatibilityError,
    SchemaNotFoundError,
    SerdeError,
    SerializationError,
    UnregisteredTypeError,
)
from proto_stream.core.types._serde_types import (
    HEADER_SIZE,
    LATEST_VERSION,
    MAGIC_BYTE,
    PROTOBUF_SCHEMA_TYPE,
    SCHEMA_ID_SIZE,
    SERIALIZED_FORMAT,
    CompatibilityLevel,
    DecodeStage,
    MessageDecoder,
    MessageField,
    SchemaVersion,
)

__all__ = [
    # _exception_types
    "SerdeError",
    "ConfigError",
    "FormatError",
    "DecodeError",
    "UnregisteredTypeError",
    "SerializationError",
    "RegistryError",
    "NetworkError",
    "AuthError",
    "SchemaNotFoundError",
    "SchemaCompatibilityError",
    "SchemaCacheConflictError",
    "ErrorKind",
    "RETRYABLE_REGISTRY_EXCEPTIONS",
    "FATAL_SERDE_EXCEPTIONS",
    # _serde_types
    "MAGIC_BYTE",
    "SCHEMA_ID_SIZE",
    "HEADER_SIZE",
    "PROTOBUF_SCHEMA_TYPE",
    "LATEST_VERSION",
    "SERIALIZED_FORMAT",
    "MessageDecoder",
    "SchemaVersion",
    "MessageField",
    "CompatibilityLevel",
    "DecodeStage",
]
