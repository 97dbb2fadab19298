"""Custom exceptions for PolyQuery."""

from typing import Any


class PolyQueryError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class ConfigInvalidError(PolyQueryError):
    """Raised when a connection is missing required parameters."""

    def __init__(
        self,
        message: str,
        source_type: str | None = None,
        missing: list[str] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="CONFIG_INVALID",
            details={"source_type": source_type, "missing": missing or []},
        )
        self.source_type = source_type
        self.missing = missing or []


class SourceUnreachableError(PolyQueryError):
    """Raised when the underlying store cannot be contacted or authenticated."""

    def __init__(
        self,
        message: str,
        source_type: str | None = None,
        original_error: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="SOURCE_UNREACHABLE",
            details={"source_type": source_type, "original_error": original_error},
        )
        self.source_type = source_type
        self.original_error = original_error


class ExecutionError(PolyQueryError):
    """Raised when a reachable source rejects the query itself."""

    def __init__(
        self,
        message: str,
        statement: str | None = None,
        original_error: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="EXECUTION_ERROR",
            details={"statement": statement, "original_error": original_error},
        )
        self.statement = statement
        self.original_error = original_error


class SubCollectionNotFoundError(PolyQueryError):
    """Raised when a table, sheet or collection does not exist in a source."""

    def __init__(self, message: str, name: str) -> None:
        super().__init__(
            message=message,
            error_code="SUB_COLLECTION_NOT_FOUND",
            details={"name": name},
        )
        self.name = name


class NoStructuredOutputError(PolyQueryError):
    """Raised when the generated text contains no JSON object."""

    def __init__(self, message: str, raw_response: str) -> None:
        super().__init__(
            message=message,
            error_code="NO_STRUCTURED_OUTPUT",
            details={"raw_response": raw_response},
        )
        self.raw_response = raw_response


class DescriptorParseError(PolyQueryError):
    """Raised when the extracted JSON cannot be turned into a query descriptor."""

    def __init__(self, message: str, raw_response: str) -> None:
        super().__init__(
            message=message,
            error_code="DESCRIPTOR_PARSE_ERROR",
            details={"raw_response": raw_response},
        )
        self.raw_response = raw_response


class ConnectionNotFoundError(PolyQueryError):
    """Raised when no connection can be resolved (the registry is empty)."""

    def __init__(self, message: str, connection_id: str | None = None) -> None:
        super().__init__(
            message=message,
            error_code="CONNECTION_NOT_FOUND",
            details={"connection_id": connection_id},
        )
        self.connection_id = connection_id


class DuplicateConnectionError(PolyQueryError):
    """Raised when a connection id is already registered."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(
            message=f"Connection id '{connection_id}' is already registered",
            error_code="DUPLICATE_CONNECTION",
            details={"connection_id": connection_id},
        )
        self.connection_id = connection_id


class ConfigurationError(PolyQueryError):
    """Raised when application configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key},
        )
        self.config_key = config_key
