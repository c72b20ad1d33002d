from typing import Any, Dict, List, Optional


class ClinicError(Exception):
    """Base class for errors raised by the record store and query engine."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ClinicError):
    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found with ID: {identifier}")
        self.resource = resource
        self.identifier = identifier


class ValidationError(ClinicError):
    """Missing or malformed input field.

    `errors` holds one ``{"field": ..., "message": ...}`` entry per problem,
    using the external (camelCase) field names.
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []
