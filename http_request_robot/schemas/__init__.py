"""
Pydantic schemas package.

Exports all schemas used for validation and transport.
"""

from .request_config import (
    HttpMethod,
    BodyType,
    AuthType,
    HeaderEntry,
    FormField,
    OutputMapping,
    AuthConfig,
    RequestConfig,
    OUTPUT_SLOTS,
)

from .execute import (
    CompiledRequest,
    ExecutionResult,
    ReturnValues,
)

from .invocation import (
    CallbackCredential,
    OAuthCredential,
    InvocationAuth,
    Invocation,
    InvocationResponse,
)

from .preview import (
    PreviewRequest,
    MappingPreview,
    PreviewResponse,
)

__all__ = [
    # Request configuration
    "HttpMethod",
    "BodyType",
    "AuthType",
    "HeaderEntry",
    "FormField",
    "OutputMapping",
    "AuthConfig",
    "RequestConfig",
    "OUTPUT_SLOTS",
    # Execution
    "CompiledRequest",
    "ExecutionResult",
    "ReturnValues",
    # Invocation and credentials
    "CallbackCredential",
    "OAuthCredential",
    "InvocationAuth",
    "Invocation",
    "InvocationResponse",
    # Test requests
    "PreviewRequest",
    "MappingPreview",
    "PreviewResponse",
]
