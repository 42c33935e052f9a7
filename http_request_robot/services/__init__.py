# Services package

from .path_extractor import MISSING, extract
from .template_variables import extract_variables, has_unresolved_variables
from .config_normalizer import normalize_config, normalize_invocation
from .request_compiler import apply_test_data, compile_request
from .http_executor import execute_request
from .response_mapper import build_return_values
from .callback_sender import CallbackSender
from .token_manager import TokenManager
from .orchestrator import ExecutionOrchestrator

__all__ = [
    "MISSING",
    "extract",
    "extract_variables",
    "has_unresolved_variables",
    "normalize_config",
    "normalize_invocation",
    "apply_test_data",
    "compile_request",
    "execute_request",
    "build_return_values",
    "CallbackSender",
    "TokenManager",
    "ExecutionOrchestrator",
]
