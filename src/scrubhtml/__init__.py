from .css import CssValidator
from .errors import (
    ErrorRecord,
    InputTooLargeError,
    NestingTooDeepError,
    PolicyError,
    ScanError,
    ScanResult,
    ScanTimeoutError,
    Severity,
)
from .messages import DEFAULT_BUNDLE, MessageBundle
from .node import NodeArena, NodeKind
from .parser import parse
from .policy import (
    DEFAULT_POLICY,
    AttributeRule,
    CssPropertyRule,
    OnInvalid,
    Policy,
    TagAction,
    TagRule,
    UrlRule,
    load_policy,
)
from .sanitizer import AttributeDecision, ScanHooks, TreeSanitizer
from .scanner import Scanner, ScanState, scan
from .serialize import SerializeOptions, serialize
from .urls import UrlValidator, is_safe_url

__all__ = [
    "DEFAULT_BUNDLE",
    "DEFAULT_POLICY",
    "AttributeDecision",
    "AttributeRule",
    "CssPropertyRule",
    "CssValidator",
    "ErrorRecord",
    "InputTooLargeError",
    "MessageBundle",
    "NestingTooDeepError",
    "NodeArena",
    "NodeKind",
    "OnInvalid",
    "Policy",
    "PolicyError",
    "ScanError",
    "ScanHooks",
    "ScanResult",
    "ScanState",
    "ScanTimeoutError",
    "Scanner",
    "SerializeOptions",
    "Severity",
    "TagAction",
    "TagRule",
    "TreeSanitizer",
    "UrlRule",
    "UrlValidator",
    "is_safe_url",
    "load_policy",
    "parse",
    "scan",
    "serialize",
]
