"""
Access control and code screening.

AccessGuard decides whether a path may be touched; CodeSafetyFilter screens
inline Python before it is staged for execution.
"""

from hostbridge.security.code_filter import (
    DANGEROUS_PATTERNS,
    CodeSafetyFilter,
    RegexCodeSafetyFilter,
    SafetyVerdict,
)
from hostbridge.security.guard import (
    AccessGuard,
    AccessPolicy,
    is_within,
    normalize_path,
    volume_of,
)

__all__ = [
    "AccessGuard",
    "AccessPolicy",
    "normalize_path",
    "is_within",
    "volume_of",
    "CodeSafetyFilter",
    "RegexCodeSafetyFilter",
    "SafetyVerdict",
    "DANGEROUS_PATTERNS",
]
