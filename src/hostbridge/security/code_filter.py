"""
Lexical screening of inline Python code.

This is a best-effort filter, not a security boundary. It catches a
cooperative caller about to hurt itself (deleting trees, shelling out,
evaluating strings). Trivial obfuscation defeats it: string concatenation,
aliasing (``from os import system as s``), ``getattr`` lookups and so on
all pass. Never rely on it for untrusted input.

The unrestricted command surface (PowerShell) deliberately has no filter.
"""

import re
from typing import Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict


class SafetyVerdict(BaseModel):
    """Outcome of screening a piece of source text."""

    model_config = ConfigDict(frozen=True)

    safe: bool
    reason: Optional[str] = None
    rule: Optional[str] = None

    @classmethod
    def ok(cls) -> "SafetyVerdict":
        return cls(safe=True)

    @classmethod
    def unsafe(cls, reason: str, rule: str) -> "SafetyVerdict":
        return cls(safe=False, reason=reason, rule=rule)


@runtime_checkable
class CodeSafetyFilter(Protocol):
    """Interface for code screening backends."""

    def check(self, source: str) -> SafetyVerdict:
        ...


# Ordered; the first match is reported.
DANGEROUS_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"\bos\.system\s*\(", "shell escape via os.system"),
    (r"\bsubprocess\.(call|run|Popen)\s*\(", "shell escape via subprocess"),
    (r"\beval\s*\(", "dynamic evaluation via eval"),
    (r"\bexec\s*\(", "dynamic execution via exec"),
    (r"\b__import__\s*\(", "dynamic import via __import__"),
    (r"\bopen\s*\([^)]*['\"][wa]", "file opened for writing or appending"),
    (r"\bshutil\.rmtree\s*\(", "recursive deletion via shutil.rmtree"),
    (r"\bos\.remove\s*\(", "file removal via os.remove"),
    (r"\bos\.unlink\s*\(", "file removal via os.unlink"),
    (r"\bos\.rmdir\s*\(", "directory removal via os.rmdir"),
)


class RegexCodeSafetyFilter:
    """
    Pattern-list implementation of CodeSafetyFilter.

    Usage:
        verdict = RegexCodeSafetyFilter().check("import shutil; shutil.rmtree('/x')")
        assert not verdict.safe
    """

    def __init__(self, patterns: tuple[tuple[str, str], ...] = DANGEROUS_PATTERNS):
        self._rules = [(re.compile(pattern), pattern, label) for pattern, label in patterns]

    @property
    def patterns(self) -> list[str]:
        return [pattern for _, pattern, _ in self._rules]

    def check(self, source: str) -> SafetyVerdict:
        for regex, pattern, label in self._rules:
            if regex.search(source):
                return SafetyVerdict.unsafe(
                    f"Dangerous pattern detected: {label} (/{pattern}/)",
                    rule=pattern,
                )
        return SafetyVerdict.ok()
