"""Error records, scan results and the fatal exception hierarchy.

Recoverable problems (malformed markup, anything the policy strips) are
collected as :class:`ErrorRecord` values on the :class:`ScanResult`. Only
conditions that prevent producing a safe result at all are raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .messages import MessageBundle


class _StrEnum(str, Enum):
    """Backport of enum.StrEnum (Python 3.11+)."""


class Severity(_StrEnum):
    WARNING = "warning"  # malformed input that was repaired
    ERROR = "error"  # content removed or rewritten by the policy


@dataclass(frozen=True, slots=True)
class ErrorRecord:
    """A single recoverable issue found during one scan.

    ``code`` is a stable kebab-case identifier; ``args`` are the substitution
    arguments for the localized message. Human-readable text is produced by
    :meth:`render` with an injected :class:`~scrubhtml.messages.MessageBundle`.
    """

    code: str
    args: tuple[str, ...] = ()
    severity: Severity = Severity.ERROR
    line: int | None = None
    column: int | None = None

    def render(self, bundle: MessageBundle) -> str:
        return bundle.format(self.code, self.args)

    def as_dict(self, bundle: MessageBundle | None = None) -> dict[str, object]:
        out: dict[str, object] = {"code": self.code, "args": list(self.args), "severity": self.severity.value}
        if self.line is not None:
            out["line"] = self.line
            out["column"] = self.column
        if bundle is not None:
            out["message"] = self.render(bundle)
        return out

    def __str__(self) -> str:
        detail = f"{self.code}({', '.join(self.args)})" if self.args else self.code
        if self.line is not None and self.column is not None:
            return f"({self.line},{self.column}): {detail}"
        return detail


def warning(code: str, *args: str, line: int | None = None, column: int | None = None) -> ErrorRecord:
    return ErrorRecord(code, tuple(str(a) for a in args), Severity.WARNING, line, column)


def error(code: str, *args: str, line: int | None = None, column: int | None = None) -> ErrorRecord:
    return ErrorRecord(code, tuple(str(a) for a in args), Severity.ERROR, line, column)


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Outcome of one scan. ``clean_html`` is safe to render even when
    ``errors`` is non-empty."""

    clean_html: str
    errors: tuple[ErrorRecord, ...]
    elapsed_ms: float
    started_at: float

    @property
    def num_errors(self) -> int:
        return len(self.errors)

    @property
    def codes(self) -> list[str]:
        return [record.code for record in self.errors]

    def messages(self, bundle: MessageBundle) -> list[str]:
        return [record.render(bundle) for record in self.errors]

    def __str__(self) -> str:
        return self.clean_html


class ScanError(Exception):
    """A fatal condition: no ScanResult is produced."""

    def __init__(self, message: str, *, code: str = "scan-failed") -> None:
        super().__init__(message)
        self.code = code


class InputTooLargeError(ScanError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"Input of {size} characters exceeds the limit of {limit}", code="input-too-large")
        self.size = size
        self.limit = limit


class NestingTooDeepError(ScanError):
    def __init__(self, limit: int, line: int | None = None) -> None:
        where = f" at line {line}" if line is not None else ""
        super().__init__(f"Element nesting exceeds {limit} levels{where}", code="nesting-too-deep")
        self.limit = limit
        self.line = line


class ScanTimeoutError(ScanError):
    def __init__(self, elapsed_ms: float, budget_ms: float, stage: str) -> None:
        super().__init__(
            f"Scan exceeded its {budget_ms:g} ms budget after {stage} ({elapsed_ms:.1f} ms)",
            code="scan-timeout",
        )
        self.elapsed_ms = elapsed_ms
        self.budget_ms = budget_ms
        self.stage = stage


class PolicyError(ScanError):
    """The policy definition is malformed or internally inconsistent."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="policy-invalid")
