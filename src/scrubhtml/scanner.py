"""Scan orchestration: parse, sanitize, serialize.

A :class:`Scanner` holds nothing but its (immutable) policy and collaborators,
so one instance can serve any number of threads. Every call to
:meth:`Scanner.scan` runs a fresh :class:`ScanRun` with its own tree and error
list.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable

from .errors import ErrorRecord, InputTooLargeError, PolicyError, ScanError, ScanResult, ScanTimeoutError, _StrEnum
from .parser import parse
from .policy import DEFAULT_POLICY, Policy
from .sanitizer import ScanHooks, TreeSanitizer
from .serialize import SerializeOptions, serialize

logger = logging.getLogger(__name__)


class ScanState(_StrEnum):
    IDLE = "idle"
    PARSING = "parsing"
    SANITIZING = "sanitizing"
    SERIALIZING = "serializing"
    DONE = "done"
    FAILED = "failed"


def _trim(original: str, cleaned: str) -> str:
    """Drop a trailing newline the input did not have."""
    if cleaned.endswith("\n") and not original.endswith("\n"):
        return cleaned[:-1]
    return cleaned


class Scanner:
    __slots__ = ("clock", "hooks", "policy", "sanitizer", "serialize_options")

    def __init__(
        self,
        policy: Policy = DEFAULT_POLICY,
        *,
        hooks: Iterable[ScanHooks] = (),
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        if not isinstance(policy, Policy):
            raise PolicyError(f"Expected a Policy, got {type(policy).__name__}")
        self.policy = policy
        self.hooks = tuple(hooks)
        self.clock = clock
        self.sanitizer = TreeSanitizer(policy)
        self.serialize_options = SerializeOptions.from_policy(policy)

    def scan(self, html: str) -> ScanResult:
        """Sanitize ``html``.

        Raises :class:`~scrubhtml.errors.ScanError` only for fatal conditions;
        everything else is reported in the result's ``errors``.
        """
        return ScanRun(self, html).run()

    def __repr__(self) -> str:
        return f"<Scanner policy={len(self.policy.tags)} tag rules, {len(self.hooks)} hooks>"


class ScanRun:
    """A single pass of the pipeline; runs once.

    ``state`` moves ``IDLE -> PARSING -> SANITIZING -> SERIALIZING -> DONE``,
    or to ``FAILED`` from any of them. ``history`` records every state
    entered.
    """

    __slots__ = ("errors", "history", "html", "result", "scanner", "started", "state")

    def __init__(self, scanner: Scanner, html: str | None) -> None:
        self.scanner = scanner
        self.html = html if html is not None else ""
        self.state = ScanState.IDLE
        self.history = [ScanState.IDLE]
        self.errors: list[ErrorRecord] = []
        self.result: ScanResult | None = None
        self.started = 0.0

    def _enter(self, state: ScanState) -> None:
        self.state = state
        self.history.append(state)
        logger.debug("Scan entered %s", state.value)

    def _elapsed_ms(self) -> float:
        return (self.scanner.clock() - self.started) * 1000.0

    def _check_budget(self, stage: ScanState) -> None:
        budget = self.scanner.policy.max_scan_time_ms
        if budget is None:
            return
        elapsed = self._elapsed_ms()
        if elapsed > budget:
            raise ScanTimeoutError(elapsed, budget, stage.value)

    def run(self) -> ScanResult:
        if self.state is not ScanState.IDLE:
            raise RuntimeError("a ScanRun can only be run once")

        scanner = self.scanner
        policy = scanner.policy
        html = self.html
        started_at = time.time()
        self.started = scanner.clock()

        try:
            if len(html) > policy.max_input_length:
                raise InputTooLargeError(len(html), policy.max_input_length)

            self._enter(ScanState.PARSING)
            arena = parse(html, policy.max_input_length, max_depth=policy.max_nesting_depth, errors=self.errors)
            self._check_budget(ScanState.PARSING)

            self._enter(ScanState.SANITIZING)
            for hook in scanner.hooks:
                hook.before_sanitize(arena, self.errors)
            scanner.sanitizer.sanitize(arena, self.errors)
            for hook in scanner.hooks:
                hook.after_sanitize(arena, self.errors)
            self._check_budget(ScanState.SANITIZING)

            self._enter(ScanState.SERIALIZING)
            clean_html = _trim(html, serialize(arena, scanner.serialize_options))
        except ScanError as exc:
            self._enter(ScanState.FAILED)
            # The exception message carries sizes and limits, never markup.
            logger.warning("Scan failed (%s): %s", exc.code, exc)
            raise
        except Exception:
            self._enter(ScanState.FAILED)
            raise

        elapsed_ms = self._elapsed_ms()
        self.result = ScanResult(clean_html, tuple(self.errors), elapsed_ms, started_at)
        self._enter(ScanState.DONE)
        logger.debug(
            "Scanned %d characters into %d in %.2f ms with %d errors",
            len(html),
            len(clean_html),
            elapsed_ms,
            len(self.errors),
        )
        return self.result


def scan(html: str, policy: Policy = DEFAULT_POLICY) -> ScanResult:
    """Sanitize ``html`` with ``policy``."""
    return Scanner(policy).scan(html)
