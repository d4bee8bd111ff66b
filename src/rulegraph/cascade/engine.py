"""Cascade engine: applies an ordered rule list to text states.

The engine knows nothing about the graph. For every rule it visits it emits
one TransformationRecord, whether or not the rule changed anything; that
stream is the only thing the graph builder sees.

Per state the rules run strictly in order. Across states there is no shared
mutable data except the per-run usage accumulator, so a batch is spread
over a thread pool one state per task.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Sequence

from rulegraph.cascade.rules import Rule, UsageAccumulator
from rulegraph.cascade.state import TextState
from rulegraph.core.exceptions import RuleExecutionError
from rulegraph.schemas.diagnostics import InterferenceFinding, RuleUsage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransformationRecord:
    """One rule application on one state.

    ``source`` and ``target`` are the same instance when the step changed
    nothing; otherwise ``target`` is a fresh snapshot taken after the
    rewrite. ``input``/``output`` are what the rule actually ran on, which
    is the original text when the step was a retry.
    """

    source: TextState
    target: TextState
    rule: Rule
    matched: bool
    input: str
    output: str
    error: RuleExecutionError | None = None
    retried: bool = False
    interference: tuple[InterferenceFinding, ...] = ()
    elapsed: float = 0.0

    @property
    def changed(self) -> bool:
        return self.target is not self.source


class CancellationToken:
    """Run-scoped flag checked between text states."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class BatchResult:
    """Output of CascadeEngine.run_batch."""

    records: list[TransformationRecord] = field(default_factory=list)
    processed: list[TextState] = field(default_factory=list)
    skipped: list[TextState] = field(default_factory=list)
    usage: list[RuleUsage] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return bool(self.skipped)

    @property
    def interference(self) -> list[InterferenceFinding]:
        return [finding for record in self.records for finding in record.interference]

    @property
    def errors(self) -> list[RuleExecutionError]:
        return [record.error for record in self.records if record.error is not None]


class CascadeEngine:
    """Applies rules in index order until they run out or an exit rule matches.

    Example:
        >>> engine = CascadeEngine([Rule("pizza", "FOOD")])
        >>> state = TextState("Ho mangiato una pizza")
        >>> records = engine.run_state(state)
        >>> state.current
        'Ho mangiato una FOOD'
    """

    def __init__(
        self,
        rules: Sequence[Rule],
        match_timeout: float | None = None,
        detect_interference: bool = True,
    ):
        """Initialize the engine.

        Args:
            rules: Ordered rules; never mutated by the engine
            match_timeout: Seconds allowed per match+replace (None = unbounded)
            detect_interference: Scan earlier rules when a retry-from-original matches
        """
        self.rules: tuple[Rule, ...] = tuple(rules)
        self.match_timeout = match_timeout
        self.detect_interference = detect_interference

    def run_state(
        self,
        state: TextState,
        usage: UsageAccumulator | None = None,
    ) -> list[TransformationRecord]:
        """Run the whole cascade on one state, mutating it in place.

        Without an accumulator the counters go straight to the rules.
        """
        own_usage = usage is None
        usage = usage or UsageAccumulator()

        records: list[TransformationRecord] = []
        head = state
        for index in range(len(self.rules)):
            if state.is_final:
                break
            record = self.apply_rule(index, state, head, usage)
            records.append(record)
            head = record.target

        if own_usage:
            usage.merge_into_rules()
        return records

    def apply_rule(
        self,
        index: int,
        state: TextState,
        head: TextState,
        usage: UsageAccumulator,
    ) -> TransformationRecord:
        """Apply ``self.rules[index]`` to ``state``.

        Args:
            index: Position of the rule in the cascade
            state: Live state, mutated on a successful rewrite
            head: Instance standing for the state's latest position in the
                provenance chain (the live state itself before any rewrite)
            usage: Run accumulator for the rule counters
        """
        rule = self.rules[index]
        state.begin_step()

        result = rule.apply_to(state.current, timeout=self.match_timeout)
        elapsed = result.elapsed
        retried = False
        findings: tuple[InterferenceFinding, ...] = ()

        if result.error is not None:
            self._log_execution_error(result.error, state)
            usage.record(rule, False, elapsed)
            return TransformationRecord(
                head, head, rule, False, result.input, result.output, error=result.error, elapsed=elapsed
            )

        if result.changed:
            changed = self._commit(rule, state, result.output)
        else:
            changed = False
            if rule.retry_from_original and state.ever_changed:
                simulated = rule.simulate(state.original, timeout=self.match_timeout)
                elapsed += simulated.elapsed
                if simulated.error is not None:
                    self._log_execution_error(simulated.error, state)
                    if result.matched and rule.exit_on_match:
                        state.freeze()
                    usage.record(rule, False, elapsed)
                    return TransformationRecord(
                        head, head, rule, result.matched, result.input, result.output,
                        error=simulated.error, elapsed=elapsed,
                    )
                if simulated.matched:
                    if self.detect_interference:
                        findings = tuple(self.find_interfering_rules(index, state.original))
                    retried = True
                    result = simulated
                    changed = self._commit(rule, state, simulated.output)

        if result.matched and rule.exit_on_match and not state.is_final:
            # Matched without changing the text still ends the cascade
            state.freeze()

        usage.record(rule, changed, elapsed)
        target = state.snapshot() if changed else head
        return TransformationRecord(
            head,
            target,
            rule,
            result.matched,
            result.input,
            result.output,
            retried=retried,
            interference=findings,
            elapsed=elapsed,
        )

    def find_interfering_rules(self, index: int, original: str) -> Iterator[InterferenceFinding]:
        """Earlier rules whose rewrite of ``original`` stops rule ``index`` from matching.

        Only called once rule ``index`` is known to match ``original``
        directly. Pure simulation: no state or counter is touched.
        """
        rule = self.rules[index]
        for earlier in self.rules[:index]:
            first = earlier.simulate(original, timeout=self.match_timeout)
            if first.error is not None or not first.changed:
                continue
            second = rule.simulate(first.output, timeout=self.match_timeout)
            if second.error is not None or second.matched:
                continue
            finding = InterferenceFinding(
                rule_id=rule.rule_id,
                interfering_rule_id=earlier.rule_id,
                original=original,
            )
            logger.warning(
                "Interfering rule detected",
                extra={
                    "rule_id": finding.rule_id,
                    "interfering_rule_id": finding.interfering_rule_id,
                    "original": original,
                },
            )
            yield finding

    def iter_records(self, states: Iterable[TextState]) -> Iterator[TransformationRecord]:
        """Sequential run over ``states``, yielding records as they are produced.

        Counters are merged into the rules when the iterator is exhausted
        or closed.
        """
        usage = UsageAccumulator()
        try:
            for state in states:
                yield from self.run_state(state, usage)
        finally:
            usage.merge_into_rules()

    def run_batch(
        self,
        states: Sequence[TextState],
        max_workers: int = 1,
        cancel_token: CancellationToken | None = None,
    ) -> BatchResult:
        """Run the cascade over every state on a worker pool.

        A cancelled token stops states that have not started yet; a state
        already in a worker finishes its cascade. Records come back grouped
        per state, in input order.
        """
        usage = UsageAccumulator()
        results: list[list[TransformationRecord] | None]

        def task(state: TextState) -> list[TransformationRecord] | None:
            if cancel_token is not None and cancel_token.cancelled:
                return None
            return self.run_state(state, usage)

        if max_workers <= 1:
            results = [task(state) for state in states]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as pool:
                results = list(pool.map(task, states))

        batch = BatchResult(usage=usage.usage())
        usage.merge_into_rules()

        for state, state_records in zip(states, results):
            if state_records is None:
                batch.skipped.append(state)
                continue
            batch.processed.append(state)
            batch.records.extend(state_records)

        logger.info(
            "Cascade batch complete",
            extra={
                "states_count": len(states),
                "processed_count": len(batch.processed),
                "skipped_count": len(batch.skipped),
                "records_count": len(batch.records),
            },
        )
        return batch

    def _commit(self, rule: Rule, state: TextState, output: str) -> bool:
        changed = state.update(output)
        if changed and rule.exit_on_match:
            state.freeze()
        if changed:
            logger.debug(
                "Rule applied",
                extra={"rule_id": rule.rule_id, "categories": list(rule.category_tags), "depth": state.depth},
            )
        return changed

    @staticmethod
    def _log_execution_error(error: RuleExecutionError, state: TextState) -> None:
        logger.warning(
            "Rule execution failed; treating step as no match",
            extra={"error_code": error.error_code, "original": state.original, **error.details},
        )
