"""Arbitration engine: the single entry point for arbitrating sources.

Runs the five dimension analyzers concurrently, aggregates their results
behind a barrier, routes the aggregate through the decision gate, and
records every terminal decision, preceded by any inference failures
behind it, in the evidence ledger before handing non-approved reports
to the escalation queue.
"""

from __future__ import annotations

import asyncio
import logging

from concord.aggregator import WeightedAggregator
from concord.analyzers import ArbitrationContext, DimensionAnalyzer, default_analyzers
from concord.errors import EngineHalted, LedgerWriteFailure
from concord.escalation.queue import EscalationQueue
from concord.gate import DecisionGate
from concord.ledger.writer import EvidenceLedger, sha256_hex
from concord.providers.base import InferenceBackend
from concord.reference.validator import ReferenceFactProvider, ReferenceFactValidator
from concord.schemas.analysis import DimensionResult
from concord.schemas.config import ArbitrationConfig
from concord.schemas.report import ContradictionReport, Decision
from concord.schemas.sources import SourceResponse

logger = logging.getLogger(__name__)

DECISION_ENTRY = "arbitration_decision"
FAILURE_ENTRY = "inference_failure"


class ArbitrationEngine:
    """Fork/join arbitration over a fixed set of dimension analyzers.

    Construction fails with WeightSumInvalid when the configured weights
    do not sum to 1.0. Once a ledger write has failed, the engine halts
    and every later call raises EngineHalted: a decision that cannot be
    recorded is never returned.
    """

    def __init__(
        self,
        config: ArbitrationConfig,
        backend: InferenceBackend,
        ledger: EvidenceLedger,
        escalation: EscalationQueue | None = None,
        reference_facts: ReferenceFactProvider | None = None,
        analyzers: list[DimensionAnalyzer] | None = None,
    ) -> None:
        self._config = config
        self._backend = backend
        self._ledger = ledger
        self._escalation = escalation or EscalationQueue(
            max_pending=config.escalation_max_pending,
            score_threshold=config.score_threshold,
        )
        self._validator = (
            ReferenceFactValidator(reference_facts) if reference_facts is not None else None
        )
        self._analyzers = analyzers if analyzers is not None else default_analyzers()
        self._aggregator = WeightedAggregator(config.weights)
        self._gate = DecisionGate(config.score_threshold, config.confidence_floor)
        self._halt_cause: LedgerWriteFailure | None = None
        self._persisting: set[asyncio.Task[None]] = set()

    # ── Properties ────────────────────────────────────────────

    @property
    def config(self) -> ArbitrationConfig:
        return self._config

    @property
    def backend(self) -> InferenceBackend:
        return self._backend

    @property
    def ledger(self) -> EvidenceLedger:
        return self._ledger

    @property
    def escalation(self) -> EscalationQueue:
        return self._escalation

    @property
    def halted(self) -> bool:
        return self._halt_cause is not None

    # ── Arbitration ───────────────────────────────────────────

    async def arbitrate(
        self,
        sources: list[SourceResponse],
        *,
        supersedes: str | None = None,
    ) -> ContradictionReport:
        """Arbitrate one set of source responses.

        Args:
            sources: Independently produced statements about one procedure.
            supersedes: ID of an earlier report this one corrects.

        Returns:
            The frozen ContradictionReport, already recorded in the ledger.

        Raises:
            EngineHalted: A previous ledger failure stopped the engine.
            LedgerWriteFailure: The decision could not be recorded; the
                engine halts.
        """
        if self._halt_cause is not None:
            raise EngineHalted(
                f"Engine halted after ledger failure: {self._halt_cause}"
            ) from self._halt_cause

        sources = list(sources)
        context = ArbitrationContext(
            config=self._config,
            backend=self._backend,
            reference_validator=self._validator,
        )

        results = await asyncio.gather(
            *(self._run_analyzer(analyzer, sources, context) for analyzer in self._analyzers)
        )

        aggregate = self._aggregator.aggregate(list(results))
        outcome = self._gate.decide(
            aggregate.overall_score,
            aggregate.aggregate_confidence,
            aggregate.max_severity,
        )

        report = ContradictionReport(
            overall_score=aggregate.overall_score,
            per_dimension=aggregate.per_dimension,
            aggregate_confidence=aggregate.aggregate_confidence,
            decision=outcome.decision,
            decision_reason=outcome.reason,
            max_severity=aggregate.max_severity,
            source_ids=[s.source_id for s in sources],
            supersedes=supersedes,
        )
        logger.info(
            "Report %s: %s (score %.3f, confidence %.2f, %s)",
            report.id,
            report.decision,
            report.overall_score,
            report.aggregate_confidence,
            outcome.reason,
        )

        # The write outlives a cancelled caller once a decision exists
        task = asyncio.ensure_future(self._persist(report, sources, context))
        self._persisting.add(task)
        task.add_done_callback(self._persist_done)
        await asyncio.shield(task)
        return report

    async def _run_analyzer(
        self,
        analyzer: DimensionAnalyzer,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> DimensionResult:
        """Run one analyzer under the per-analyzer timeout.

        A timeout or unexpected error degrades this dimension only, using
        whatever partial score the analyzer managed to publish.
        """
        timeout = self._config.analyzer_timeout
        try:
            return await asyncio.wait_for(analyzer.analyze(sources, context), timeout=timeout)
        except TimeoutError:
            reason = f"timed out after {timeout:.1f}s"
        except Exception as e:
            logger.exception("%s analyzer failed", analyzer.dimension)
            reason = f"analyzer error: {e}"

        context.record_failure(analyzer.dimension, reason, sources)
        partial = context.partial_score(analyzer.dimension)
        logger.warning(
            "%s analyzer degraded (%s), using partial score %.2f",
            analyzer.dimension,
            reason,
            partial,
        )
        return DimensionResult(
            dimension=analyzer.dimension,
            score=partial,
            confidence=self._config.degraded_confidence,
            degraded=True,
            degradation_reason=reason,
        )

    async def _persist(
        self,
        report: ContradictionReport,
        sources: list[SourceResponse],
        context: ArbitrationContext,
    ) -> None:
        payload = {
            "report": report.model_dump(mode="json"),
            "source_digests": {s.source_id: sha256_hex(s.text) for s in sources},
        }
        try:
            for failure in context.inference_failures:
                await self._ledger.append(
                    FAILURE_ENTRY, {"report_id": report.id, **failure.to_payload()}
                )
            await self._ledger.append(DECISION_ENTRY, payload)
        except LedgerWriteFailure as e:
            self._halt_cause = e
            logger.error("Halting arbitration engine: %s", e)
            raise

        if report.decision != Decision.AUTO_APPROVE:
            await self._escalation.enqueue(report)

    def _persist_done(self, task: asyncio.Task[None]) -> None:
        self._persisting.discard(task)
        # A cancelled caller never awaits the task; its failure is already
        # logged and recorded as the halt cause
        if not task.cancelled():
            task.exception()
