"""
ROTEM Decision Engine

Runs the evaluators in a fixed order and turns their recommendations into a
ranked action list:

    preconditions → prophylaxis → fibrinolysis treatment → fibrinogen
        → platelets → coagulation factors → heparin effect → factor VIIa

The order matters. Later steps receive earlier outputs as explicit
arguments:
    hyperfibrinolysis_active   fibrinolysis treatment → fibrinogen
    fibrinogen_adequate        fibrinogen → platelets, coagulation factors
    PreconditionResult         preconditions → factor VIIa salvage

Usage:
    from rotem_assist.core.coagulation import RotemDecisionEngine, RotemPanel, ClinicalContext

    engine = RotemDecisionEngine()
    report = engine.evaluate(RotemPanel(phase="ANHEPATICA", cli60_extem=80), ClinicalContext())
    for action in report.actions:
        print(action.rank, action.recommendation.action)
"""
from __future__ import annotations

from datetime import datetime, timezone
from types import MappingProxyType
from typing import Callable, Dict, List, Optional, Tuple

from rotem_assist.utils import EvaluationError, InvalidInputError, RotemAssistError, get_logger
from .base import (
    ClinicalContext,
    Domain,
    EvaluationReport,
    EvaluationResult,
    PrioritizedAction,
    Recommendation,
    ResultStatus,
    RotemPanel,
)
from .rules_fibrinolysis import evaluate_fibrinolysis_prophylaxis, evaluate_fibrinolysis_treatment
from .rules_firmness import evaluate_fibrinogen, evaluate_platelets
from .rules_preconditions import evaluate_preconditions
from .rules_salvage import evaluate_salvage
from .rules_thrombin import evaluate_coagulation_factors, evaluate_heparin_effect
from .thresholds import PRO_T3_V3, ThresholdTable, export_reference_data

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def prioritize(results: Dict[Domain, Optional[EvaluationResult]]) -> Tuple[PrioritizedAction, ...]:
    """
    Flatten recommendations in pipeline order, stable-sort by ascending
    priority and assign 1-based ranks.
    """
    collected: List[Tuple[Domain, Recommendation]] = []
    for domain in Domain:
        result = results.get(domain)
        if result is not None:
            collected.extend((domain, rec) for rec in result.recommendations)

    collected.sort(key=lambda item: item[1].priority)
    return tuple(
        PrioritizedAction(rank=index, domain=domain, recommendation=rec)
        for index, (domain, rec) in enumerate(collected, start=1)
    )


class RotemDecisionEngine:
    """
    Evaluates one ROTEM panel plus clinical context into an EvaluationReport.

    Stateless apart from the immutable threshold table, so one instance can
    be shared between threads and concurrent requests. To change protocol,
    build a new engine.
    """

    def __init__(
        self,
        thresholds: ThresholdTable = PRO_T3_V3,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.thresholds = thresholds
        self._clock = clock

    @property
    def protocol(self) -> str:
        return self.thresholds.version

    def reference_data(self) -> Dict:
        """Threshold table and phase enumeration for client-side display."""
        return export_reference_data(self.thresholds)

    def _run(self, domain: Domain, evaluator, *args, **kwargs):
        try:
            result = evaluator(*args, **kwargs)
        except RotemAssistError:
            raise
        except Exception as exc:
            logger.error(f"RotemDecisionEngine [{domain.value}]: evaluator raised {exc}", exc_info=True)
            raise EvaluationError(f"{domain.value} evaluation failed: {exc}", domain=domain.value) from exc

        if result is None:
            logger.debug(f"RotemDecisionEngine [{domain.value}]: not applicable")
        else:
            logger.debug(f"RotemDecisionEngine [{domain.value}]: {result.status.value}")
        return result

    def evaluate(self, panel: RotemPanel, context: ClinicalContext) -> EvaluationReport:
        """
        Run the full pipeline.

        Raises:
            InvalidInputError: if panel or context are not the engine's types.
            EvaluationError: if an evaluator fails unexpectedly.
        """
        if not isinstance(panel, RotemPanel):
            raise InvalidInputError("panel must be a RotemPanel", field="panel")
        if not isinstance(context, ClinicalContext):
            raise InvalidInputError("context must be a ClinicalContext", field="context")

        t = self.thresholds

        preconditions = self._run(Domain.PRECONDITIONS, evaluate_preconditions, context, t)
        prophylaxis = self._run(Domain.FIBRINOLYSIS_PROPHYLAXIS, evaluate_fibrinolysis_prophylaxis, panel, context, t)
        treatment = self._run(Domain.FIBRINOLYSIS_TREATMENT, evaluate_fibrinolysis_treatment, panel, context, t)
        hyperfibrinolysis_active = treatment.hyperfibrinolysis_active

        fibrinogen = self._run(
            Domain.FIBRINOGEN, evaluate_fibrinogen, panel, context, t,
            hyperfibrinolysis_active=hyperfibrinolysis_active,
        )
        platelets = self._run(
            Domain.PLATELETS, evaluate_platelets, panel, context, t,
            fibrinogen_adequate=fibrinogen.fibrinogen_adequate,
        )
        factors = self._run(
            Domain.COAGULATION_FACTORS, evaluate_coagulation_factors, panel, context, t,
            fibrinogen_adequate=fibrinogen.fibrinogen_adequate,
        )
        heparin = self._run(Domain.HEPARIN_EFFECT, evaluate_heparin_effect, panel, context, t)
        salvage = self._run(Domain.SALVAGE, evaluate_salvage, context, preconditions)

        results: Dict[Domain, Optional[EvaluationResult]] = {
            Domain.PRECONDITIONS: preconditions,
            Domain.FIBRINOLYSIS_PROPHYLAXIS: prophylaxis,
            Domain.FIBRINOLYSIS_TREATMENT: treatment,
            Domain.FIBRINOGEN: fibrinogen,
            Domain.PLATELETS: platelets,
            Domain.COAGULATION_FACTORS: factors,
            Domain.HEPARIN_EFFECT: heparin,
            Domain.SALVAGE: salvage,
        }
        actions = prioritize(results)

        report = EvaluationReport(
            timestamp=self._clock(),
            protocol=t.version,
            panel=panel,
            context=context,
            results=MappingProxyType(results),
            actions=actions,
            hyperfibrinolysis_active=hyperfibrinolysis_active,
        )

        if actions:
            logger.info(
                f"RotemDecisionEngine [{panel.phase.value}]: {len(actions)} action(s): "
                + ", ".join(a.recommendation.action for a in actions)
            )
        else:
            logger.debug(f"RotemDecisionEngine [{panel.phase.value}]: no action required")
        return report

    @staticmethod
    def summarise(report: EvaluationReport) -> Dict:
        """
        Compact summary suitable for dashboards.

        Example output:
        {
            "total_actions": 2,
            "urgent_count": 1,
            "actions": ["ADMINISTER_TXA_THERAPEUTIC", "ADMINISTER_FIBRINOGEN"],
            "safety_gated": ["fibrinogen"],
            "insufficient_data": ["heparinEffect"]
        }
        """
        def domains_with(status):
            return [d.value for d, r in report.results.items() if r is not None and r.status is status]

        return {
            "total_actions": len(report.actions),
            "urgent_count": sum(1 for a in report.actions if a.recommendation.priority == 1),
            "actions": [a.recommendation.action for a in report.actions],
            "safety_gated": domains_with(ResultStatus.SAFETY_GATED),
            "insufficient_data": domains_with(ResultStatus.INSUFFICIENT_DATA),
        }
