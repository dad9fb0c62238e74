"""
Service wiring.

Routers obtain the generation client and the pipeline through these
factories so tests can swap in fakes with dependency overrides.
"""
from typing import Optional

from resume_optimizer.services.ai_orchestrator import AIOrchestrator
from resume_optimizer.services.job_analysis import JobAnalyzer
from resume_optimizer.services.job_details import JobDetailsResolver
from resume_optimizer.services.optimizer import ResumeOptimizer
from resume_optimizer.services.orchestrator import OptimizationOrchestrator
from resume_optimizer.services.resume_parser import ResumeParser
from resume_optimizer.services.scoring import MatchScorer
from resume_optimizer.services.version_ledger import VersionLedger

_ai_orchestrator: Optional[AIOrchestrator] = None


def get_ai_orchestrator() -> AIOrchestrator:
    global _ai_orchestrator
    if _ai_orchestrator is None:
        _ai_orchestrator = AIOrchestrator()
    return _ai_orchestrator


async def close_ai_orchestrator() -> None:
    global _ai_orchestrator
    if _ai_orchestrator is not None:
        await _ai_orchestrator.aclose()
        _ai_orchestrator = None


def build_orchestrator(storage, ai) -> OptimizationOrchestrator:
    return OptimizationOrchestrator(
        storage=storage,
        resolver=JobDetailsResolver(ai),
        parser=ResumeParser(ai),
        analyzer=JobAnalyzer(ai),
        scorer=MatchScorer(ai),
        optimizer=ResumeOptimizer(ai),
        ledger=VersionLedger(storage),
    )
