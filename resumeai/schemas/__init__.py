from .resume import (
    AnalysisOutcome,
    AnalysisRecord,
    KeywordSet,
    NewAnalysis,
    ResumeRecord,
    ResumeStatus,
    ScoreBreakdown,
    SkillGapOffer,
    SkillGapReport,
    Suggestion,
)

__all__ = [
    "AnalysisOutcome",
    "AnalysisRecord",
    "KeywordSet",
    "NewAnalysis",
    "ResumeRecord",
    "ResumeStatus",
    "ScoreBreakdown",
    "SkillGapOffer",
    "SkillGapReport",
    "Suggestion",
]
