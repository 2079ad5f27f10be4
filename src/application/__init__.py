"""Application Layer.

Host-facing entry points: analysis requests, project records, engine
settings and superseding request handling.
"""

from .analysis import AnalysisRequest, AnalysisResult, LinkAnalyzer, LinkSummary, link_summary
from .project import ProjectRecord
from .requests import SupersedingRunner
from .settings import EngineSettings

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "EngineSettings",
    "LinkAnalyzer",
    "LinkSummary",
    "ProjectRecord",
    "SupersedingRunner",
    "link_summary",
]
