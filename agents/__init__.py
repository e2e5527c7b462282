from agents.base import StructuredAgent
from agents.recognition import RecognitionAgent
from agents.analysis import MatchupAnalysisAgent

__all__ = [
    "StructuredAgent",
    "RecognitionAgent",
    "MatchupAnalysisAgent",
]
