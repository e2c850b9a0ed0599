from .forces import ForceHistoryAnalyzer

__all__ = ["ForceHistoryAnalyzer"]
