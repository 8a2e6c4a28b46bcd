"""Report rendering and insights."""

from .insights import Insights, generate_insights
from .report_generator import ReportGenerator

__all__ = ["Insights", "ReportGenerator", "generate_insights"]
