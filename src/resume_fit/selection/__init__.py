"""Budget-constrained bullet selection."""

from resume_fit.selection.materializer import materialize
from resume_fit.selection.planner import compute_coverage, estimate_lines, rescore_plan, select

__all__ = ["compute_coverage", "estimate_lines", "materialize", "rescore_plan", "select"]
