"""Iterative render/validate/repair of a resume plan."""

from resume_fit.repair.actions import plan_batch
from resume_fit.repair.loop import RepairLoop, next_state

__all__ = ["RepairLoop", "next_state", "plan_batch"]
