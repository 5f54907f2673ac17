"""
Position sizing: budget and take-profit percent to an execution plan.
"""
from .position_sizer import ExecutionPlan, PositionSizer, compute_take_profit

__all__ = ["ExecutionPlan", "PositionSizer", "compute_take_profit"]
