"""
Exit reconciliation: classifies broker-closed sell orders as take-profit
or stop-loss exits and records them.
"""
from .exit_reconciler import ExitFill, ExitReconciler, classify_exit, flatten_orders
from .seen_cache import SeenOrderCache

__all__ = ["ExitFill", "ExitReconciler", "SeenOrderCache", "classify_exit", "flatten_orders"]
