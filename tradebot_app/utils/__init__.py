"""
Utility functions module.

Time handling and the task scheduler shared by the trigger watcher and
the exit reconciler.

Time Semantics:
- Deadlines and poll cadence use the monotonic clock
- Event timestamps (trigger crossings, audit facts, lookback windows) are UTC wall-clock
"""
