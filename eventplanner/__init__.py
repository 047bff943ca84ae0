"""
Event Planner - Source Package

Local-first planning state for events, tasks and budgets.

DESIGN PRINCIPLES:
1. Local state is the source of truth for the running process
2. Derived values (mirrored expenses, category totals) are never hand-edited
3. Persistence is best-effort and never blocks a mutation
4. Remote sync is optional and can never break the local path
5. Storage and backend are swappable
"""

__version__ = "1.0.0"
__author__ = "Event Planner Team"
