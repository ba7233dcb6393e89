"""
Finance Engine - Source Package

The computation core of a personal-finance planning assistant. It turns a
snapshot of a household's financial records into monthly-equivalent cashflow
figures, due-date projections, duplicate and recurring detection, allocation
plans, risk alerts, forecasts and plan-vs-actual metrics.

DESIGN PRINCIPLES:
1. Engine functions are pure: snapshot in, derived values out
2. Reject bad user input early, tolerate degenerate records quietly
3. Every planning mutation yields a before/after audit event
4. Persistence is someone else's job
"""

__version__ = "1.0.0"
__author__ = "Finance Engine Team"
