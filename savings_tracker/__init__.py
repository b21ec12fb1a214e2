"""
Savings Tracker - Source Package

Personal-finance tracking with a "1-to-200-and-back" savings challenge.

DESIGN PRINCIPLES:
1. The deposit plan is generated, never typed in
2. Fail early, fail visibly
3. No silent corrections (unsupported targets are rejected, not coerced)
4. Every state change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Savings Tracker Team"
