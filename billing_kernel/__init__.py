"""
Billing Kernel - monthly panel billing

A re-derivable, event-driven billing core with:
- Monthly recalculation from the prior month's closing state
- Inclusive-day period construction over a fixed 30-day month
- Integer-cent money arithmetic (no float drift)
- Atomic record + live-status commit
- Full-rescan month summaries
"""

__version__ = "0.1.0"
