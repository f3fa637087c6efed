"""
Wattboard: energy-monitoring dashboard backend.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-101)
"""

__version__ = "0.1.0"
