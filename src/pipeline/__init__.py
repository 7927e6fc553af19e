"""Pipeline modules: orchestration layer for feedvault.

  dashboard: owns the registry and composes import, save and
              reconciliation triggers for one vault
"""

from feedvault.pipeline.dashboard import Dashboard

__all__ = ["Dashboard"]
