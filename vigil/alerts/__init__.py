"""Alert evaluation core: thresholds, evaluator, store and service facade.

Submodules:
    registry   -- ThresholdRegistry, validated partial threshold updates.
    evaluator  -- AlertEvaluator, severity ratio table and dedup rule.
    store      -- AlertStore, retention-bounded history plus current set.
    service    -- AlertService, the facade consumed by the API layer.
"""

from vigil.alerts.evaluator import SEVERITY_TABLE, AlertEvaluator, severity_for_ratio
from vigil.alerts.registry import ThresholdRegistry
from vigil.alerts.service import AlertService
from vigil.alerts.store import AlertStore

__all__ = [
    "AlertEvaluator",
    "AlertService",
    "AlertStore",
    "SEVERITY_TABLE",
    "ThresholdRegistry",
    "severity_for_ratio",
]
