from .reconciler import ReconcileSummary, TrackingReconciler

__all__ = ["ReconcileSummary", "TrackingReconciler"]
