"""Change-set reconciliation for identity-bearing collections."""
from plp.reconcile.changeset import (
    ChangeSet,
    SnapshotValidationError,
    compute_change_set,
    validate_snapshot,
)
from plp.reconcile.items import (
    CollectionItem,
    Snapshot,
    clone_snapshot,
    snapshot_from_documents,
    snapshot_to_documents,
)
from plp.reconcile.reconciler import (
    ChangeSetReconciler,
    ItemBackend,
    ItemBackendError,
    ItemFailure,
    ReconciliationResult,
    SaveStatus,
)
from plp.reconcile.session import EditSession

__all__ = [
    "ChangeSet",
    "ChangeSetReconciler",
    "CollectionItem",
    "EditSession",
    "ItemBackend",
    "ItemBackendError",
    "ItemFailure",
    "ReconciliationResult",
    "SaveStatus",
    "Snapshot",
    "SnapshotValidationError",
    "clone_snapshot",
    "compute_change_set",
    "snapshot_from_documents",
    "snapshot_to_documents",
    "validate_snapshot",
]
