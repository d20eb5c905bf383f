"""
Soft Delete Module - reversible deletion for SQLAlchemy models.

Provides the lifecycle mixin, association cascades, counter cache upkeep,
lifecycle callbacks, validation adapters and a service layer for batch
operations on soft-deleted records.
"""

from .associations import Cardinality, Cascade, CounterCache, Dependent
from .callbacks import (
    after_commit,
    after_destroy,
    after_real_destroy,
    after_restore,
    around_destroy,
    around_real_destroy,
    around_restore,
    before_destroy,
    before_real_destroy,
    before_restore,
)
from .cascade import is_paranoid
from .exceptions import (
    Abort,
    HardDeleteError,
    ReadOnlyRecordError,
    RecordNotFoundError,
    SoftDeleteError,
)
from .mixins import ParanoiaMixin
from .models import DeletionReport, RestoreOptions
from .recovery import get_recovery_window_range, within_recovery_window
from .services import ParanoiaService
from .timestamps import INFINITY, current_time
from .validation import (
    AssociationNotSoftDestroyedValidator,
    UniquenessValidator,
    ValidationResult,
    uniqueness_query,
)

__all__ = [
    # Mixins
    "ParanoiaMixin",
    "is_paranoid",
    "INFINITY",
    "current_time",
    # Associations
    "Dependent",
    "CounterCache",
    "Cardinality",
    "Cascade",
    # Callbacks
    "before_destroy",
    "around_destroy",
    "after_destroy",
    "before_restore",
    "around_restore",
    "after_restore",
    "before_real_destroy",
    "around_real_destroy",
    "after_real_destroy",
    "after_commit",
    # Recovery window
    "get_recovery_window_range",
    "within_recovery_window",
    # Services
    "ParanoiaService",
    # Models
    "RestoreOptions",
    "DeletionReport",
    # Validation
    "UniquenessValidator",
    "AssociationNotSoftDestroyedValidator",
    "ValidationResult",
    "uniqueness_query",
    # Exceptions
    "SoftDeleteError",
    "ReadOnlyRecordError",
    "RecordNotFoundError",
    "HardDeleteError",
    "Abort",
]
