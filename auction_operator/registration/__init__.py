"""
Operator registry client and performance tracking.
"""

from .service import (
    OperatorStatus,
    PerformanceMetrics,
    PerformanceTracker,
    ProofSubmission,
    RegistrationService,
    TaskInfo,
    performance_proof_hash,
)

__all__ = [
    'RegistrationService',
    'PerformanceTracker',
    'OperatorStatus',
    'TaskInfo',
    'PerformanceMetrics',
    'ProofSubmission',
    'performance_proof_hash',
]
