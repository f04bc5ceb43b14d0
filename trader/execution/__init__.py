from .dispatcher import DispatchOutcome, DispatchStatus, DispatchSummary, ExecutionDispatcher
from .retry import RetryPolicy, submit_with_retry

__all__ = [
    "DispatchOutcome",
    "DispatchStatus",
    "DispatchSummary",
    "ExecutionDispatcher",
    "RetryPolicy",
    "submit_with_retry",
]
