from tether_agent.context.compaction import (
    Compacted,
    CompactionConfig,
    CompactionEngine,
    CompactionFailed,
    CompactionResult,
    NothingToCompact,
)
from tether_agent.context.manager import ContextManager, ContextReport
from tether_agent.context.monitor import (
    ContextCritical,
    ContextMonitor,
    ContextOk,
    ContextStatus,
    ContextWarning,
    classify,
    describe_status,
)
from tether_agent.context.truncation import truncate_oldest_messages

__all__ = [
    "Compacted",
    "CompactionConfig",
    "CompactionEngine",
    "CompactionFailed",
    "CompactionResult",
    "ContextCritical",
    "ContextManager",
    "ContextMonitor",
    "ContextOk",
    "ContextReport",
    "ContextStatus",
    "ContextWarning",
    "NothingToCompact",
    "classify",
    "describe_status",
    "truncate_oldest_messages",
]
