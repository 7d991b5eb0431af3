"""
同步结果
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


class Status(enum.Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncOutcome:
    """单个镜像的最终结果, 创建后不再修改"""

    reference: str
    destination: str
    status: Status
    reason: Optional[str] = None
    plan: Tuple[str, ...] = ()

    @classmethod
    def success(cls, reference: str, destination: str, plan=()) -> "SyncOutcome":
        return cls(reference, destination, Status.SUCCESS, plan=tuple(plan))

    @classmethod
    def skipped(cls, reference: str, destination: str) -> "SyncOutcome":
        return cls(reference, destination, Status.SKIPPED)

    @classmethod
    def failed(cls, reference: str, destination: str, reason: str) -> "SyncOutcome":
        return cls(reference, destination, Status.FAILED, reason=reason)


@dataclass
class RunSummary:
    arch: str
    source: str = ""
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    success: List[SyncOutcome] = field(default_factory=list)
    skipped: List[SyncOutcome] = field(default_factory=list)
    failed: List[SyncOutcome] = field(default_factory=list)

    def add(self, outcome: SyncOutcome) -> None:
        if self.finished_at is not None:
            raise RuntimeError("同步已结束, 不能再添加结果")
        {
            Status.SUCCESS: self.success,
            Status.SKIPPED: self.skipped,
            Status.FAILED: self.failed,
        }[outcome.status].append(outcome)

    def finish(self, when: Optional[datetime] = None) -> "RunSummary":
        self.finished_at = when or datetime.now()
        return self

    @property
    def total(self) -> int:
        return len(self.success) + len(self.skipped) + len(self.failed)

    @property
    def outcomes(self) -> List[SyncOutcome]:
        return self.failed + self.success + self.skipped

    @property
    def ok(self) -> bool:
        # 跳过不算失败
        return not self.failed

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1
