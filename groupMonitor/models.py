"""
群监控插件用到的数据结构

- JoinRequest: 一条待处理的加群申请
- 管理员指令解析后的意图 (Intent)
- 处理结果 Outcome
"""
from dataclasses import dataclass, field
from typing import List, Optional

# 超过这个值的时间戳视为毫秒
MILLISECOND_THRESHOLD = 1e11


@dataclass(frozen=True)
class JoinRequest:
    group_id: int
    user_id: int
    comment: str
    created_at: float
    token: str  # 网关给的 flag，同意/拒绝时必须带上

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "comment": self.comment,
            "time": self.created_at,
            "flag": self.token,
        }

    @classmethod
    def from_dict(cls, group_id: int, data: dict) -> "JoinRequest":
        # 兼容旧版数据文件的 userId 字段
        user_id = data.get("user_id", data.get("userId"))
        created_at = float(data.get("time", 0))
        # 旧版数据文件的时间是毫秒
        if created_at > MILLISECOND_THRESHOLD:
            created_at /= 1000
        return cls(
            group_id=int(group_id),
            user_id=int(user_id),
            comment=data.get("comment") or "",
            created_at=created_at,
            token=str(data.get("flag", "")),
        )


class Intent:
    """管理员指令解析结果的基类"""

    # 是否需要管理员权限
    requires_admin = True
    # 是否会处理加群申请
    resolving = False


@dataclass(frozen=True)
class ApproveLatest(Intent):
    reason: str = ""
    resolving = True


@dataclass(frozen=True)
class RejectLatest(Intent):
    reason: str = ""
    resolving = True


@dataclass(frozen=True)
class ApproveUser(Intent):
    user_id: int
    reason: str = ""
    resolving = True


@dataclass(frozen=True)
class RejectUser(Intent):
    user_id: int
    reason: str = ""
    resolving = True


@dataclass(frozen=True)
class ApproveAll(Intent):
    resolving = True


@dataclass(frozen=True)
class ListPending(Intent):
    pass


@dataclass(frozen=True)
class ShowStats(Intent):
    pass


@dataclass(frozen=True)
class ResetGroupStats(Intent):
    pass


@dataclass(frozen=True)
class ResetPlugin(Intent):
    pass


@dataclass(frozen=True)
class ShowHelp(Intent):
    requires_admin = False


@dataclass(frozen=True)
class NotACommand(Intent):
    requires_admin = False


@dataclass
class Outcome:
    """一次处理的结果"""

    approved_count: int = 0
    rejected_count: int = 0
    failures: List[int] = field(default_factory=list)
    # 指定的申请不存在或已过期
    not_found: bool = False
    # 本群没有任何待处理申请
    nothing_pending: bool = False
    # 单条处理时对应的申请人
    target: Optional[int] = None

    @property
    def resolved_count(self) -> int:
        return self.approved_count + self.rejected_count
