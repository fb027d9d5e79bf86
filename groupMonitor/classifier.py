from dataclasses import dataclass
from typing import Optional

from nonebot.adapters.onebot.v11 import (
    GroupDecreaseNoticeEvent,
    GroupIncreaseNoticeEvent,
    NoticeEvent,
)


class Membership:
    """群成员变动的分类结果"""

    # 对应的统计项，为 None 时不计数
    stats_path: Optional[str] = None


@dataclass(frozen=True)
class UserJoinedDirect(Membership):
    stats_path = "join.approve"


@dataclass(frozen=True)
class UserJoinedByInvite(Membership):
    inviter_id: Optional[int] = None
    stats_path = "join.invite"


@dataclass(frozen=True)
class UserLeftVoluntarily(Membership):
    stats_path = "leave.active"


@dataclass(frozen=True)
class UserKicked(Membership):
    operator_id: Optional[int] = None
    stats_path = "leave.kick"


@dataclass(frozen=True)
class BotKicked(Membership):
    pass


@dataclass(frozen=True)
class Ignore(Membership):
    pass


def classify(notice_type: str, sub_type: str, user_id: int,
             operator_id: Optional[int] = None, self_id: Optional[int] = None) -> Membership:
    """
    根据通知类型判断群成员变动的种类

    :param notice_type: group_increase / group_decrease
    :param sub_type: approve / invite / leave / kick / kick_me
    :param user_id: 变动的成员
    :param operator_id: 操作者，邀请人或踢人的管理员
    :param self_id: 机器人自己的QQ号
    """
    # 操作者为0或者就是本人时视为没有操作者
    if not operator_id or operator_id == user_id:
        operator_id = None

    if notice_type == "group_increase":
        # 机器人自己进群不计入统计
        if self_id is not None and user_id == self_id:
            return Ignore()
        if sub_type == "approve":
            return UserJoinedDirect()
        if sub_type == "invite":
            return UserJoinedByInvite(operator_id)
    elif notice_type == "group_decrease":
        if sub_type == "leave":
            return UserLeftVoluntarily()
        if sub_type == "kick":
            return UserKicked(operator_id)
        if sub_type == "kick_me":
            return BotKicked()
    return Ignore()


def classify_event(event: NoticeEvent) -> Membership:
    if not isinstance(event, (GroupIncreaseNoticeEvent, GroupDecreaseNoticeEvent)):
        return Ignore()
    return classify(
        event.notice_type,
        event.sub_type,
        event.user_id,
        operator_id=event.operator_id,
        self_id=event.self_id,
    )
