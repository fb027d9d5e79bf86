import time
from typing import List

from nonebot.log import logger

from . import stats as stats_mod
from .classifier import (
    BotKicked,
    Membership,
    UserJoinedByInvite,
    UserJoinedDirect,
    UserKicked,
    UserLeftVoluntarily,
)
from .gateway import GatewayClient
from .models import JoinRequest, Outcome

SEPARATOR = "------------------------"

NOTHING_PENDING = "⚠️ 当前没有待处理的加群申请"
NO_REQUESTS_TO_LIST = "📋 当前没有待处理的加群申请"
TRY_AGAIN_LATER = "⚠️ 处理加群请求时发生错误，请稍后再试"
STATS_RESET = "🔄 群成员变动统计数据已重置"
PLUGIN_RESET = "🔄 群成员监控插件已重置"

HELP_TEXT = "\n".join([
    "📋 群成员监控插件使用帮助",
    SEPARATOR,
    "本插件可以监控群成员的以下行为：",
    "✅ 主动加群",
    "✅ 邀请加群",
    "✅ 主动退群",
    "✅ 被踢出群",
    "✅ 加群申请",
    "✅ 申请审核",
    "",
    "📊 管理员可用命令：",
    "⭐ .是 - 同意最近一条加群申请",
    "⭐ .是 [QQ号] - 同意指定QQ用户的加群申请",
    "⭐ .是 全部 - 批量同意所有待处理的加群申请",
    "⭐ .否 - 拒绝最近一条加群申请",
    "⭐ .否 [QQ号] [理由] - 拒绝指定QQ用户的加群申请",
    "⭐ .查看申请 - 查看待处理的加群申请列表",
    "⭐ .群统计 - 查看群成员变动统计数据",
    "⭐ .重置统计 - 重置当前群的统计数据",
    "⭐ .重置群监控 - 重置整个插件",
    "⭐ .群监控帮助 - 显示本帮助信息",
])


def format_time(timestamp: float) -> str:
    return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(timestamp))


def request_notice(request: JoinRequest, group_name: str) -> str:
    return (
        f"👤 用户 {request.user_id} 申请加入{group_name}\n"
        f"📝 附加信息: {request.comment or '无附加信息'}\n\n"
        f"管理员可回复:\n"
        f".是 [QQ号] - 同意申请\n"
        f".否 [QQ号] [拒绝理由] - 拒绝申请\n"
        f".是 全部 - 同意所有申请\n"
        f".查看申请 - 查看所有待处理申请"
    )


def membership_notice(change: Membership, user_info: str, group_name: str,
                      operator_info: str = "管理员") -> str:
    if isinstance(change, UserJoinedDirect):
        return f"📥 用户 {user_info} 已加入{group_name}"
    if isinstance(change, UserJoinedByInvite):
        return f"📥 用户 {user_info} 受邀请加入{group_name}，邀请者: {operator_info}"
    if isinstance(change, UserLeftVoluntarily):
        return f"📤 用户 {user_info} 退出了{group_name}"
    if isinstance(change, UserKicked):
        return f"⛔ 用户 {user_info} 被踢出{group_name}，操作者: {operator_info}"
    if isinstance(change, BotKicked):
        return f"💢 机器人被踢出群{group_name}"
    return ""


def reject_notice(admin_name: str, user_id: int, reason: str) -> str:
    msg = f"❌ 管理员 {admin_name} 已拒绝用户 {user_id} 的加群申请"
    if reason:
        msg += f"\n📝 拒绝理由: {reason}"
    return msg


def not_found_notice(target) -> str:
    if target is None:
        return NOTHING_PENDING
    return f"⚠️ 未找到QQ号为 {target} 的加群申请，可能已被处理或已过期"


def failure_notice(user_id: int) -> str:
    return f"⚠️ 处理用户 {user_id} 的加群请求失败，可能是请求已过期"


def batch_notice(outcome: Outcome, admin_name: str) -> str:
    msg = (
        f"✅ 批量处理加群申请完成\n"
        f"成功: {outcome.approved_count} 条\n"
        f"失败: {len(outcome.failures)} 条\n"
        f"操作者: {admin_name}"
    )
    if outcome.failures:
        msg += "\n失败的QQ号: " + ", ".join(str(uid) for uid in outcome.failures)
    return msg


def pending_list(requests: List[JoinRequest], total: int, group_name: str) -> str:
    """requests 已按时间从新到旧排好并截断"""
    lines = [f"📋 {group_name} 待处理加群申请列表 ({total}条):", SEPARATOR]
    for i, req in enumerate(requests, 1):
        lines.append(f"{i}. QQ: {req.user_id}")
        lines.append(f"   申请时间: {format_time(req.created_at)}")
        lines.append(f"   附加信息: {req.comment or '无附加信息'}")
        if i < len(requests):
            lines.append(SEPARATOR)
    msg = "\n".join(lines)
    if total > len(requests):
        msg += f"\n\n※ 仅显示最近{len(requests)}条申请，共有{total}条待处理"
    msg += "\n\n处理命令:\n.是 QQ号 - 同意指定QQ的申请\n.否 QQ号 [拒绝理由] - 拒绝指定QQ的申请\n.是 全部 - 同意所有申请"
    return msg


def stats_report(group: dict, global_stats: dict, group_name: str) -> str:
    growth = stats_mod.net_growth(group)
    return "\n".join([
        f"📊 群成员变动统计 - {group_name}",
        SEPARATOR,
        "🔸 本群数据:",
        f"  加群人数: {stats_mod.joined(group)} 人",
        f"    - 主动加群: {group['join']['approve']} 人",
        f"    - 邀请加群: {group['join']['invite']} 人",
        f"  退群人数: {stats_mod.left(group)} 人",
        f"    - 主动退群: {group['leave']['active']} 人",
        f"    - 被踢出群: {group['leave']['kick']} 人",
        f"  加群申请: {group['requests']['add']} 条",
        f"    - 已同意: {group['requests']['approved']} 条",
        f"    - 已拒绝: {group['requests']['rejected']} 条",
        f"  审核率: {stats_mod.review_rate(group)}%",
        "",
        "🔸 全局数据:",
        f"  加群人数: {stats_mod.joined(global_stats)} 人",
        f"  退群人数: {stats_mod.left(global_stats)} 人",
        f"  加群申请: {global_stats['requests']['add']} 条",
        f"    - 已处理: {stats_mod.handled(global_stats)} 条",
        "",
        f"📈 净增人数: {'+' if growth > 0 else ''}{growth} 人",
    ])


class Notifier:
    """把通知发到群里，只负责发送，不保存任何状态"""

    def __init__(self, gateway: GatewayClient):
        self.gateway = gateway

    async def send(self, group_id: int, message: str) -> bool:
        if not message:
            return False
        ok = await self.gateway.send_group_message(group_id, message)
        if not ok:
            logger.warning(f"向群 {group_id} 发送通知失败")
        return ok
