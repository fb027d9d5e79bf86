import re

from nonebot.log import logger

from .gateway import GatewayClient
from .models import (
    ApproveAll,
    ApproveLatest,
    ApproveUser,
    Intent,
    ListPending,
    NotACommand,
    RejectLatest,
    RejectUser,
    ResetGroupStats,
    ResetPlugin,
    ShowHelp,
    ShowStats,
)

APPROVE_PREFIX = ".是"
REJECT_PREFIX = ".否"
ALL_KEYWORD = "全部"

# 整条消息完全匹配的指令
EXACT_COMMANDS = {
    ".查看申请": ListPending,
    ".群统计": ShowStats,
    ".成员统计": ShowStats,
    ".重置统计": ResetGroupStats,
    ".重置群监控": ResetPlugin,
    ".群监控": ShowHelp,
    ".群监控帮助": ShowHelp,
}

# .是/.否 后面必须是空白或结尾，避免 ".是的" 之类的聊天被当成指令
RESOLVE_PATTERN = re.compile(r"^\.(是|否)(?:\s+(.*))?$", re.S)
IDENTIFIER_PATTERN = re.compile(r"^\d+$")


def is_command(text: str) -> bool:
    text = (text or "").strip()
    return text in EXACT_COMMANDS or RESOLVE_PATTERN.match(text) is not None


def parse_command(text: str) -> Intent:
    """
    把管理员发的文字解析成意图，不检查权限

    .是                  -> ApproveLatest
    .是 全部             -> ApproveAll
    .是 QQ号             -> ApproveUser
    .否 [QQ号] [理由]    -> RejectUser / RejectLatest
    """
    text = (text or "").strip()

    if text in EXACT_COMMANDS:
        return EXACT_COMMANDS[text]()

    match = RESOLVE_PATTERN.match(text)
    if not match:
        return NotACommand()

    approve = match.group(1) == "是"
    params = (match.group(2) or "").split()

    if approve and params == [ALL_KEYWORD]:
        return ApproveAll()

    if params and IDENTIFIER_PATTERN.match(params[0]):
        user_id = int(params[0])
        reason = " ".join(params[1:])
        return ApproveUser(user_id, reason) if approve else RejectUser(user_id, reason)

    # 没有QQ号时处理最近的一条申请，剩下的全部作为理由
    reason = " ".join(params)
    return ApproveLatest(reason) if approve else RejectLatest(reason)


async def interpret(text: str, group_id: int, user_id: int, gateway: GatewayClient) -> Intent:
    """
    解析指令并检查发送者权限

    非管理员发送需要权限的指令时直接当作普通消息，不回复，
    这样不会向普通成员透露是否存在待处理的申请。
    """
    intent = parse_command(text)
    if not intent.requires_admin:
        return intent

    if not await gateway.is_admin(group_id, user_id):
        logger.info(f"非管理员用户{user_id}在群{group_id}尝试使用指令 {text!r}，已忽略")
        return NotACommand()
    return intent
