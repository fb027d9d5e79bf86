"""管理员指令解析测试"""

import pytest

from groupMonitor.gateway import GatewayClient
from groupMonitor.interpreter import interpret, is_command, parse_command
from groupMonitor.models import (
    ApproveAll,
    ApproveLatest,
    ApproveUser,
    ListPending,
    NotACommand,
    RejectLatest,
    RejectUser,
    ResetGroupStats,
    ResetPlugin,
    ShowHelp,
    ShowStats,
)

ADMIN_ID = 10000
MEMBER_ID = 20000


@pytest.mark.parametrize(
    "text, expected",
    [
        (".是", ApproveLatest()),
        ("  .是  ", ApproveLatest()),
        (".是 全部", ApproveAll()),
        (".是 123456", ApproveUser(123456)),
        (".否", RejectLatest()),
        (".否 123456", RejectUser(123456)),
        (".否 123456 广告号 别进来", RejectUser(123456, "广告号 别进来")),
        (".否 回答不对", RejectLatest("回答不对")),
        (".否 全部", RejectLatest("全部")),
        (".是 全部 马上", ApproveLatest("全部 马上")),
        (".查看申请", ListPending()),
        (".群统计", ShowStats()),
        (".成员统计", ShowStats()),
        (".重置统计", ResetGroupStats()),
        (".重置群监控", ResetPlugin()),
        (".群监控", ShowHelp()),
        (".群监控帮助", ShowHelp()),
    ],
)
def test_parse_command(text: str, expected) -> None:
    assert parse_command(text) == expected


@pytest.mark.parametrize("text", ["", "你好", ".是的", ".否认", "是", ".查看申请 1", ".帮助"])
def test_not_a_command(text: str) -> None:
    """测试普通聊天不会被当成指令"""
    assert isinstance(parse_command(text), NotACommand)
    assert is_command(text) is False


def test_is_command() -> None:
    assert is_command(".是 123")
    assert is_command(".群统计")


@pytest.mark.asyncio
async def test_admin_gets_intent(gateway: GatewayClient) -> None:
    intent = await interpret(".是 123", 1001, ADMIN_ID, gateway)

    assert intent == ApproveUser(123)


@pytest.mark.asyncio
async def test_non_admin_is_ignored(gateway: GatewayClient) -> None:
    """测试非管理员的指令被当作普通消息"""
    intent = await interpret(".否 123 理由", 1001, MEMBER_ID, gateway)

    assert isinstance(intent, NotACommand)


@pytest.mark.asyncio
async def test_member_query_failure_is_not_admin(gateway: GatewayClient) -> None:
    """测试查询成员信息失败时按非管理员处理"""
    intent = await interpret(".重置群监控", 1001, 99999, gateway)

    assert isinstance(intent, NotACommand)


@pytest.mark.asyncio
async def test_help_needs_no_admin(gateway: GatewayClient, bot) -> None:
    intent = await interpret(".群监控帮助", 1001, MEMBER_ID, gateway)

    assert isinstance(intent, ShowHelp)
    assert bot.calls == []
