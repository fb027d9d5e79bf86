"""测试公共设施：初始化 NoneBot 并提供假的 Bot"""

from typing import Any, Dict, List, Optional, Set, Tuple

import nonebot
import pytest

# 插件在导入时就会注册事件响应器和读取配置，必须先初始化
nonebot.init(driver="~none")
nonebot.load_plugin("groupMonitor")

from nonebot.adapters.onebot.v11 import ActionFailed  # noqa: E402

from groupMonitor.gateway import GatewayClient  # noqa: E402
from groupMonitor.monitor import GroupMonitor  # noqa: E402


class FakeBot:
    """只实现 call_api 的假 Bot，记录所有调用"""

    def __init__(
        self,
        roles: Optional[Dict[int, str]] = None,
        fail_flags: Optional[Set[str]] = None,
        group_name: str = "测试群",
    ) -> None:
        self.roles = roles or {}
        self.fail_flags = fail_flags or set()
        self.group_name = group_name
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    async def call_api(self, api: str, **data: Any) -> Any:
        self.calls.append((api, data))
        if api == "get_group_member_info":
            role = self.roles.get(data["user_id"])
            if role is None:
                raise ActionFailed(retcode=100, msg="member not found")
            return {"role": role, "nickname": f"昵称{data['user_id']}", "card": ""}
        if api == "get_group_info":
            return {"group_id": data["group_id"], "group_name": self.group_name}
        if api == "send_group_msg":
            return {"message_id": len(self.calls)}
        if api == "set_group_add_request":
            if data["flag"] in self.fail_flags:
                raise ActionFailed(retcode=102, msg="request expired")
            return None
        raise ActionFailed(retcode=1404, msg=f"unknown action {api}")

    def sent(self) -> List[str]:
        return [data["message"] for api, data in self.calls if api == "send_group_msg"]

    def resolutions(self) -> List[Dict[str, Any]]:
        return [data for api, data in self.calls if api == "set_group_add_request"]


ADMIN_ID = 10000
MEMBER_ID = 20000


@pytest.fixture
def make_bot():
    """按需构造假 Bot，默认带一个管理员和一个普通成员"""

    def _make(**kwargs: Any) -> FakeBot:
        kwargs.setdefault("roles", {ADMIN_ID: "admin", MEMBER_ID: "member"})
        return FakeBot(**kwargs)

    return _make


@pytest.fixture
def bot(make_bot) -> FakeBot:
    return make_bot()


@pytest.fixture
def gateway(bot: FakeBot) -> GatewayClient:
    return GatewayClient(bot)  # type: ignore[arg-type]


@pytest.fixture
def monitor(tmp_path) -> GroupMonitor:
    return GroupMonitor(tmp_path / "group-monitor-data.json")
