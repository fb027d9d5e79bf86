from typing import Any, Optional

from nonebot.adapters.onebot.v11 import Bot
from nonebot.log import logger


class GatewayClient:
    """
    对 OneBot 接口的简单封装

    所有调用失败都只记日志，返回 None 或 False，不向上抛出异常。
    """

    def __init__(self, bot: Bot):
        self.bot = bot

    async def call(self, action: str, **params) -> Optional[Any]:
        """
        调用接口

        参数：

        action: 接口名

        params: 接口参数

        返回值：

        接口返回的数据，失败时为 None
        """
        try:
            result = await self.bot.call_api(action, **params)
        except Exception as e:
            logger.error(f"调用接口 {action} 失败: {e}")
            return None
        # 部分实现把失败状态放在返回值里而不是抛异常
        if isinstance(result, dict) and result.get("status") == "failed":
            logger.error(f"调用接口 {action} 失败: {result}")
            return None
        return {} if result is None else result

    async def get_member_info(self, group_id: int, user_id: int) -> Optional[dict]:
        """
        获取群成员信息

        返回值：

        包含 role / nickname / card 的字典，失败时为 None
        """
        return await self.call(
            "get_group_member_info",
            group_id=int(group_id),
            user_id=int(user_id),
            no_cache=True,
        )

    async def get_group_info(self, group_id: int) -> Optional[dict]:
        return await self.call("get_group_info", group_id=int(group_id), no_cache=True)

    async def send_group_message(self, group_id: int, message: str) -> bool:
        result = await self.call("send_group_msg", group_id=int(group_id), message=message)
        return result is not None

    async def resolve_join_request(self, token: str, approve: bool, reason: str = "") -> bool:
        """
        同意或拒绝加群申请

        参数：

        token: 申请的 flag

        approve: 是否同意

        reason: 拒绝理由，没有则为空字符串
        """
        result = await self.call(
            "set_group_add_request",
            flag=token,
            sub_type="add",
            approve=approve,
            reason=reason or "",
        )
        return result is not None

    async def get_role(self, group_id: int, user_id: int) -> Optional[str]:
        """
        查找用户在群里的角色   群主/管理/成员

        返回值：

        role: owner, admin, member；查询失败时为 None
        """
        info = await self.get_member_info(group_id, user_id)
        if not info:
            return None
        role = info.get("role")
        logger.debug(f"查找用户角色，群号：{group_id}，用户号：{user_id}，角色：{role}")
        return role

    async def is_admin(self, group_id: int, user_id: int) -> bool:
        return await self.get_role(group_id, user_id) in ("admin", "owner")

    async def get_group_name(self, group_id: int) -> str:
        info = await self.get_group_info(group_id) or {}
        return info.get("group_name") or f"群{group_id}"

    async def get_display_name(self, group_id: int, user_id: int) -> str:
        """群名片 > 昵称 > 未知用户，后面带上QQ号"""
        info = await self.get_member_info(group_id, user_id) or {}
        return f"{info.get('card') or info.get('nickname') or '未知用户'}({user_id})"
