from typing import Set

from nonebot import get_plugin_config
from nonebot.adapters.onebot.v11 import Event, GroupMessageEvent
from nonebot.log import logger

from .config import Config
from .interpreter import is_command


def load_enabled_groups() -> Set[int]:
    """读取启用监控的群号，为空表示所有群都启用"""
    try:
        groups = get_plugin_config(Config).CONFIG.get("ENABLED_GROUPS", [])
        return {int(gid) for gid in groups}
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.warning(f"启用群列表配置有误，将监控所有群: {e}")
        return set()


ENABLED_GROUPS = load_enabled_groups()


def is_enabled(group_id: int) -> bool:
    return not ENABLED_GROUPS or int(group_id) in ENABLED_GROUPS


async def group_enabled(event: Event) -> bool:
    """只处理启用了监控的群里的事件"""
    group_id = getattr(event, "group_id", None)
    if group_id is None:
        return False
    return is_enabled(group_id)


async def is_monitor_command(event: Event) -> bool:
    """群聊消息，且是群监控的指令"""
    if not isinstance(event, GroupMessageEvent):
        return False
    if not is_enabled(event.group_id):
        return False
    return is_command(event.get_plaintext())
