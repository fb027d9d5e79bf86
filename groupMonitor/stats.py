import copy
from typing import Dict

from nonebot.log import logger


def create_default_stats() -> Dict[str, Dict[str, int]]:
    """创建一份全为0的统计数据"""
    return {
        "join": {
            "approve": 0,  # 主动加群
            "invite": 0,   # 邀请加群
        },
        "leave": {
            "active": 0,   # 主动退群
            "kick": 0,     # 被踢出群
        },
        "requests": {
            "add": 0,       # 加群申请
            "approved": 0,  # 同意申请
            "rejected": 0,  # 拒绝申请
        },
    }


def joined(counters: dict) -> int:
    return counters["join"]["approve"] + counters["join"]["invite"]


def left(counters: dict) -> int:
    return counters["leave"]["active"] + counters["leave"]["kick"]


def net_growth(counters: dict) -> int:
    """净增人数 = 所有加群 - 所有退群"""
    return joined(counters) - left(counters)


def handled(counters: dict) -> int:
    return counters["requests"]["approved"] + counters["requests"]["rejected"]


def review_rate(counters: dict) -> int:
    """审核率，百分比取整"""
    if counters["requests"]["add"] <= 0:
        return 0
    return round(handled(counters) / counters["requests"]["add"] * 100)


def _merge(base: dict, data: dict) -> dict:
    """把读到的数据合并进默认结构，缺失或非法的计数按0处理"""
    if not isinstance(data, dict):
        data = {}
    for section, fields in base.items():
        loaded = data.get(section)
        if not isinstance(loaded, dict):
            loaded = {}
        for name in fields:
            try:
                fields[name] = max(int(loaded.get(name, 0)), 0)
            except (TypeError, ValueError):
                fields[name] = 0
    return base


class StatsAggregator:
    """
    群成员变动统计

    每个群一份计数，另有一份全局计数。每次事件同时累加两份，
    所以在没有执行过单群重置时，全局计数等于各群之和。
    单群重置不会回退全局计数，只有重置整个插件时全局计数才清零。
    """

    def __init__(self):
        self.global_stats = create_default_stats()
        self.groups: Dict[int, dict] = {}

    def group(self, group_id: int) -> dict:
        """获取群统计数据，不存在时创建"""
        group_id = int(group_id)
        if group_id not in self.groups:
            self.groups[group_id] = create_default_stats()
        return self.groups[group_id]

    def increment(self, group_id: int, path: str, amount: int = 1):
        """
        同时累加群计数和全局计数

        :param group_id: 群号
        :param path: 计数路径，如 "join.approve"
        :param amount: 增量
        """
        section, _, name = path.partition(".")
        if section not in self.global_stats or name not in self.global_stats[section]:
            raise KeyError(f"未知的统计项: {path}")

        self.group(group_id)[section][name] += amount
        self.global_stats[section][name] += amount
        logger.debug(f"更新统计数据: 群 {group_id} {path}+{amount}")

    def reset_group(self, group_id: int):
        self.groups[int(group_id)] = create_default_stats()
        logger.info(f"已重置群 {group_id} 的统计数据")

    def reset_all(self):
        self.global_stats = create_default_stats()
        self.groups = {}
        logger.info("已重置全部统计数据")

    def to_dict(self) -> dict:
        return {
            "global": copy.deepcopy(self.global_stats),
            "groups": {str(gid): copy.deepcopy(counters) for gid, counters in self.groups.items()},
        }

    def load_dict(self, data: dict):
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"统计数据格式错误，已忽略: {data!r}")
            data = {}
        self.global_stats = _merge(create_default_stats(), data.get("global"))
        self.groups = {}
        groups = data.get("groups")
        if not isinstance(groups, dict):
            groups = {}
        for gid, counters in groups.items():
            try:
                self.groups[int(gid)] = _merge(create_default_stats(), counters)
            except ValueError:
                logger.warning(f"跳过无法识别的群号统计: {gid}")
