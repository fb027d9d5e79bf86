import itertools
import time
from typing import Dict, List, Optional, Tuple

from nonebot.log import logger

from .models import JoinRequest


class RequestRegistry:
    """
    待处理加群申请的登记表

    所有申请存放在 _entries 中，按生成的编号寻址；
    另外维护三份索引，保证从任意一条路径删除都是 O(1)：

    - _by_group:  群号 -> {编号: None}，保留插入顺序
    - _by_token:  flag -> 编号
    - _by_pair:   (群号, QQ号) -> 编号

    同一个 (群号, QQ号) 只保留最新的一条申请，旧申请的 flag 随之失效。
    """

    def __init__(self):
        self._ids = itertools.count(1)
        self._entries: Dict[int, JoinRequest] = {}
        self._by_group: Dict[int, Dict[int, None]] = {}
        self._by_token: Dict[str, int] = {}
        self._by_pair: Dict[Tuple[int, int], int] = {}

    def add(self, group_id: int, user_id: int, comment: str, token: str,
            created_at: Optional[float] = None) -> JoinRequest:
        """
        登记一条加群申请

        :param group_id: 群号
        :param user_id: 申请人QQ号
        :param comment: 附加信息
        :param token: 网关给出的 flag
        :param created_at: 申请时间，默认为当前时间
        :return: 新登记的申请
        """
        group_id, user_id = int(group_id), int(user_id)
        if created_at is None:
            created_at = time.time()

        old_id = self._by_pair.get((group_id, user_id))
        if old_id is not None:
            old = self._entries[old_id]
            logger.warning(f"用户 {user_id} 在群 {group_id} 重复申请，旧申请 {old.token} 已被替换")
            self._drop(old_id)

        # 理论上 flag 不会重复，出现时以新申请为准
        token_id = self._by_token.get(token)
        if token_id is not None:
            logger.warning(f"flag {token} 已存在，旧记录已被替换")
            self._drop(token_id)

        request = JoinRequest(
            group_id=group_id,
            user_id=user_id,
            comment=comment or "",
            created_at=created_at,
            token=token,
        )
        entry_id = next(self._ids)
        self._entries[entry_id] = request
        self._by_group.setdefault(group_id, {})[entry_id] = None
        self._by_token[token] = entry_id
        self._by_pair[(group_id, user_id)] = entry_id
        logger.debug(f"已登记加群申请: 群 {group_id}, 用户 {user_id}, flag {token}")
        return request

    def find_latest(self, group_id: int) -> Optional[JoinRequest]:
        """返回本群最近的一条申请，时间相同时取后登记的"""
        latest = None
        for request in self.pending(group_id):
            if latest is None or request.created_at >= latest.created_at:
                latest = request
        return latest

    def find_by_user(self, group_id: int, user_id: int) -> Optional[JoinRequest]:
        entry_id = self._by_pair.get((int(group_id), int(user_id)))
        if entry_id is None:
            return None
        return self._entries[entry_id]

    def find_by_token(self, token: str) -> Optional[JoinRequest]:
        entry_id = self._by_token.get(token)
        if entry_id is None:
            return None
        return self._entries[entry_id]

    def pending(self, group_id: int, limit: Optional[int] = None,
                newest_first: bool = False) -> List[JoinRequest]:
        """本群待处理申请的快照，默认按登记顺序"""
        ids = self._by_group.get(int(group_id), {})
        requests = [self._entries[entry_id] for entry_id in ids]
        if newest_first:
            # 先反转再稳定排序，时间相同时后登记的排在前面
            requests = sorted(reversed(requests), key=lambda r: r.created_at, reverse=True)
        if limit is not None:
            requests = requests[:limit]
        return requests

    def count(self, group_id: Optional[int] = None) -> int:
        if group_id is None:
            return len(self._entries)
        return len(self._by_group.get(int(group_id), {}))

    def groups(self) -> List[int]:
        return list(self._by_group)

    def drain_all(self, group_id: int) -> List[JoinRequest]:
        """取出并移除本群所有申请，保持登记顺序"""
        ids = list(self._by_group.get(int(group_id), {}))
        drained = [self._entries[entry_id] for entry_id in ids]
        for entry_id in ids:
            self._drop(entry_id)
        return drained

    def remove(self, group_id: int, user_id: int) -> Optional[JoinRequest]:
        """移除指定用户的申请，不存在时什么也不做"""
        entry_id = self._by_pair.get((int(group_id), int(user_id)))
        if entry_id is None:
            return None
        return self._drop(entry_id)

    def discard(self, request: JoinRequest) -> bool:
        """
        仅当这条申请仍然有效时才移除

        处理申请要等网关返回，期间同一用户可能重新提交了申请，
        按 flag 比对可以避免把新申请误删。
        """
        entry_id = self._by_token.get(request.token)
        if entry_id is None or self._entries[entry_id] != request:
            return False
        self._drop(entry_id)
        return True

    def sweep_expired(self, now: float, max_age: float) -> int:
        """
        清理过期的申请

        :param now: 当前时间戳
        :param max_age: 最长保留时间，单位为秒
        :return: 清理的条数
        """
        expired = [
            entry_id for entry_id, request in self._entries.items()
            if now - request.created_at > max_age
        ]
        for entry_id in expired:
            self._drop(entry_id)
        return len(expired)

    def clear(self):
        self._entries.clear()
        self._by_group.clear()
        self._by_token.clear()
        self._by_pair.clear()

    def to_dict(self) -> Dict[str, list]:
        return {
            str(group_id): [request.to_dict() for request in self.pending(group_id)]
            for group_id in self._by_group
        }

    def load_dict(self, data: Dict[str, list]) -> int:
        """从持久化数据重建登记表及全部索引，返回载入的条数"""
        self.clear()
        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"加群申请数据格式错误，已忽略: {data!r}")
            return 0
        loaded = 0
        for group_id, requests in data.items():
            if not isinstance(requests, list):
                logger.warning(f"跳过群 {group_id} 格式错误的加群申请数据: {requests!r}")
                continue
            for item in requests:
                try:
                    request = JoinRequest.from_dict(group_id, item)
                except (AttributeError, TypeError, ValueError) as e:
                    logger.warning(f"跳过无法解析的加群申请记录 {item}: {e}")
                    continue
                self.add(request.group_id, request.user_id, request.comment,
                         request.token, created_at=request.created_at)
                loaded += 1
        return loaded

    def _drop(self, entry_id: int) -> JoinRequest:
        request = self._entries.pop(entry_id)
        group = self._by_group.get(request.group_id)
        if group is not None:
            group.pop(entry_id, None)
            if not group:
                del self._by_group[request.group_id]
        if self._by_token.get(request.token) == entry_id:
            del self._by_token[request.token]
        if self._by_pair.get((request.group_id, request.user_id)) == entry_id:
            del self._by_pair[(request.group_id, request.user_id)]
        return request
