from nonebot.log import logger

from .gateway import GatewayClient
from .models import (
    ApproveAll,
    ApproveLatest,
    ApproveUser,
    Intent,
    JoinRequest,
    Outcome,
    RejectLatest,
    RejectUser,
)
from .registry import RequestRegistry
from .stats import StatsAggregator


class ResolutionEngine:
    """
    执行管理员的处理意图

    登记表的修改和网关调用都从这里走，保证两者一致：
    调用成功才计入统计；调用失败说明申请已失效，同样从登记表移除。
    """

    def __init__(self, registry: RequestRegistry, stats: StatsAggregator, gateway: GatewayClient):
        self.registry = registry
        self.stats = stats
        self.gateway = gateway

    async def resolve(self, intent: Intent, group_id: int, operator_id: int) -> Outcome:
        group_id = int(group_id)

        if self.registry.count(group_id) == 0:
            return Outcome(nothing_pending=True)

        if isinstance(intent, ApproveAll):
            return await self._approve_all(group_id, operator_id)

        if isinstance(intent, ApproveLatest):
            approve, target, reason = True, None, intent.reason
        elif isinstance(intent, RejectLatest):
            approve, target, reason = False, None, intent.reason
        elif isinstance(intent, ApproveUser):
            approve, target, reason = True, intent.user_id, intent.reason
        elif isinstance(intent, RejectUser):
            approve, target, reason = False, intent.user_id, intent.reason
        else:
            raise ValueError(f"无法处理的意图: {intent!r}")

        if target is None:
            request = self.registry.find_latest(group_id)
        else:
            request = self.registry.find_by_user(group_id, target)

        if request is None:
            return Outcome(not_found=True, target=target)

        return await self._resolve_one(request, approve, reason, operator_id)

    async def _resolve_one(self, request: JoinRequest, approve: bool, reason: str,
                           operator_id: int) -> Outcome:
        outcome = Outcome(target=request.user_id)
        ok = await self.gateway.resolve_join_request(request.token, approve, reason)

        # 无论成功与否，这条申请都不能再用了
        self.registry.discard(request)

        if not ok:
            logger.warning(f"处理用户 {request.user_id} 的加群请求失败，可能是请求已过期")
            outcome.failures.append(request.user_id)
            return outcome

        if approve:
            self.stats.increment(request.group_id, "requests.approved")
            outcome.approved_count = 1
        else:
            self.stats.increment(request.group_id, "requests.rejected")
            outcome.rejected_count = 1

        logger.info(f"管理员{operator_id}已{'同意' if approve else '拒绝'}用户{request.user_id}的加群申请")
        return outcome

    async def _approve_all(self, group_id: int, operator_id: int) -> Outcome:
        outcome = Outcome()
        pending = self.registry.drain_all(group_id)

        # 依次处理，部分失败不回滚
        for request in pending:
            ok = await self.gateway.resolve_join_request(request.token, True, "")
            if ok:
                self.stats.increment(group_id, "requests.approved")
                outcome.approved_count += 1
            else:
                logger.error(f"批量处理加群请求失败，用户: {request.user_id}")
                outcome.failures.append(request.user_id)

        logger.info(
            f"管理员{operator_id}已批量同意群{group_id}的加群申请，"
            f"成功: {outcome.approved_count}, 失败: {len(outcome.failures)}"
        )
        return outcome

