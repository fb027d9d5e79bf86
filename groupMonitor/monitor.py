"""
群成员监控的核心

GroupMonitor 持有加群申请登记表、统计数据和数据文件，
所有修改都在同一把锁里完成，定时清理和定时保存也一样，
这样即使 NoneBot 并发处理多个事件，全局统计和各群统计也不会错乱。
"""
import asyncio
import time
from typing import Optional

from nonebot.log import logger

from . import notifier as texts
from .classifier import BotKicked, Ignore, Membership, UserJoinedByInvite, UserJoinedDirect
from .gateway import GatewayClient
from .interpreter import interpret
from .models import (
    ApproveAll,
    Intent,
    JoinRequest,
    ListPending,
    NotACommand,
    Outcome,
    RejectLatest,
    RejectUser,
    ResetGroupStats,
    ResetPlugin,
    ShowHelp,
    ShowStats,
)
from .notifier import Notifier
from .registry import RequestRegistry
from .resolver import ResolutionEngine
from .stats import StatsAggregator, create_default_stats
from .store import JsonStore

DEFAULT_EXPIRE_HOURS = 24
DEFAULT_LIST_LIMIT = 10


class GroupMonitor:

    def __init__(self, data_file, expire_hours: float = DEFAULT_EXPIRE_HOURS,
                 list_limit: int = DEFAULT_LIST_LIMIT):
        self.registry = RequestRegistry()
        self.stats = StatsAggregator()
        self.store = JsonStore(data_file)
        self.max_age = expire_hours * 60 * 60
        self.list_limit = list_limit
        self.lock = asyncio.Lock()

    # ---------- 生命周期 ----------

    def load(self):
        """从数据文件恢复统计数据和待处理申请"""
        data = self.store.load()
        if not data:
            return
        self.stats.load_dict(data.get("stats"))
        # 兼容旧版数据文件的 pendingRequests 字段
        pending = data.get("pending_requests", data.get("pendingRequests"))
        loaded = self.registry.load_dict(pending)
        logger.info(f"已从文件加载统计数据，待处理加群申请 {loaded} 条")

    def snapshot(self) -> dict:
        return {
            "stats": self.stats.to_dict(),
            "pending_requests": self.registry.to_dict(),
        }

    def save(self) -> bool:
        ok = self.store.save(self.snapshot())
        if ok:
            logger.debug("统计数据已保存到文件")
        return ok

    async def startup(self):
        async with self.lock:
            self.load()

    async def shutdown(self):
        async with self.lock:
            self.save()
        logger.info("群成员监控插件已卸载，数据已保存")

    async def sweep(self, now: Optional[float] = None) -> int:
        """清理超过有效期的加群申请，返回清理条数"""
        async with self.lock:
            removed = self.registry.sweep_expired(time.time() if now is None else now, self.max_age)
            if removed:
                logger.info(f"清理过期的加群请求: 已清理{removed}条记录")
                self.save()
        return removed

    async def flush(self) -> bool:
        async with self.lock:
            return self.save()

    # ---------- 事件 ----------

    async def handle_join_request(self, gateway: GatewayClient, group_id: int, user_id: int,
                                  comment: str, flag: str) -> Optional[JoinRequest]:
        """收到加群申请：登记、计数、通知管理员"""
        try:
            async with self.lock:
                request = self.registry.add(group_id, user_id, comment, flag)
                self.stats.increment(group_id, "requests.add")
                self.save()
            logger.info(f"收到用户{user_id}加入群{group_id}的申请")

            group_name = await gateway.get_group_name(group_id)
            await Notifier(gateway).send(group_id, texts.request_notice(request, group_name))
            return request
        except Exception as e:
            logger.error(f"处理加群请求出错: {e}")
            return None

    async def handle_membership(self, gateway: GatewayClient, change: Membership,
                                group_id: int, user_id: int) -> bool:
        """群成员变动：计数并在群里通知"""
        if isinstance(change, Ignore):
            return False
        try:
            if isinstance(change, BotKicked):
                # 机器人已经不在群里，发不了通知
                logger.warning(f"机器人被踢出群{group_id}")
                return True

            async with self.lock:
                self.stats.increment(group_id, change.stats_path)
                self.save()

            group_name = await gateway.get_group_name(group_id)
            if isinstance(change, (UserJoinedDirect, UserJoinedByInvite)):
                user_info = await gateway.get_display_name(group_id, user_id)
            else:
                # 已经退群的成员查不到名片
                user_info = str(user_id)

            operator_id = getattr(change, "inviter_id", None) or getattr(change, "operator_id", None)
            operator_info = "管理员"
            if operator_id:
                operator_info = await gateway.get_display_name(group_id, operator_id)

            message = texts.membership_notice(change, user_info, group_name, operator_info)
            await Notifier(gateway).send(group_id, message)
            logger.info(f"群{group_id}成员变动: {type(change).__name__}, 用户: {user_id}")
            return True
        except Exception as e:
            logger.error(f"处理群成员变动出错: {e}")
            return False

    async def handle_command(self, gateway: GatewayClient, text: str,
                             group_id: int, user_id: int) -> bool:
        """
        处理群里的管理员指令

        :return: 是否作为指令处理了这条消息
        """
        notifier = Notifier(gateway)
        try:
            intent = await interpret(text, group_id, user_id, gateway)
            if isinstance(intent, NotACommand):
                return False
            await self.dispatch(intent, gateway, notifier, group_id, user_id)
            return True
        except Exception as e:
            logger.error(f"处理指令 {text!r} 出错: {e}")
            await notifier.send(group_id, texts.TRY_AGAIN_LATER)
            return False

    async def dispatch(self, intent: Intent, gateway: GatewayClient, notifier: Notifier,
                       group_id: int, operator_id: int):
        if intent.resolving:
            await self.resolve(intent, gateway, notifier, group_id, operator_id)
        elif isinstance(intent, ListPending):
            await self.list_pending(gateway, notifier, group_id)
        elif isinstance(intent, ShowStats):
            await self.show_stats(gateway, notifier, group_id)
        elif isinstance(intent, ResetGroupStats):
            async with self.lock:
                self.stats.reset_group(group_id)
                self.save()
            await notifier.send(group_id, texts.STATS_RESET)
        elif isinstance(intent, ResetPlugin):
            async with self.lock:
                self.stats.reset_all()
                self.registry.clear()
                self.save()
            logger.info(f"管理员{operator_id}已重置群成员监控插件")
            await notifier.send(group_id, texts.PLUGIN_RESET)
        elif isinstance(intent, ShowHelp):
            await notifier.send(group_id, texts.HELP_TEXT)
        else:
            raise ValueError(f"无法处理的意图: {intent!r}")

    async def resolve(self, intent: Intent, gateway: GatewayClient, notifier: Notifier,
                      group_id: int, operator_id: int) -> Outcome:
        engine = ResolutionEngine(self.registry, self.stats, gateway)
        async with self.lock:
            if isinstance(intent, ApproveAll) and self.registry.count(group_id):
                await notifier.send(
                    group_id, f"🔄 正在批量处理 {self.registry.count(group_id)} 条加群申请，请稍候..."
                )
            outcome = await engine.resolve(intent, group_id, operator_id)
            if outcome.resolved_count or outcome.failures:
                self.save()

        if outcome.nothing_pending:
            await notifier.send(group_id, texts.NOTHING_PENDING)
        elif outcome.not_found:
            await notifier.send(group_id, texts.not_found_notice(outcome.target))
        elif isinstance(intent, ApproveAll):
            admin_name = await gateway.get_display_name(group_id, operator_id)
            await notifier.send(group_id, texts.batch_notice(outcome, admin_name))
        elif outcome.failures:
            await notifier.send(group_id, texts.failure_notice(outcome.failures[0]))
        elif isinstance(intent, (RejectLatest, RejectUser)):
            admin_name = await gateway.get_display_name(group_id, operator_id)
            await notifier.send(group_id, texts.reject_notice(admin_name, outcome.target, intent.reason))
        # 同意申请时不发送通知，等群成员增加事件再通知
        return outcome

    async def list_pending(self, gateway: GatewayClient, notifier: Notifier, group_id: int):
        requests = self.registry.pending(group_id, limit=self.list_limit, newest_first=True)
        total = self.registry.count(group_id)
        if not requests:
            await notifier.send(group_id, texts.NO_REQUESTS_TO_LIST)
            return
        group_name = await gateway.get_group_name(group_id)
        await notifier.send(group_id, texts.pending_list(requests, total, group_name))

    async def show_stats(self, gateway: GatewayClient, notifier: Notifier, group_id: int):
        group_name = await gateway.get_group_name(group_id)
        # 只读，没有记录的群不要创建
        counters = self.stats.groups.get(int(group_id)) or create_default_stats()
        report = texts.stats_report(counters, self.stats.global_stats, group_name)
        await notifier.send(group_id, report)
