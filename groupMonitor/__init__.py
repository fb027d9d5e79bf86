'''
主要处理：
1. 群成员变动通知（主动加群、邀请加群、主动退群、被踢出群）
2. 加群申请登记与审核（管理员回复 .是 / .否 【理由】）
3. 群成员变动统计
'''
from pathlib import Path

from nonebot import get_driver, get_plugin_config, on_message, on_notice, on_request, require
from nonebot.adapters.onebot.v11 import Bot, GroupMessageEvent, GroupRequestEvent, NoticeEvent
from nonebot.log import logger
from nonebot.plugin import PluginMetadata

from .classifier import Ignore, classify_event
from .config import Config
from .gateway import GatewayClient
from .monitor import DEFAULT_EXPIRE_HOURS, DEFAULT_LIST_LIMIT, GroupMonitor
from .rule import group_enabled, is_monitor_command

__plugin_meta__ = PluginMetadata(
    name="群成员监控",
    description="监听并记录群成员变动，登记加群申请并由管理员在群内审核",
    usage="""
    【自动通知】
    - 主动加群、邀请加群、主动退群、被踢出群时在群内发送通知
    - 收到加群申请时在群内提示管理员处理

    【管理员命令】
    - .是：同意最近一条加群申请
    - .是 QQ号：同意指定用户的加群申请
    - .是 全部：同意所有待处理的加群申请
    - .否 [QQ号] [理由]：拒绝最近一条或指定用户的加群申请
    - .查看申请：查看最近10条待处理申请
    - .群统计 / .成员统计：查看群成员变动统计
    - .重置统计：重置本群统计数据
    - .重置群监控：重置全部统计并清空待处理申请
    - .群监控帮助：显示帮助
    """,
    type="application",
    homepage="https://github.com/CG-Jue/NoneBotPlugins",
    config=Config,
    supported_adapters={"~onebot.v11"},
    extra={
        "author": "dog",
        "version": "1.0.0",
    },
)

# 获取配置
config = get_plugin_config(Config)
DEFAULT_SWEEP_INTERVAL = 60  # 默认每60分钟清理一次过期申请
DEFAULT_SAVE_INTERVAL = 10  # 默认每10分钟保存一次数据

# 数据文件路径
DATA_DIR = Path(__file__).parent / "data"
DEFAULT_DATA_FILE = DATA_DIR / "group-monitor-data.json"

try:
    expire_hours = config.CONFIG.get("EXPIRE_HOURS", DEFAULT_EXPIRE_HOURS)
    sweep_interval = config.CONFIG.get("SWEEP_INTERVAL_MINUTES", DEFAULT_SWEEP_INTERVAL)
    save_interval = config.CONFIG.get("SAVE_INTERVAL_MINUTES", DEFAULT_SAVE_INTERVAL)
    list_limit = config.CONFIG.get("LIST_LIMIT", DEFAULT_LIST_LIMIT)
    data_file = Path(config.CONFIG.get("DATA_FILE") or DEFAULT_DATA_FILE)
    logger.debug(f"配置项已加载: 过期时间：{expire_hours}小时, 清理间隔：{sweep_interval}分钟, 保存间隔：{save_interval}分钟, 数据文件：{data_file}")
except (AttributeError, KeyError):
    expire_hours = DEFAULT_EXPIRE_HOURS
    sweep_interval = DEFAULT_SWEEP_INTERVAL
    save_interval = DEFAULT_SAVE_INTERVAL
    list_limit = DEFAULT_LIST_LIMIT
    data_file = DEFAULT_DATA_FILE
    logger.debug("配置项加载失败，使用默认值")

monitor = GroupMonitor(data_file, expire_hours=expire_hours, list_limit=list_limit)

# 定时任务
scheduler = require("nonebot_plugin_apscheduler").scheduler
SWEEP_JOB_ID = "group_monitor_sweep"
FLUSH_JOB_ID = "group_monitor_flush"

driver = get_driver()


@driver.on_startup
async def start_monitor():
    await monitor.startup()
    scheduler.add_job(monitor.sweep, "interval", minutes=sweep_interval, id=SWEEP_JOB_ID, replace_existing=True)
    scheduler.add_job(monitor.flush, "interval", minutes=save_interval, id=FLUSH_JOB_ID, replace_existing=True)
    logger.info("群成员监控插件初始化完成，已设置过期请求清理定时器和数据保存定时器")


@driver.on_shutdown
async def stop_monitor():
    for job_id in (SWEEP_JOB_ID, FLUSH_JOB_ID):
        if scheduler.get_job(job_id):
            scheduler.remove_job(job_id)
    await monitor.shutdown()


# 加群请求处理
group_request = on_request(rule=group_enabled, priority=2, block=False)


@group_request.handle()
async def handle_group_request(bot: Bot, event: GroupRequestEvent):
    if event.sub_type == "add":
        await monitor.handle_join_request(
            GatewayClient(bot), event.group_id, event.user_id, event.comment or "", event.flag
        )
    elif event.sub_type == "invite":
        logger.info(f"收到用户{event.user_id}邀请加入群{event.group_id}")
    else:
        logger.warning(f"收到未知类型的群组请求: {event.sub_type}, flag: {event.flag}")


# 群成员变动通知
member_notice = on_notice(rule=group_enabled, priority=2, block=False)


@member_notice.handle()
async def handle_member_notice(bot: Bot, event: NoticeEvent):
    change = classify_event(event)
    if isinstance(change, Ignore):
        return
    await monitor.handle_membership(GatewayClient(bot), change, event.group_id, event.user_id)


# 管理员指令
admin_command = on_message(rule=is_monitor_command, priority=5, block=True)


@admin_command.handle()
async def handle_admin_command(bot: Bot, event: GroupMessageEvent):
    await monitor.handle_command(GatewayClient(bot), event.get_plaintext(), event.group_id, event.user_id)
