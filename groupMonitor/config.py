from pydantic import BaseModel


class Config(BaseModel):
    """群成员监控插件设置"""

    CONFIG: dict = {
        "EXPIRE_HOURS": 24,  # 加群申请的过期时间，单位为小时
        "SWEEP_INTERVAL_MINUTES": 60,  # 清理过期申请的间隔，单位为分钟
        "SAVE_INTERVAL_MINUTES": 10,  # 自动保存数据的间隔，单位为分钟
        "LIST_LIMIT": 10,  # .查看申请 最多显示的条数
        "ENABLED_GROUPS": [],  # 启用监控的群号列表，为空表示所有群
        "DATA_FILE": "",  # 数据文件路径，为空则使用插件目录下的 data/group-monitor-data.json
    }
