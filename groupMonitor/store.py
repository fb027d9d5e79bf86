import json
import os
from pathlib import Path
from typing import Optional

from nonebot.log import logger


class JsonStore:
    """把一个 JSON 对象读写到文件，不关心其中的结构"""

    def __init__(self, path):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        """读取数据，文件不存在或损坏时返回 None"""
        if not self.path.exists():
            logger.info(f"未找到数据文件 {self.path}，将使用默认数据")
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except Exception as e:
            logger.error(f"加载数据文件 {self.path} 失败: {e}")
            return None
        if not isinstance(data, dict):
            logger.error(f"数据文件 {self.path} 格式错误，应为 JSON 对象")
            return None
        return data

    def save(self, data: dict) -> bool:
        """写入数据，失败只记日志"""
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            # 先写临时文件再替换，避免写到一半时留下损坏的数据
            os.replace(tmp_path, self.path)
            return True
        except Exception as e:
            logger.error(f"保存数据文件 {self.path} 失败: {e}")
            return False
