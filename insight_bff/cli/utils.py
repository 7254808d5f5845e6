# insight_bff/cli/utils.py
"""提供 CLI 命令使用的共享工具函数。"""

from insight_bff.config import BffConfig
from insight_bff.coordinator import Coordinator
from insight_bff.persistence import create_persistence_handler


def create_coordinator(config: BffConfig) -> Coordinator:
    """
    根据配置创建并返回一个未初始化的 Coordinator 实例。

    持久化处理器通过工厂函数按 `database_url` 动态创建。
    """
    handler = create_persistence_handler(config)
    return Coordinator(config, handler)
