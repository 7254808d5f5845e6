# insight_bff/__init__.py
"""insight-bff: 多语言新闻应用的 Backend-for-Frontend。

核心是集群文本的多语言解析与缓存层：判断译文是否存在、是否新鲜，缺失或
过期时如何获得，并在并发请求下只持久化一次。
"""

__version__ = "0.1.0"

from .config import BffConfig, EngineName
from .coordinator import Coordinator
from .persistence import DefaultPersistenceHandler, create_persistence_handler

__all__ = [
    "__version__",
    "Coordinator",
    "BffConfig",
    "EngineName",
    "DefaultPersistenceHandler",
    "create_persistence_handler",
]
