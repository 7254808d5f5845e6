# insight_bff/core/exceptions.py
"""
本模块定义了 insight-bff 项目中所有自定义的、语义化的异常类型。

调用方可以根据异常类型决定降级策略：提供方失败永远不会上抛为请求级错误，
存储写入失败会被记录并吞掉，只有“没有任何可用的枢纽内容”才是硬失败。
"""


class InsightBffError(Exception):
    """
    所有 insight-bff 自定义异常的通用基类。
    捕获此异常可以处理所有源自本项目的预期错误。
    """

    pass


class ConfigurationError(InsightBffError):
    """表示在加载、解析或验证配置时发生的错误。"""

    pass


class EngineNotFoundError(InsightBffError, KeyError):
    """
    表示尝试访问一个未注册或不可用的 LLM 引擎时引发的错误。
    继承自 KeyError 是为了保持与字典查找行为的一致性。
    """

    pass


class APIError(InsightBffError):
    """
    表示与外部 LLM 提供方交互时发生的错误。
    例如网络问题、API 密钥无效、返回空内容或服务返回错误状态码。
    """

    def __init__(self, message: str, *, is_retryable: bool = True):
        super().__init__(message)
        self.is_retryable = is_retryable


class DatabaseError(InsightBffError):
    """
    表示在持久化层操作（如数据库连接、查询）中发生的错误。
    通常是底层数据库驱动异常的包装。
    """

    pass


class DuplicateKeyError(DatabaseError):
    """并发写入同一行时出现的唯一键冲突。对解析器而言这是良性结果。"""

    pass


class StorageTimeoutError(DatabaseError, TimeoutError):
    """存储调用超过了显式超时。调用方放弃等待并走降级路径。"""

    pass


class ClusterNotFoundError(InsightBffError, LookupError):
    """集群不存在，或该集群在任何语言下都没有当前行（无枢纽内容）。"""

    pass


class CategoryNotFoundError(InsightBffError, LookupError):
    """按 slug 找不到分类。"""

    pass
