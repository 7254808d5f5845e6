# insight_bff/engine_registry.py
"""本模块负责动态发现和加载 `insight_bff.engines` 包下所有可用的 LLM 引擎。"""

import importlib
import pkgutil
from typing import Any

import structlog

from insight_bff.core.exceptions import EngineNotFoundError
from insight_bff.engines.base import BaseLLMEngine

log = structlog.get_logger(__name__)
ENGINE_REGISTRY: dict[str, type[BaseLLMEngine[Any]]] = {}


def discover_engines() -> None:
    """
    动态发现 `insight_bff.engines` 包下的所有引擎并注册。

    此函数是幂等的，只在首次调用时执行发现操作。
    它应该在日志系统配置完成后被调用，以确保正确的日志输出格式。
    """
    if ENGINE_REGISTRY:
        return

    import insight_bff.engines

    successful_engines: list[str] = []
    skipped_engines: list[dict[str, str]] = []

    for module_info in pkgutil.iter_modules(insight_bff.engines.__path__):
        module_name = module_info.name
        if module_name == "base" or module_name.startswith("_"):
            continue

        try:
            module = importlib.import_module(f"insight_bff.engines.{module_name}")
        except ImportError as e:
            skipped_engines.append(
                {"engine_name": module_name, "missing_dependency": str(e.name)}
            )
            continue

        for attr_name in dir(module):
            attr = getattr(module, attr_name)
            if (
                isinstance(attr, type)
                and issubclass(attr, BaseLLMEngine)
                and attr is not BaseLLMEngine
            ):
                engine_name = attr.__name__.replace("Engine", "").lower()
                ENGINE_REGISTRY[engine_name] = attr
                successful_engines.append(engine_name)

    log_payload: dict[str, Any] = {"registered": sorted(successful_engines)}
    if skipped_engines:
        log_payload["skipped"] = skipped_engines
    log.info("引擎发现完成。", **log_payload)


def create_engine(name: str, engine_configs: dict[str, Any]) -> BaseLLMEngine[Any]:
    """按名称实例化引擎。`engine_configs[name]` 中的值覆盖环境变量。"""
    discover_engines()
    engine_class = ENGINE_REGISTRY.get(name)
    if engine_class is None:
        raise EngineNotFoundError(f"引擎 '{name}' 未注册或依赖缺失。")
    config = engine_class.CONFIG_MODEL(**engine_configs.get(name, {}))
    return engine_class(config)
