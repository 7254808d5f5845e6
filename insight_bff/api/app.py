# insight_bff/api/app.py
"""FastAPI 应用工厂。HTTP 层只做参数解析与响应映射。"""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from insight_bff import __version__
from insight_bff.api.routes import categories, cluster, feed, system, translate
from insight_bff.config import BffConfig
from insight_bff.coordinator import Coordinator
from insight_bff.core.exceptions import (
    CategoryNotFoundError,
    ClusterNotFoundError,
    DatabaseError,
    InsightBffError,
)
from insight_bff.logging_config import bind_request_context, clear_request_context
from insight_bff.persistence import create_persistence_handler

logger = structlog.get_logger(__name__)


def create_app(
    config: BffConfig | None = None, coordinator: Coordinator | None = None
) -> FastAPI:
    """
    创建 FastAPI 应用。

    传入 `coordinator` 时由调用方负责其生命周期（测试中常用）；否则在
    lifespan 中根据配置创建、初始化并在关闭时释放。
    """
    config = config or (coordinator.config if coordinator else BffConfig())
    owns_coordinator = coordinator is None
    if coordinator is None:
        coordinator = Coordinator(config, create_persistence_handler(config))

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await coordinator.initialize()
        yield
        if owns_coordinator:
            await coordinator.close()

    app = FastAPI(
        title="insight-bff",
        description="Multilingual news backend-for-frontend",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.coordinator = coordinator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Pending-Cluster-Ids", "Content-Language", "X-Request-ID"],
    )

    @app.middleware("http")
    async def request_context(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = bind_request_context(
            request.url.path, request.headers.get("X-Request-ID")
        )
        try:
            response = await call_next(request)
        finally:
            clear_request_context()
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(ClusterNotFoundError)
    async def not_found_handler(request: Request, exc: ClusterNotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"error": "Not found"}
        )

    @app.exception_handler(CategoryNotFoundError)
    async def category_not_found_handler(
        request: Request, exc: CategoryNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND, content={"error": "Category not found"}
        )

    @app.exception_handler(DatabaseError)
    async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
        logger.error("存储读取失败。", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "storage_unavailable"},
        )

    @app.exception_handler(InsightBffError)
    async def app_error_handler(request: Request, exc: InsightBffError) -> JSONResponse:
        logger.error("请求处理失败。", path=request.url.path, error=str(exc), exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error"},
        )

    app.include_router(system.router)
    app.include_router(feed.router)
    app.include_router(cluster.router)
    app.include_router(categories.router)
    app.include_router(translate.router)
    return app
