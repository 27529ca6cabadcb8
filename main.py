"""
FastAPI应用主入口
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from api.routes import checkout as checkout_routes
from api.routes import orders as orders_routes
from api.routes import payments as payments_routes
from api.routes import transactions as transactions_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from application.ports.notifier import NullNotifier
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from core.settings import payment_settings
from domain.payment.exceptions import PaymentProviderNotConfiguredError
from infrastructure.database import create_tables
from infrastructure.external.payments import build_payment_provider


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


def _build_notifier():
    """配置了 Redis 时通过 Celery 投递收据/退款通知，否则丢弃"""
    if not settings.redis.url:
        logger.warning("notifier_disabled", message="REDIS__URL not set, receipts are not sent")
        return NullNotifier()
    from infrastructure.tasks import TaskDispatcher
    return TaskDispatcher()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表（仅开发环境）
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")

    # 支付客户端在进程启动时构建一次，随 app.state 注入各请求
    try:
        app.state.payment_provider = build_payment_provider()
        logger.info("payment_provider_initialized", provider=payment_settings.default_provider)
    except PaymentProviderNotConfiguredError as exc:
        app.state.payment_provider = None
        logger.warning("payment_provider_not_configured", provider=payment_settings.default_provider, error=exc.message)
    app.state.notifier = _build_notifier()

    yield

    provider = getattr(app.state, "payment_provider", None)
    if provider is not None:
        await provider.aclose()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="课程购买、支付回调、开通与退款服务",
)

# 添加中间件（注意顺序：从下往上执行）
# 1. Request ID中间件（最先执行，为后续中间件提供request_id）
app.add_middleware(RequestIDMiddleware)

# 2. 日志中间件（依赖request_id）
app.add_middleware(LoggingMiddleware)

# 3. CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)


# 注册路由
app.include_router(checkout_routes.router, prefix="/api/v1")
app.include_router(orders_routes.router, prefix="/api/v1")
app.include_router(payments_routes.router, prefix="/api/v1")
app.include_router(transactions_routes.router, prefix="/api/v1")


# 根路径
@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc"
        },
    )


# 健康检查
@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
