"""
数据库配置和连接管理
"""
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.engine import make_url

from core.config import settings
from infrastructure.models import Base


def _build_async_url(database_url: str) -> str:
    """确保数据库URL使用异步驱动"""
    url = make_url(database_url)
    drivername = url.drivername

    if "+" in drivername:
        return database_url

    driver_map = {
        "postgresql": "postgresql+asyncpg",
        "postgres": "postgresql+asyncpg",
        "sqlite": "sqlite+aiosqlite",
    }

    if drivername not in driver_map:
        raise ValueError(f"不支持的数据库驱动: {drivername}. 请使用 async 驱动或更新 DATABASE__URL")

    return str(url.set(drivername=driver_map[drivername]))


def _enable_sqlite_transactions(engine: AsyncEngine) -> None:
    """让 SQLite 支持 SAVEPOINT 并串行化写事务。

    pysqlite 默认自行管理 BEGIN，会破坏 begin_nested()；
    这里关闭驱动的隐式事务并在每次 begin 时发出 BEGIN IMMEDIATE，
    效果上等同于其它数据库的行锁（SQLite 会忽略 FOR UPDATE）。
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    async_url = _build_async_url(database_url)
    new_engine = create_async_engine(async_url, echo=echo, future=True)
    if make_url(async_url).get_backend_name() == "sqlite":
        _enable_sqlite_transactions(new_engine)
    return new_engine


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=bind, expire_on_commit=False)


engine = build_engine(settings.database.url, echo=settings.database.echo)

AsyncSessionLocal = build_session_factory(engine)


async def create_tables(bind: AsyncEngine = engine):
    """
    创建所有表

    仅用于开发/测试环境；生产环境的表结构由 DBA 迁移脚本维护
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)