"""
异步引擎与会话工厂

DATABASE__URL 可以写同步驱动名（postgresql://、sqlite://），这里统一换成
asyncpg / aiosqlite。
"""
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from core.config import settings
from infrastructure.models import Base


_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def to_async_url(raw: str) -> URL:
    url = make_url(raw)
    if "+" in url.drivername:
        return url
    try:
        return url.set(drivername=_ASYNC_DRIVERS[url.drivername])
    except KeyError:
        raise ValueError(f"不支持的数据库驱动: {url.drivername}，请在 DATABASE__URL 中指定异步驱动") from None


def _create_engine(url: URL):
    if url.get_backend_name() == "sqlite":
        # aiosqlite 连接绑定创建它的事件循环，不做池化
        return create_async_engine(url, echo=settings.database.echo, poolclass=NullPool)
    return create_async_engine(url, echo=settings.database.echo, pool_pre_ping=True)


engine = _create_engine(to_async_url(settings.database.url))

AsyncSessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)


async def create_tables() -> None:
    """按 ORM 元数据建表（开发/测试；已存在的表跳过）"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_tables() -> None:
    """删除全部表，仅供测试使用"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
