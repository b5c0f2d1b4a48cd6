"""ORM 声明基类；metadata 供建表与测试重置使用"""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


metadata = Base.metadata
