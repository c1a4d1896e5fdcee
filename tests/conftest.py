"""测试夹具：为 pytest 提供隔离的数据库会话与调用主体。"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from typing import Callable, Generator, Iterable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from partdb.core.enums import PermissionValue
from partdb.core.permissions import permission_engine
from partdb.db import session as db_session
from partdb.db.init_db import full_access_mask, init_db
from partdb.schemas.subject import Subject


@pytest.fixture()
def db(tmp_path) -> Generator[Session, None, None]:
    """每个用例使用独立的 SQLite 文件数据库，并执行初始化种子。"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db_session.engine = engine
    db_session.SessionLocal = TestingSessionLocal

    init_db()
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture()
def admin() -> Subject:
    """所有类别全部 ALLOW 的主体。"""
    return Subject(
        id=1,
        name="admin",
        full_name="Administrator",
        permissions={category: full_access_mask(category) for category in permission_engine.categories},
    )


@pytest.fixture()
def make_subject() -> Callable[..., Subject]:
    """按 ``类别=[操作, ...]`` 授予 ALLOW（会应用派生规则）构造主体。"""

    def factory(name: str = "tester", **grants: Iterable[str]) -> Subject:
        permissions = {}
        for category, operations in grants.items():
            mask = 0
            for operation in operations:
                mask = permission_engine.set_value(category, mask, operation, PermissionValue.ALLOW)
            permissions[category] = mask
        return Subject(id=42, name=name, permissions=permissions)

    return factory
