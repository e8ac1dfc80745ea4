import logging

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from hire_ledger.config import get_settings
from hire_ledger.error import HireLedgerError

logger = logging.getLogger(__name__)


def _make_engine(url: str):
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    eng = create_engine(url, connect_args=connect_args)
    if url.startswith("sqlite"):
        enable_sqlite_foreign_keys(eng)
    return eng


def enable_sqlite_foreign_keys(eng) -> None:
    # SQLite 默认不执行外键约束，ON DELETE CASCADE 需要它
    @event.listens_for(eng, "connect")
    def _set_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = _make_engine(get_settings().database_url)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def get_session():
    session = Session(engine)
    try:
        yield session
    except HireLedgerError:
        # 业务/鉴权错误：服务层已经自己回滚过，直接抛出
        raise
    except Exception:
        # 其他异常：更像程序错误/DB错误，回滚
        session.rollback()
        logger.exception("session rolled back")
        raise
    finally:
        session.close()
