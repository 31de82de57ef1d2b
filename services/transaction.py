from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger

logger = get_logger(__name__)


@contextmanager
def transaction(db, action):
    """
    多步写入放在同一个事务里：全部成功才提交，任一步失败整体回滚后原样抛出
    action: 用于日志的操作描述，如 "删除客户 #3"
    """
    try:
        yield
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("%s 失败，已回滚", action)
        raise
    except Exception:
        db.rollback()
        raise
