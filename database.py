import os

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from exceptions import ConfigError
from logging_config import get_logger

logger = get_logger(__name__)

Base = declarative_base()

# 连接配置：端点与访问凭证分开提供
URL_KEY = "DATABASE_URL"
PASSWORD_KEY = "DATABASE_PASSWORD"
SECRETS_SECTION = "database"


def _read_secret(secrets, key):
    """从 Streamlit secrets 的 [database] 节点读取配置，读不到返回 None"""
    if secrets is None:
        import streamlit as st
        secrets = st.secrets
    try:
        return secrets[SECRETS_SECTION][key]
    except (KeyError, FileNotFoundError):
        return None
    except Exception as e:
        # 不在 Streamlit 环境或没有 secrets.toml 时 st.secrets 会抛自身的异常
        logger.debug("读取 secrets 失败: %s", e)
        return None


def get_database_url(environ=None, secrets=None):
    """
    组装数据库连接串
    1. 优先读取环境变量 (部署环境 / .env)
    2. 环境变量没有时再读取 Streamlit secrets (本地 secrets.toml)
    缺少端点或 Postgres 缺少凭证时抛出 ConfigError
    """
    if environ is None:
        load_dotenv()
        environ = os.environ

    raw_url = environ.get(URL_KEY) or _read_secret(secrets, URL_KEY)
    if not raw_url:
        raise ConfigError(
            f"未配置数据库地址：请设置环境变量 {URL_KEY}，"
            f"或在 secrets.toml 的 [{SECRETS_SECTION}] 中填写"
        )

    # 修正协议头 (Supabase 兼容性处理)
    if raw_url.startswith("postgres://"):
        raw_url = raw_url.replace("postgres://", "postgresql+psycopg2://", 1)
    elif raw_url.startswith("postgresql://"):
        raw_url = raw_url.replace("postgresql://", "postgresql+psycopg2://", 1)

    try:
        url = make_url(raw_url)
    except Exception as e:
        raise ConfigError(f"数据库地址格式错误: {e}") from e

    if url.get_backend_name() == "sqlite":
        return url

    password = environ.get(PASSWORD_KEY) or _read_secret(secrets, PASSWORD_KEY)
    if password:
        url = url.set(password=password)
    elif not url.password:
        raise ConfigError(
            f"未配置数据库访问凭证：请设置环境变量 {PASSWORD_KEY}，"
            f"或在 secrets.toml 的 [{SECRETS_SECTION}] 中填写"
        )
    return url


def create_db_engine(url=None):
    """创建引擎；不传 url 时从配置读取"""
    url = make_url(url) if url is not None else get_database_url()
    if url.get_backend_name() == "sqlite":
        # check_same_thread=False 是 Streamlit 多线程访问 SQLite 所必需的
        return create_engine(url, connect_args={"check_same_thread": False})
    # 建议加上 pool_pre_ping=True 以防止断连
    return create_engine(url, pool_pre_ping=True)


def make_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
