"""Runtime configuration for the POS backend, read from the environment."""
import os
from typing import Mapping, NamedTuple, Optional

from sqlalchemy.engine import URL


class Settings(NamedTuple):
    database_url: str
    pool_size: int = 10
    jwt_secret: str = "dev-secret"
    token_ttl_seconds: int = 60 * 60 * 24  # 1 day
    port: int = 3000
    log_level: str = "INFO"


def database_url_from_env(env: Mapping[str, str]) -> str:
    # An explicit DATABASE_URL wins; DB_HOST selects MySQL; otherwise a local SQLite file
    url = env.get("DATABASE_URL")
    if url:
        return url
    host = env.get("DB_HOST")
    if not host:
        return "sqlite:///./pos.db"
    port = env.get("DB_PORT")
    return URL.create(
        "mysql+pymysql",
        username=env.get("DB_USER", "root"),
        password=env.get("DB_PASSWORD") or None,
        host=host,
        port=int(port) if port else None,
        database=env.get("DB_NAME", "pos_bintang_terang"),
    ).render_as_string(hide_password=False)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    if env is None:
        env = os.environ
    return Settings(
        database_url=database_url_from_env(env),
        pool_size=int(env.get("DB_CONNECTION_LIMIT", "10")),
        jwt_secret=env.get("JWT_SECRET", "dev-secret"),
        token_ttl_seconds=int(env.get("JWT_EXPIRES_SECONDS", str(60 * 60 * 24))),
        port=int(env.get("PORT", "3000")),
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
