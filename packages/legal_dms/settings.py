"""Runtime configuration and database wiring for the DMS service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

__all__ = ["DmsSettings", "DmsDatabase", "init_engine"]

_MB = 1024 * 1024


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "on"}


@dataclass(slots=True)
class DmsSettings:
    """DMS 서비스 설정."""

    database_url: str
    enable_audit: bool = True
    max_upload_bytes: int = 100 * _MB
    client_max_upload_bytes: int = 50 * _MB
    presigned_url_expiry: int = 3600
    allowed_origins: list[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )
    echo_sql: bool = False
    trusted_proxy_count: int = 0

    @classmethod
    def from_env(cls) -> DmsSettings:
        database_url = (
            os.getenv("DMS_DATABASE_URL")
            or os.getenv("DATABASE_URL")
            or "sqlite+pysqlite:///./legal_dms.db"
        )
        origins = os.getenv("DMS_ALLOWED_ORIGINS")
        kwargs = {}
        if origins:
            kwargs["allowed_origins"] = [
                origin.strip() for origin in origins.split(",") if origin.strip()
            ]
        return cls(
            database_url=database_url,
            enable_audit=_env_flag("DMS_ENABLE_AUDIT", "true"),
            max_upload_bytes=int(os.getenv("DMS_MAX_UPLOAD_BYTES", str(100 * _MB))),
            client_max_upload_bytes=int(
                os.getenv("DMS_CLIENT_MAX_UPLOAD_BYTES", str(50 * _MB))
            ),
            presigned_url_expiry=int(os.getenv("DMS_PRESIGNED_URL_EXPIRY", "3600")),
            echo_sql=_env_flag("DMS_ECHO_SQL", "false"),
            trusted_proxy_count=int(os.getenv("DMS_TRUSTED_PROXY_COUNT", "0")),
            **kwargs,
        )


def normalize_database_url(database_url: str) -> str:
    """Point bare PostgreSQL URLs at the psycopg 3 driver."""

    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+psycopg://", 1)
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://", 1)
    return database_url


def init_engine(settings: DmsSettings) -> Engine:
    """SQLAlchemy 엔진 초기화."""

    database_url = normalize_database_url(settings.database_url)
    engine_kwargs: dict = {"echo": settings.echo_sql, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        from sqlalchemy.pool import StaticPool

        engine_kwargs["poolclass"] = StaticPool
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    else:
        engine_kwargs["pool_size"] = 10
        engine_kwargs["max_overflow"] = 20
    return create_engine(database_url, **engine_kwargs)


class DmsDatabase:
    """데이터베이스 세션 관리."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def session(self) -> Session:
        return self._session_factory()

    def create_all(self) -> None:
        """테이블 생성 (개발/테스트용). 운영 환경은 SQL 마이그레이션 사용."""
        Base.metadata.create_all(self.engine)
