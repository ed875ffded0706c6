"""Environment driven settings.

``FLASK_ENV`` selects the settings class; every other value is read from the
environment once at import time. Malformed values fall back to their defaults
and are reported through ``ENV_DIAGNOSTICS``.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, TypeVar

T = TypeVar("T")

ENV_KEY = "FLASK_ENV"
DEFAULT_ENV = "development"
KNOWN_ENVS = ("development", "testing", "staging", "production")

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


@dataclass
class EnvReader:
    data: Mapping[str, str] = field(default_factory=lambda: dict(os.environ))
    warnings: list[str] = field(default_factory=list)

    def get(self, key: str, default: str | None = None) -> str | None:
        value = (self.data.get(key) or "").strip()
        return value or default

    def first(self, *keys: str, default: str | None = None) -> str | None:
        for key in keys:
            value = self.get(key)
            if value:
                return value
        return default

    def _parsed(self, key: str, default: T, parse: Callable[[str], T], kind: str) -> T:
        value = self.get(key)
        if value is None:
            return default
        try:
            return parse(value)
        except ValueError:
            self.warnings.append(f"{key}={value!r} is not a valid {kind}; using {default!r}")
            return default

    def int(self, key: str, default: int) -> int:
        return self._parsed(key, default, int, "integer")

    def float(self, key: str, default: float) -> float:
        return self._parsed(key, default, float, "number")

    def flag(self, key: str, default: bool) -> bool:
        def parse(value: str) -> bool:
            lowered = value.lower()
            if lowered in _TRUTHY:
                return True
            if lowered in _FALSY:
                return False
            raise ValueError(value)

        return self._parsed(key, default, parse, "boolean")


def normalize_db_url(url: str | None) -> str | None:
    """SQLAlchemy only accepts the ``postgresql://`` scheme."""
    if url and url.startswith("postgres://"):
        return "postgresql://" + url[len("postgres://"):]
    return url


def resolve_env_name(reader: EnvReader) -> str:
    name = (reader.get(ENV_KEY) or DEFAULT_ENV).lower()
    if name not in KNOWN_ENVS:
        raise RuntimeError(f"Invalid {ENV_KEY}={name!r}; expected one of {', '.join(KNOWN_ENVS)}")
    return name


def _sqlite_fallback_uri() -> str:
    instance_dir = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "instance")
    return "sqlite:///" + os.path.join(instance_dir, "clinicstock.db")


env = EnvReader()
ENV_NAME = resolve_env_name(env)


class BaseConfig:
    FLASK_ENV = ENV_NAME
    SECRET_KEY = env.first("SECRET_KEY", "FLASK_SECRET_KEY", default="change-me-clinicstock")
    JSON_AS_ASCII = False
    MAX_CONTENT_LENGTH = 4 * 1024 * 1024

    # Database
    SQLALCHEMY_DATABASE_URI = normalize_db_url(env.get("DATABASE_URL"))
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": env.int("SQLALCHEMY_POOL_SIZE", 10),
        "max_overflow": env.int("SQLALCHEMY_MAX_OVERFLOW", 10),
        "pool_recycle": env.int("SQLALCHEMY_POOL_RECYCLE", 1800),
    }

    # Caching and rate limits
    REDIS_URL = env.get("REDIS_URL")
    CACHE_DEFAULT_TIMEOUT = env.int("CACHE_DEFAULT_TIMEOUT", 300)
    PRODUCTS_CACHE_TTL_SECONDS = env.float("PRODUCTS_CACHE_TTL_SECONDS", 5.0)
    PRODUCTS_CACHE_MAX_SIZE = env.int("PRODUCTS_CACHE_MAX_SIZE", 100)
    CACHE_SWEEP_INTERVAL_SECONDS = env.float("CACHE_SWEEP_INTERVAL_SECONDS", 60.0)
    RATELIMIT_ENABLED = env.flag("RATELIMIT_ENABLED", True)
    RATELIMIT_DEFAULT = env.get("RATELIMIT_DEFAULT", "3000 per hour;300 per minute")
    RATELIMIT_STORAGE_URI = env.first("RATELIMIT_STORAGE_URI", "REDIS_URL", default="memory://")

    # Member tokens
    MEMBER_JWT_SECRET = env.first("MEMBER_JWT_SECRET", "SUPABASE_JWT_SECRET")
    MEMBER_JWT_TTL_HOURS = env.int("MEMBER_JWT_TTL_HOURS", 12)

    # Supplier backend
    SUPPLIER_BACKEND_URL = env.get("SUPPLIER_BACKEND_URL", "http://localhost:3002")
    SUPPLIER_BACKEND_API_KEY = env.get("SUPPLIER_BACKEND_API_KEY")
    SUPPLIER_BACKEND_TIMEOUT_SECONDS = env.float("SUPPLIER_BACKEND_TIMEOUT_SECONDS", 10.0)

    CLINIC_TIMEZONE = env.get("CLINIC_TIMEZONE", "Asia/Seoul")

    LOG_LEVEL = env.get("LOG_LEVEL", "INFO")
    LOG_REDACT_PII = env.flag("LOG_REDACT_PII", True)


class DevelopmentConfig(BaseConfig):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = BaseConfig.SQLALCHEMY_DATABASE_URI or _sqlite_fallback_uri()
    LOG_LEVEL = env.get("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"


class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        **BaseConfig.SQLALCHEMY_ENGINE_OPTIONS,
        "pool_size": env.int("SQLALCHEMY_POOL_SIZE", 20),
        "pool_timeout": env.int("SQLALCHEMY_POOL_TIMEOUT", 30),
    }


CONFIG_BY_ENV = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "staging": ProductionConfig,
    "production": ProductionConfig,
}

Config = CONFIG_BY_ENV[ENV_NAME]
ENV_DIAGNOSTICS = {
    "active": ENV_NAME,
    "config": Config.__name__,
    "warnings": tuple(env.warnings),
}
