# mysecrets/core/config.py
import binascii
import os
from dataclasses import dataclass
from urllib.parse import quote_plus

from dotenv import load_dotenv

JWT_SECRET_MIN_LENGTH = 32
MASTER_KEY_BYTES = 32
HMAC_ALGORITHMS = {"HS256", "HS384", "HS512"}


def str_to_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def merge_unique(items: list[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for v in items:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out


@dataclass(frozen=True)
class TokenSettings:
    """Signing and lifetime options handed to the token issuer and refresh store."""

    secret: str
    algorithm: str = "HS256"
    issuer: str = "mysecrets-api"
    audience: str = "mysecrets-client"
    access_token_minutes: int = 15
    refresh_token_days: int = 7


class Settings:
    def __init__(self) -> None:
        # Only load .env for local/dev. In prod, env vars come from the service config.
        self.ENV = os.getenv("ENV", "dev").strip().lower()  # dev | prod
        if self.ENV != "prod":
            load_dotenv()

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper()

        # ----------------------------
        # Database
        # ----------------------------
        self.DATABASE_URL = os.getenv("DATABASE_URL", "").strip()
        self.DB_HOST = os.getenv("DB_HOST", "")
        self.DB_PORT = os.getenv("DB_PORT", "5432")
        self.DB_NAME = os.getenv("DB_NAME", "")
        self.DB_USER = os.getenv("DB_USER", "")
        self.DB_PASSWORD = os.getenv("DB_PASSWORD", "")
        self.DB_SSLMODE = os.getenv("DB_SSLMODE", "require").strip().lower()

        # ----------------------------
        # Password policy
        # ----------------------------
        self.PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", "8"))
        self.PASSWORD_MAX_LENGTH = 128

        # ----------------------------
        # CORS
        # ----------------------------
        dev_defaults = [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

        cors_from_env = parse_csv(os.getenv("CORS_ORIGINS"))
        if self.ENV == "prod":
            self.CORS_ORIGINS = merge_unique(cors_from_env)
        else:
            self.CORS_ORIGINS = merge_unique(cors_from_env + dev_defaults)

        # ----------------------------
        # Auth / JWT
        # ----------------------------
        self.JWT_SECRET = os.getenv("JWT_SECRET", "")
        self.JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256").strip().upper()
        self.JWT_ISSUER = os.getenv("JWT_ISSUER", "mysecrets-api")
        self.JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "mysecrets-client")
        self.ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15"))

        self.REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
        self.REFRESH_COOKIE_NAME = os.getenv("REFRESH_COOKIE_NAME", "refresh_token")
        self.REFRESH_COOKIE_SAMESITE = os.getenv("REFRESH_COOKIE_SAMESITE", "lax")
        self.REFRESH_COOKIE_SECURE = str_to_bool(os.getenv("REFRESH_COOKIE_SECURE"), default=False)
        self.REFRESH_COOKIE_PATH = os.getenv("REFRESH_COOKIE_PATH", "/auth")
        self.REFRESH_COOKIE_DOMAIN = os.getenv("REFRESH_COOKIE_DOMAIN", "") or None

        # ----------------------------
        # Secret encryption
        # ----------------------------
        self.ENCRYPTION_MASTER_KEY = os.getenv("ENCRYPTION_MASTER_KEY", "").strip()

        # ----------------------------
        # Google sign-in
        # ----------------------------
        self.GOOGLE_CLIENT_ID = os.getenv("GOOGLE_CLIENT_ID", "").strip()
        self.GOOGLE_JWKS_URL = os.getenv("GOOGLE_JWKS_URL", "https://www.googleapis.com/oauth2/v3/certs")
        self.GOOGLE_JWKS_CACHE_SECONDS = int(os.getenv("GOOGLE_JWKS_CACHE_SECONDS", "3600"))

        # Final: fail fast in prod
        self._validate_prod()

    def _validate_prod(self) -> None:
        if self.ENV != "prod":
            return

        missing: list[str] = []

        if not self.JWT_SECRET:
            missing.append("JWT_SECRET")
        if not self.ENCRYPTION_MASTER_KEY:
            missing.append("ENCRYPTION_MASTER_KEY")
        if not self.DATABASE_URL:
            if not self.DB_HOST:
                missing.append("DB_HOST")
            if not self.DB_NAME:
                missing.append("DB_NAME")
            if not self.DB_USER:
                missing.append("DB_USER")
            if not self.DB_PASSWORD:
                missing.append("DB_PASSWORD")
            if self.DB_SSLMODE != "require":
                raise RuntimeError("DB_SSLMODE must be 'require' in prod")

        if not self.CORS_ORIGINS:
            missing.append("CORS_ORIGINS")

        cors_joined = ",".join(self.CORS_ORIGINS)
        if "localhost" in cors_joined or "127.0.0.1" in cors_joined:
            raise RuntimeError("CORS_ORIGINS contains localhost/dev origins in prod")

        if missing:
            raise RuntimeError(f"Missing required prod env vars: {', '.join(missing)}")

    @property
    def is_prod(self) -> bool:
        return self.ENV == "prod"

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        if not self.DB_HOST:
            return "sqlite:///./mysecrets.db"
        encoded_password = quote_plus(self.DB_PASSWORD)
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{encoded_password}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
            f"?sslmode={self.DB_SSLMODE}"
        )

    def token_settings(self) -> TokenSettings:
        require_jwt_secret()
        return TokenSettings(
            secret=self.JWT_SECRET,
            algorithm=self.JWT_ALGORITHM,
            issuer=self.JWT_ISSUER,
            audience=self.JWT_AUDIENCE,
            access_token_minutes=self.ACCESS_TOKEN_EXPIRE_MINUTES,
            refresh_token_days=self.REFRESH_TOKEN_EXPIRE_DAYS,
        )


settings = Settings()


def require_jwt_secret() -> None:
    secret = settings.JWT_SECRET or ""
    if not secret.strip():
        raise RuntimeError("JWT_SECRET must be set")
    if len(secret) < JWT_SECRET_MIN_LENGTH:
        raise RuntimeError(f"JWT_SECRET must be at least {JWT_SECRET_MIN_LENGTH} characters")
    if settings.JWT_ALGORITHM not in HMAC_ALGORITHMS:
        raise RuntimeError(f"JWT_ALGORITHM must be one of {sorted(HMAC_ALGORITHMS)}")


def load_master_key(raw: str | None = None) -> bytes:
    """
    Decode the hex master key used for per-user key derivation.
    Raises RuntimeError unless it decodes to exactly 32 bytes.
    """
    value = (settings.ENCRYPTION_MASTER_KEY if raw is None else raw).strip()
    if not value:
        raise RuntimeError("ENCRYPTION_MASTER_KEY must be set")
    try:
        key = bytes.fromhex(value)
    except (ValueError, binascii.Error) as e:
        raise RuntimeError("ENCRYPTION_MASTER_KEY must be a hex string") from e
    if len(key) != MASTER_KEY_BYTES:
        raise RuntimeError(
            f"ENCRYPTION_MASTER_KEY must be exactly {MASTER_KEY_BYTES * 2} hex characters ({MASTER_KEY_BYTES} bytes)"
        )
    return key
