# gabinete/config.py
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ---- App ----
    app_env: str = "local"  # local|dev|prod
    app_version: str = "2026-10.v1"
    database_url: str = "sqlite:///./gabinete.db"
    log_level: str = "INFO"

    # ---- CORS (used by main.py) ----
    cors_allow_origins: list[str] | str = ["*"]

    # ---- Auth / tenancy ----
    auth_mode: str = "dev"  # dev|jwt
    dev_auto_provision: bool = True

    dev_header_tenant_slug: str = "X-Tenant-Slug"
    dev_header_user_email: str = "X-User-Email"
    dev_header_user_role: str = "X-User-Role"

    jwt_secret: str = "dev-change-me"
    jwt_cookie_name: str = "gabinete_jwt"

    # ---- Object storage ----
    storage_root: str = "./uploads"
    storage_public_base_url: str = "/uploads"
    storage_bucket: str = "uploads"
    upload_max_bytes: int = 5 * 1024 * 1024  # 5MB
    upload_max_files: int = 5
    accepted_image_types: list[str] = ["image/jpeg", "image/png", "image/webp", "image/gif"]

    # ---- Postal code lookup ----
    postal_lookup_base_url: str = "https://viacep.com.br/ws"
    postal_lookup_timeout_seconds: float = 10.0
    postal_lookup_cache_seconds: int = 600

    # ---- Pagination ----
    default_page_size: int = 10
    max_page_size: int = 100
    tickets_per_page: int = 20

    def model_post_init(self, __context) -> None:
        env = (self.app_env or "local").strip().lower()
        is_prod = env in ("prod", "production")

        if is_prod:
            if (self.auth_mode or "").strip().lower() == "dev":
                raise ValueError("SECURITY: auth_mode=dev is not allowed in prod")
            if self.jwt_secret == "dev-change-me":
                raise ValueError("SECURITY: jwt_secret must be set in prod")

            origins = self.cors_allow_origins
            if origins == "*" or origins == ["*"] or (isinstance(origins, str) and "*" in origins):
                raise ValueError("SECURITY: cors_allow_origins wildcard is not allowed in prod")


settings = Settings()
