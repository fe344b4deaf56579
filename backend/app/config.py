from pydantic_settings import BaseSettings
from typing import List, Optional
from dotenv import load_dotenv

from app.services.retry import RetryPolicy

load_dotenv()


PICKER_PAGE_SIZE_OPTIONS = (30, 60, 120, 250)


class Settings(BaseSettings):
    DEBUG: bool = False

    # Shop whose Admin GraphQL API backs the media library, e.g.
    # "travel-demo.myshopify.com". The access token is only read on first use
    # so the app (and the test-suite) can import without credentials.
    SHOP_DOMAIN: str = ""
    ADMIN_API_ACCESS_TOKEN: Optional[str] = None
    ADMIN_API_VERSION: str = "2024-10"
    ADMIN_API_TIMEOUT_SECONDS: float = 20.0
    ADMIN_API_CONNECT_TIMEOUT_SECONDS: float = 5.0

    # Fixed retry policy applied to every Admin API call and every staged
    # upload transfer: N attempts in total with a constant pause in between.
    MEDIA_RETRY_ATTEMPTS: int = 3
    MEDIA_RETRY_DELAY_SECONDS: float = 0.7

    # The plain media library page asks for a larger page than the picker.
    MEDIA_LIBRARY_PAGE_SIZE: int = 120
    MEDIA_PICKER_PAGE_SIZE: int = 60

    # Picker timing: quiet period for the search box, and the delay before the
    # authoritative refresh that follows an upload (Admin indexing lags a bit).
    MEDIA_PICKER_DEBOUNCE_SECONDS: float = 0.35
    MEDIA_REFRESH_DELAY_SECONDS: float = 1.2

    ALLOWED_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    class Config:
        env_file = None
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def admin_graphql_url(self) -> str:
        domain = (self.SHOP_DOMAIN or "").strip().rstrip("/")
        if domain.startswith("https://"):
            domain = domain[len("https://"):]
        return f"https://{domain}/admin/api/{self.ADMIN_API_VERSION}/graphql.json"

    @property
    def media_retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            max_attempts=self.MEDIA_RETRY_ATTEMPTS,
            delay_seconds=self.MEDIA_RETRY_DELAY_SECONDS,
        )

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]


settings = Settings()
