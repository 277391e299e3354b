from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = "Customer Manager"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./customers.db"

    # Photo storage
    UPLOAD_DIR: str = "static/uploads"
    UPLOAD_URL_PREFIX: str = "/static/uploads"
    MAX_IMAGE_SIZE_MB: int = 5

    # Listing
    PAGE_SIZE: int = 9
    NEW_CUSTOMER_WINDOW_DAYS: int = 30

    # Remote API client
    API_BASE_URL: str = "http://localhost:8000"

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
