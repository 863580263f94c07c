from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SUPABASE_URL: str
    SUPABASE_KEY: str
    SUPABASE_SERVICE_KEY: str

    REDIS_URL: str = "redis://localhost:6379"

    FRONTEND_URL: str = "http://localhost:5173"

    CLOUDINARY_CLOUD_NAME: str
    CLOUDINARY_UPLOAD_PRESET: str

    # Shared secret sent by the Supabase database webhook on /ws/changes
    REALTIME_WEBHOOK_SECRET: str = ""

    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    LOCAL_TIMEZONE: str = "Africa/Cairo"

    PROFILE_FETCH_TIMEOUT: float = 15.0
    PROFILE_FETCH_RETRIES: int = 2
    PROFILE_RETRY_DELAY: float = 0.3

    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440

    PROOF_MAX_BYTES: int = 10 * 1024 * 1024

    @property
    def CLOUDINARY_UPLOAD_URL(self) -> str:
        return f"https://api.cloudinary.com/v1_1/{self.CLOUDINARY_CLOUD_NAME}/image/upload"

    class Config:
        env_file = ".env"

settings = Settings()
