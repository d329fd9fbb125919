from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DEBUG: bool = False
    DATABASE_URL: str = "sqlite+aiosqlite:///./shared_notes.db"
    REDIS_URL: str = "redis://localhost:6379/0"
    LOG_LEVEL: str = "INFO"

    # Sessions
    SESSION_COOKIE_NAME: str = "session"
    SESSION_COOKIE_SECURE: bool = False  # enable behind HTTPS in production
    SESSION_EXPIRE_DAYS: int = 7

    # Trash and invitations
    TRASH_RETENTION_DAYS: int = 30
    INVITE_EXPIRE_DAYS: int = 7

    # Invite email
    APP_URL: str = "http://localhost:3000"
    SENDGRID_API_KEY: str = ""
    EMAIL_FROM: str = "no-reply@sharednotes.local"

    class Config:
        env_file = [".env"]
        case_sensitive = True
        extra = "ignore"


settings = Settings()
