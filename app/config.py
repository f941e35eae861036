from typing import Optional
from pydantic_settings import BaseSettings
from urllib.parse import quote_plus

class Settings(BaseSettings):
    postgres_user: str
    postgres_password: str
    postgres_db: str
    postgres_host: str = "localhost"
    postgres_port: str = "5432"

    # full URL wins over the postgres_* parts (sqlite in tests)
    sqlalchemy_database_uri: Optional[str] = None

    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    razorpay_key_id: str
    razorpay_key_secret: str
    razorpay_webhook_secret: str

    client_url: str = "http://localhost:5173"
    payment_currency: str = "INR"
    payment_timeout_seconds: float = 10.0

    # a pending checkout already counts as "purchased" on the course page
    count_pending_as_purchased: bool = True

    env: str = "local"
    log_level: str = "INFO"

    @property
    def database_url(self):
        if self.sqlalchemy_database_uri:
            return self.sqlalchemy_database_uri
        encoded_password = quote_plus(self.postgres_password)
        return (
            f"postgresql+psycopg2://{self.postgres_user}:"
            f"{encoded_password}@{self.postgres_host}:"
            f"{self.postgres_port}/{self.postgres_db}"
        )

    def success_url(self, course_id: int) -> str:
        return f"{self.client_url}/course-progress/{course_id}?success=true"

    def cancel_url(self, course_id: int) -> str:
        return f"{self.client_url}/course-detail/{course_id}"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "allow"

settings = Settings()


def get_settings() -> Settings:
    return settings
