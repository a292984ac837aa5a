import os
import logging
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./brokerage.db")
SQLALCHEMY_DATABASE_URI = DATABASE_URL

# JWT Settings
SECRET_KEY: str = os.getenv("SECRET_KEY", "change_me_in_the_env_file_for_any_real_deployment")
ALGORITHM: str = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 30))

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# How many times a write that lost a serialization race is replayed before giving up
REVENUE_SHARE_MAX_RETRIES: int = int(os.getenv("REVENUE_SHARE_MAX_RETRIES", 3))

if "change_me" in SECRET_KEY:
    logging.getLogger(__name__).warning("SECRET_KEY is not configured; using the development placeholder.")
