import logging

from app.db.base import Base  # also registers every model
from app.db.session import engine

logger = logging.getLogger(__name__)

def init_db() -> None:
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
