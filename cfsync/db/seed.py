from loguru import logger
from sqlalchemy.orm import Session

from cfsync.config import get_settings
from cfsync.db.database import Base, get_sync_engine
from cfsync.models import SyncConfig

settings = get_settings()


def get_or_create_sync_config(session: Session) -> SyncConfig:
    """取得同步排程設定，不存在時以預設排程建立"""
    config = session.query(SyncConfig).order_by(SyncConfig.id).first()
    if config is None:
        config = SyncConfig(cron_time=settings.default_sync_cron, enabled=True)
        session.add(config)
        session.commit()
        logger.info(f"Added default sync config: {config.cron_time}")
    return config


def seed():
    """建立資料表與預設同步排程"""
    engine = get_sync_engine()
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        config = get_or_create_sync_config(session)
        logger.info(f"Sync config: '{config.cron_time}' enabled={config.enabled}")

    logger.info("Seed completed")


if __name__ == "__main__":
    seed()
