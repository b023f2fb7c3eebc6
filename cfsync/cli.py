import argparse

from loguru import logger

from cfsync.config import get_settings
from cfsync.db.database import Base, get_sync_engine

settings = get_settings()


def init_database():
    """初始化資料庫"""
    import cfsync.models  # noqa: F401

    Base.metadata.create_all(get_sync_engine())
    logger.info("Database initialized")


def run_sync():
    """立即執行一次學生資料同步"""
    from cfsync.scheduler.jobs import run_student_sync

    report = run_student_sync()
    if report is None:
        return
    logger.info(f"Result: {report.summary()}")
    for failure in report.failures:
        logger.info(f"  failed: student {failure.student_id} ({failure.handle}) - {failure.reason}")


def run_reminders():
    """立即執行不活躍提醒"""
    from cfsync.scheduler.jobs import run_inactivity_reminders

    results = run_inactivity_reminders()
    logger.info(f"Result: {results}")


def main():
    parser = argparse.ArgumentParser(description="Codeforces Student Sync CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init command
    subparsers.add_parser("init", help="Initialize database")

    # seed command
    subparsers.add_parser("seed", help="Seed default sync schedule")

    # sync command
    subparsers.add_parser("sync", help="Run one student sync now")

    # remind command
    subparsers.add_parser("remind", help="Send inactivity reminders now")

    # serve command
    subparsers.add_parser("serve", help="Start API server")

    args = parser.parse_args()

    if args.command == "init":
        init_database()
    elif args.command == "seed":
        from cfsync.db.seed import seed

        seed()
    elif args.command == "sync":
        init_database()
        run_sync()
    elif args.command == "remind":
        run_reminders()
    elif args.command == "serve":
        import uvicorn

        uvicorn.run(
            "cfsync.main:app",
            host=settings.api_host,
            port=settings.api_port,
            reload=settings.debug,
        )
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
