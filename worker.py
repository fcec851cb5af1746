#!/usr/bin/env python3
"""
Worker process for the spreadsheet sync and the Drive backup.
This keeps the scheduler running separately from the web process.
"""

import logging

from apscheduler.schedulers.blocking import BlockingScheduler

# create_app loads .env before reading the config
from app import create_app, build_scheduler


def run_scheduler():
    """Run the sync and backup jobs until interrupted."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(start_scheduler=False)
    scheduler = build_scheduler(app, scheduler=BlockingScheduler())
    app.extensions["portal"].scheduler = scheduler

    print("🚀 Starting Exun portal sync worker...")
    print(f"📄 Sheets sync every {scheduler.interval} min")
    print(f"💾 Drive backup every {scheduler.backup_interval} min")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        scheduler.stop()


if __name__ == '__main__':
    run_scheduler()
