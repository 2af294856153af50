"""
Scheduled tasks for scraping and snapshot generation

Schedules (UTC):
- Scraping: every 2 hours, on the hour (0 */2 * * *)
- Snapshots: daily at 10:00 (0 10 * * *)

Each job carries a running flag so a trigger that fires while the previous
run is still going is skipped.
"""

import json
import logging
import time
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from database import connect
from records_scraper import run_records_scrape
from sgt_client import SGTClient
from snapshot_service import generate_player_rank_snapshot

logger = logging.getLogger(__name__)


def _iso(moment):
    return moment.astimezone(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


class RecordsScheduler:
    def __init__(self, config, client=None):
        self.config = config
        self.client = client
        self.scrape_trigger = CronTrigger.from_crontab(config.scrape_cron, timezone='UTC')
        self.snapshot_trigger = CronTrigger.from_crontab(config.snapshot_cron, timezone='UTC')
        self.scheduler = None
        self.is_scrape_running = False
        self.is_snapshot_running = False

    def _client(self):
        if self.client is None:
            self.client = SGTClient.from_config(self.config)
        return self.client

    def run_scrape_job(self):
        if self.is_scrape_running:
            logger.warning("Scrape job skipped - previous run still in progress")
            return None

        self.is_scrape_running = True
        start = time.monotonic()
        logger.info("Scheduled scrape job starting...")

        conn = None
        try:
            conn = connect(self.config.db_path)
            result = run_records_scrape(conn, self._client())
            duration = round(time.monotonic() - start)
            logger.info(f"Scheduled scrape completed in {duration}s: {result['summary']}")
            if result.get('timings'):
                logger.info(f"Scrape timings: {json.dumps(result['timings'])}")
            return result
        except Exception as e:
            logger.error(f"Scheduled scrape failed: {e}")
            return None
        finally:
            if conn is not None:
                conn.close()
            self.is_scrape_running = False

    def run_snapshot_job(self):
        if self.is_snapshot_running:
            logger.warning("Snapshot job skipped - previous run still in progress")
            return None

        self.is_snapshot_running = True
        start = time.monotonic()
        logger.info("Scheduled snapshot job starting...")

        conn = None
        try:
            conn = connect(self.config.db_path)
            result = generate_player_rank_snapshot(conn)
            duration = round(time.monotonic() - start)
            if result['success']:
                logger.info(
                    f"Scheduled snapshot completed in {duration}s: {result['players_processed']} players processed"
                )
            else:
                logger.error(f"Scheduled snapshot failed in {duration}s: {'; '.join(result['errors'])}")
            return result
        except Exception as e:
            logger.error(f"Scheduled snapshot failed: {e}")
            return None
        finally:
            if conn is not None:
                conn.close()
            self.is_snapshot_running = False

    def start(self):
        if self.scheduler is not None:
            return
        logger.info("Initializing scheduler...")

        self.scheduler = BackgroundScheduler(timezone='UTC')
        self.scheduler.add_job(self.run_scrape_job, self.scrape_trigger, id='records_scrape')
        logger.info(f"Scrape job scheduled: {self.config.scrape_cron} UTC")
        self.scheduler.add_job(self.run_snapshot_job, self.snapshot_trigger, id='rank_snapshot')
        logger.info(f"Snapshot job scheduled: {self.config.snapshot_cron} UTC")
        self.scheduler.start()

        logger.info("Scheduler started successfully")

    def stop(self):
        logger.info("Stopping scheduler...")
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None
        logger.info("Scheduler stopped")

    def next_run(self, trigger, now=None):
        """Next fire time strictly after `now`"""
        now = now or datetime.now(timezone.utc)
        return trigger.get_next_fire_time(None, now + timedelta(microseconds=1))

    def get_status(self, now=None):
        scheduled = self.scheduler is not None
        return {
            'scrapeJob': {
                'scheduled': scheduled,
                'running': self.is_scrape_running,
                'nextRun': _iso(self.next_run(self.scrape_trigger, now)),
            },
            'snapshotJob': {
                'scheduled': scheduled,
                'running': self.is_snapshot_running,
                'nextRun': _iso(self.next_run(self.snapshot_trigger, now)),
            },
        }


_scheduler = None


def start_scheduler(config, client=None):
    global _scheduler
    if _scheduler is None:
        _scheduler = RecordsScheduler(config, client)
    _scheduler.start()
    return _scheduler


def stop_scheduler():
    if _scheduler is not None:
        _scheduler.stop()


def get_scheduler_status(config, now=None):
    """Status of the running scheduler, or of an unstarted one built from config"""
    scheduler = _scheduler or RecordsScheduler(config)
    return scheduler.get_status(now)
