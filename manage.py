"""
GSPro Course Viewer management commands

Usage:
    python manage.py serve
    python manage.py init-db
    python manage.py health
    python manage.py scrape
    python manage.py snapshot [--date 2025-01-31]
    python manage.py find-missing records.html SomeUser
"""

import argparse
import logging

from app import create_app
from config import load_config, setup_logging
from database import connect, init_db, validate_database
from records_scraper import find_missing_courses, run_records_scrape
from scheduler import start_scheduler, stop_scheduler
from sgt_client import SGTClient
from snapshot_service import generate_player_rank_snapshot, parse_date

logger = logging.getLogger(__name__)


def cmd_serve(config, args):
    conn = connect(config.db_path)
    try:
        init_db(conn)
    finally:
        conn.close()

    app = create_app(config)
    if config.scheduler_enabled:
        start_scheduler(config)
    try:
        logger.info(f"Server is running on port {config.port}")
        app.run(host=config.host, port=config.port)
    finally:
        stop_scheduler()
    return 0


def cmd_init_db(config, args):
    conn = connect(config.db_path)
    try:
        init_db(conn)
    finally:
        conn.close()
    print(f"[+] Database ready at {config.db_path}")
    return 0


def cmd_health(config, args):
    try:
        tables = validate_database(config.db_path)
    except RuntimeError as e:
        print(f"[-] Database check failed: {e}")
        return 1
    print(f"[+] Database OK ({len(tables)} tables)")
    return 0


def cmd_scrape(config, args):
    print("[*] Scraping course records from SGT...")
    conn = connect(config.db_path)
    try:
        result = run_records_scrape(conn, SGTClient.from_config(config))
    finally:
        conn.close()
    print(f"[{'+' if result['success'] else '-'}] {result['summary']}")
    return 0 if result['success'] else 1


def cmd_snapshot(config, args):
    today = parse_date(args.date) if args.date else None
    print("[*] Generating player rank snapshot...")
    conn = connect(config.db_path)
    try:
        result = generate_player_rank_snapshot(conn, today)
    finally:
        conn.close()

    if not result['success']:
        for error in result['errors']:
            print(f"  {error}")
        print("[-] Snapshot failed")
        return 1
    print(
        f"[+] Snapshot {result['snapshot_date']}: {result['players_processed']} players, "
        f"{result['new_entries']} new, {result['updated_entries']} updated"
    )
    return 0


def cmd_find_missing(config, args):
    with open(args.file, encoding='utf-8') as f:
        html = f.read()

    conn = connect(config.db_path)
    try:
        found, missing = find_missing_courses(conn, html, args.username)
    finally:
        conn.close()

    print(f"[+] {len(found)} courses with a {args.username} Tips record are in the database")
    print(f"[*] {len(missing)} missing:")
    for course in missing:
        print(f"  {course['sgt_id']}: {course['name']}")
    return 0


COMMANDS = {
    'serve': cmd_serve,
    'init-db': cmd_init_db,
    'health': cmd_health,
    'scrape': cmd_scrape,
    'snapshot': cmd_snapshot,
    'find-missing': cmd_find_missing,
}


def build_parser():
    parser = argparse.ArgumentParser(description='GSPro Course Viewer management commands')
    parser.add_argument('--env-file', help='Read settings from this .env file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    subparsers.add_parser('serve', help='Run the HTTP server and the scheduler')
    subparsers.add_parser('init-db', help='Create missing tables and seed record modes')
    subparsers.add_parser('health', help='Check the database has every required table')
    subparsers.add_parser('scrape', help='Scrape singles course records now')

    snapshot = subparsers.add_parser('snapshot', help='Generate the daily player rank snapshot')
    snapshot.add_argument('--date', help='Snapshot date (YYYY-MM-DD), default today (UTC)')

    find_missing = subparsers.add_parser(
        'find-missing', help='List courses from a saved SGT records page that are not in the database'
    )
    find_missing.add_argument('file', help='Saved course records HTML')
    find_missing.add_argument('username', help='SGT username holding the Tips records')

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = load_config(args.env_file)
    setup_logging(config.log_level)
    return COMMANDS[args.command](config, args)


if __name__ == "__main__":
    raise SystemExit(main())
