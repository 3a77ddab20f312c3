"""Group Buying management CLI.

Usage:
    python src/manage.py setup-db             # Create all tables
    python src/manage.py drop-db              # Drop all tables
    python src/manage.py expire-overdue       # Cancel active group orders past deadline
"""

import argparse
import sys


def setup_database():
    from group_buying.domain import group_buying
    from group_buying.utils.db import setup_db

    print("Initializing group_buying domain...")
    group_buying.init()
    print("Creating group_buying database schema...")
    setup_db(group_buying)
    print("Done.")


def drop_database():
    from group_buying.domain import group_buying
    from group_buying.utils.db import drop_db

    print("Initializing group_buying domain...")
    group_buying.init()
    print("Dropping group_buying database schema...")
    drop_db(group_buying)
    print("Done.")


def expire_overdue():
    """One sweep of overdue group orders, meant for cron or a K8s CronJob."""
    from group_buying.domain import group_buying
    from group_buying.services import get_aggregator
    from group_buying.utils.logging import configure_logging

    configure_logging()
    group_buying.init()
    with group_buying.domain_context():
        expired = get_aggregator().expire_overdue()
    print(f"Expired {len(expired)} group order(s).")
    for group_order_id in expired:
        print(f"  {group_order_id}")


def main():
    parser = argparse.ArgumentParser(description="Group Buying management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")
    subparsers.add_parser("expire-overdue", help="Cancel active group orders whose deadline has passed")

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "expire-overdue":
        expire_overdue()
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
