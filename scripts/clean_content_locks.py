import argparse

from config.common_settings import CommonConfig
from content_lock import Base
from content_lock.maintenance_job import ContentLockMaintenanceJob


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Check or remove existing content locks")
    parser.add_argument("mode", choices=["check", "clean"], help="count matching locks or remove them")
    parser.add_argument("--hours", default="0", help="older than this number of hours, 0 for all")
    parser.add_argument("--user-id", dest="owner_ids", action="append", default=[],
                        help="belonging to this user, may be repeated")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    config = CommonConfig()
    config.get_db_manager().create_tables(Base.metadata)
    job = ContentLockMaintenanceJob(config=config)
    count = job.run({"mode": args.mode, "max_age_hours": args.hours, "owner_ids": args.owner_ids})
    verb = "removed" if args.mode == "clean" else "found"
    print(f"{count} content locks {verb}")
    return count


if __name__ == "__main__":
    main()
