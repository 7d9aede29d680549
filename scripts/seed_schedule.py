#!/usr/bin/env python3
"""CLI tool to seed the default consultant, working week and settings."""
import sys
from datetime import datetime

from consultation_booking import config
from consultation_booking.database import Database
from consultation_booking.schedule import ScheduleStore


def _parse_time(value: str):
    return datetime.strptime(value, "%H:%M").time()


def main():
    """Seed once; refuses to run when a schedule already exists."""
    consultant_name = sys.argv[1] if len(sys.argv) > 1 else config.DEFAULT_CONSULTANT

    database = Database(config.DATABASE_URL)
    database.init()
    store = ScheduleStore(database)

    if store.all_schedules():
        print("\nSchedule already configured, nothing to do.")
        sys.exit(0)

    consultant = store.add_consultant(consultant_name)
    start = _parse_time(config.DEFAULT_SCHEDULE["start_time"])
    end = _parse_time(config.DEFAULT_SCHEDULE["end_time"])

    for day in config.DEFAULT_SCHEDULE["days"]:
        store.add_schedule_entry(day, start, end, consultant_id=consultant.id)

    for key, value in config.DEFAULT_SETTINGS.items():
        store.update_setting(key, value)

    print(f"\nSeeded schedule for {consultant.name}:")
    print(f"  days {config.DEFAULT_SCHEDULE['days']} "
          f"{config.DEFAULT_SCHEDULE['start_time']}-{config.DEFAULT_SCHEDULE['end_time']}\n")


if __name__ == "__main__":
    main()
