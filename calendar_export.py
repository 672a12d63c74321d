from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Dict, List
from zoneinfo import ZoneInfo
from icalendar import Calendar, Event as IcsEvent
from models import Discipline, StudyBlock
from planner import blocks_by_day


DEFAULT_TIMEZONE = "America/Sao_Paulo"


def first_date_for_day(week_start: date, day_of_week: int) -> date:
    # day_of_week is 0=Sunday; date.weekday() is 0=Monday
    offset = (day_of_week - (week_start.weekday() + 1) % 7) % 7
    return week_start + timedelta(days=offset)


def blocks_to_ics(
    blocks: List[StudyBlock],
    disciplines: List[Discipline],
    week_start: date,
    start_hour: int = 18,
    tz_name: str = DEFAULT_TIMEZONE,
) -> bytes:
    """
    One weekly recurring event per block. Blocks of a day are laid out back
    to back from start_hour, in block order.
    """
    cal = Calendar()
    cal.add("PRODID", "-//Studium//Planner//")
    cal.add("version", "2.0")
    cal.add("X-WR-CALNAME", "Studium study blocks")

    tz = ZoneInfo(tz_name)
    names: Dict[int, str] = {d.id: d.title for d in disciplines}

    for day_of_week, day_blocks in blocks_by_day(blocks).items():
        if not day_blocks:
            continue
        day = first_date_for_day(week_start, day_of_week)
        cursor = datetime.combine(day, time(hour=start_hour), tzinfo=tz)
        for block in day_blocks:
            end = cursor + timedelta(hours=block.duration_hours)
            name = names.get(block.discipline_id, f"Discipline {block.discipline_id}")

            event = IcsEvent()
            event.add("uid", f"block-{day_of_week}-{block.order}-{block.discipline_id}@studium")
            event.add("summary", f"Study: {name}")
            event.add("dtstart", cursor)
            event.add("dtend", end)
            event.add("rrule", {"freq": "weekly"})
            event.add("description", f"Block {block.order}, {block.duration_hours:g}h planned.")
            cal.add_component(event)
            cursor = end

    return cal.to_ical()
