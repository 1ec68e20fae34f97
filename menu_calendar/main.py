#!/usr/bin/env python3
"""
HAFS Cafeteria Menu
Command-line entry point for the menu pipeline
"""

import sys
import argparse
import time
from pathlib import Path

from menu_calendar.dates import parse_ymd, today_ymd, tomorrow_ymd, week_range
from menu_calendar.errors import MenuError, PhotoTimeoutError, user_message
from menu_calendar.models import MEAL_LABELS, RangeResult


PHOTO_EXTENSIONS = {
    'image/jpeg': '.jpg',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/webp': '.webp',
}


def resolve_range(when: str, date: str = None) -> tuple:
    """Date range for --when/--date"""
    if date:
        parse_ymd(date)
        return date, date
    if when == 'tomorrow':
        ymd = tomorrow_ymd()
        return ymd, ymd
    if when == 'week':
        return week_range()
    ymd = today_ymd()
    return ymd, ymd


def show_photos(service, ymd: str, meal: str, save_dir: Path = None) -> int:
    """Print (and optionally save) tray photos for a day"""
    meals = list(MEAL_LABELS) if meal == 'all' else [meal]
    found = 0
    timed_out = False

    for kind in meals:
        try:
            link = service.get_photo(ymd, kind)
        except PhotoTimeoutError as e:
            print(f"  {e}")
            timed_out = True
            continue

        if not link.url:
            continue
        found += 1
        print(f"📷 ({ymd}) {MEAL_LABELS[kind]}: {link.url}")

        if save_dir:
            content, media_type = service.get_photo_image(link)
            save_dir.mkdir(parents=True, exist_ok=True)
            path = save_dir / f"{ymd}-{kind}{PHOTO_EXTENSIONS.get(media_type, '.jpg')}"
            path.write_bytes(content)
            print(f"  Saved to {path}")

    if not found:
        print(user_message(PhotoTimeoutError()) if timed_out else "식단 사진이 없습니다.")
    return 0


def main():
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Show the HAFS cafeteria menu')
    parser.add_argument('--when', choices=['today', 'tomorrow', 'week'], default='today',
                        help='Which day(s) to show (default: today)')
    parser.add_argument('--date', type=str, help='Specific date as YYYYMMDD (overrides --when)')
    parser.add_argument('--meal', choices=['all'] + list(MEAL_LABELS), default='all',
                        help='Meal to show (default: all)')
    parser.add_argument('--photo', action='store_true', help='Look up the tray photo instead of the menu')
    parser.add_argument('--save-photo', type=str, help='Directory to save photos into (implies --photo)')
    parser.add_argument('--no-browser', action='store_true', help='Never fall back to headless Chrome')
    parser.add_argument('--neis', action='store_true', help='Merge the NEIS feed (needs NEIS_KEY)')
    args = parser.parse_args()

    from menu_calendar.service import build_service, format_range

    try:
        from_ymd, to_ymd = resolve_range(args.when, args.date)
        service = build_service(use_browser=False if args.no_browser else None)
    except ValueError as e:
        print(f"Configuration Error: {e}")
        return 1

    try:
        with service:
            if args.photo or args.save_photo:
                if from_ymd != to_ymd:
                    print("주간 보기에서는 사진을 보여줄 수 없어요. --date 또는 --when today/tomorrow를 사용하세요.")
                    return 1
                save_dir = Path(args.save_photo) if args.save_photo else None
                return show_photos(service, from_ymd, args.meal, save_dir)

            start_time = time.time()
            if args.neis:
                result = service.get_report(from_ymd, to_ymd)
            elif from_ymd == to_ymd:
                day = service.get_day(from_ymd)
                result = RangeResult(days={} if day.is_empty else {from_ymd: day})
            else:
                result = service.get_range(from_ymd, to_ymd)
            elapsed = time.time() - start_time
            print(f"  ⏱️  Lookup took {elapsed:.2f}s")

            if not result.days and result.failures:
                first_error = next(iter(result.failures.values()))
                print(user_message(first_error))
                return 1

            print()
            print(format_range(result.days, args.meal))
            return 0

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        return 130
    except MenuError as e:
        print(user_message(e))
        print(f"  ({e})")
        return 1
    except Exception as e:
        print(f"\n\nError: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
