"""
Inspect and move an institution's academic years through their lifecycle from the command line.
Talks to the institution service at API_BASE_URL (or --base-url).

Usage:
  python -m academic_cycle.scripts.years <institution_id> show
  python -m academic_cycle.scripts.years <institution_id> suggest [--today 2025-10-01]
  python -m academic_cycle.scripts.years <institution_id> letters
  python -m academic_cycle.scripts.years <institution_id> activate 2025/2026
  python -m academic_cycle.scripts.years <institution_id> archive 2025/2026
  python -m academic_cycle.scripts.years <institution_id> reactivate 2024/2025
  python -m academic_cycle.scripts.years <institution_id> classes 2025/2026
"""

import argparse
import asyncio
import sys
from datetime import date
from typing import Optional
from uuid import UUID

from academic_cycle.core.config import settings
from academic_cycle.core.exceptions import NotFoundError, ServiceError
from academic_cycle.core.logging import setup_logging
from academic_cycle.lifecycle.coordinator import TransitionCoordinator, TransitionOutcome
from academic_cycle.lifecycle.gateway import HttpInstitutionGateway
from academic_cycle.lifecycle.registry import YearRegistry


def print_registry(registry: YearRegistry) -> None:
    current = registry.current()
    print(f"Active:   {current.label if current else '(none)'}")
    print(f"Planned:  {', '.join(y.label for y in registry.planned()) or '(none)'}")
    print(f"Archived: {', '.join(y.label for y in registry.archived()) or '(none)'}")


def print_outcome(outcome: TransitionOutcome) -> None:
    print(f"{outcome.year.label}: {outcome.year.status}")
    if outcome.activated_year is not None:
        print(f"{outcome.activated_year.label}: {outcome.activated_year.status} (follow-on activation)")
    print_registry(outcome.registry)


def _year_id(coordinator: TransitionCoordinator, label: str) -> UUID:
    year = coordinator.registry.find_by_label(label)
    if year is None:
        raise NotFoundError(f"Academic year {label} not found")
    return year.id


async def run(args: argparse.Namespace) -> int:
    base_url = args.base_url or settings.api_base_url
    async with HttpInstitutionGateway.from_settings(settings.model_copy(update={"api_base_url": base_url})) as gateway:
        coordinator = TransitionCoordinator(gateway, args.institution_id)
        try:
            registry = await coordinator.refresh()
            if args.command == "show":
                print(f"{coordinator.institution.name} ({coordinator.institution.school_type})")
                print_registry(registry)
            elif args.command == "suggest":
                print(registry.suggest_next_label(args.today))
            elif args.command == "letters":
                allocator = coordinator.allocator()
                print(f"Existing: {' '.join(allocator.existing_names) or '(none)'}")
                print(f"Unused:   {' '.join(allocator.unused_letters()) or '(none)'}")
            elif args.command == "activate":
                print_outcome(await coordinator.activate(_year_id(coordinator, args.label)))
            elif args.command == "archive":
                print_outcome(await coordinator.archive(_year_id(coordinator, args.label)))
            elif args.command == "reactivate":
                print_outcome(await coordinator.reactivate(_year_id(coordinator, args.label)))
            elif args.command == "classes":
                classes = await gateway.list_classes(args.institution_id, academic_year=args.label)
                if not classes:
                    print("  (no classes)")
                for c in classes:
                    print(
                        f"  {c.year}{c.section} {c.academic_year} {c.status:<8} "
                        f"{c.student_count}/{c.capacity} students"
                    )
        except ServiceError as e:
            print(f"Error ({e.__class__.__name__}): {e.message}", file=sys.stderr)
            return 1
    return 0


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected YYYY-MM-DD, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Academic year lifecycle for one institution")
    parser.add_argument("institution_id", type=UUID, help="Institution id")
    parser.add_argument("--base-url", type=str, default=None, help="Institution service URL (default: API_BASE_URL)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="Active, planned and archived years")
    suggest = sub.add_parser("suggest", help="Label to use for the next year")
    suggest.add_argument("--today", type=_parse_date, default=None, help="Reference date (default: today)")
    sub.add_parser("letters", help="Section letters in use and still free")
    for name, help_text in (
        ("activate", "planned -> active"),
        ("archive", "active -> archived, with the class cascade"),
        ("reactivate", "archived -> planned"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("label", type=str, help="Academic year label, e.g. 2025/2026")
    classes = sub.add_parser("classes", help="Classes of an academic year")
    classes.add_argument("label", type=str, nargs="?", default=None, help="Academic year label (default: all)")
    return parser


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)
    setup_logging(settings)
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
