from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from roadworks import repositories
from roadworks.apps import get_registry
from roadworks.models import RoadSection
from roadworks.services.progress import aggregate_phase_progress


class Command(BaseCommand):
    help = "Print design and completed quantities per phase of a road section."

    def add_arguments(self, parser):
        parser.add_argument("slugs", nargs="*", help="Road section slugs; all sections when omitted.")
        parser.add_argument(
            "--aggregate",
            action="store_true",
            help="Group phases across the selected road sections by name and spec.",
        )

    def handle(self, *args, **options):
        slugs = options["slugs"]
        roads = RoadSection.objects.order_by("slug")
        if slugs:
            roads = roads.filter(slug__in=slugs)
            missing = sorted(set(slugs) - set(roads.values_list("slug", flat=True)))
            if missing:
                raise CommandError(f"Unknown road section(s): {', '.join(missing)}")

        registry = get_registry()
        summaries = []
        for road in roads:
            road_summaries = repositories.phase_summaries(road, registry)
            summaries.extend(road_summaries)
            if options["aggregate"]:
                continue
            self.stdout.write(f"{road.slug}:")
            for summary in road_summaries:
                percent = (
                    round(min(summary.completed_length, summary.design_length) / summary.design_length * 100)
                    if summary.design_length > 0
                    else 0
                )
                self.stdout.write(
                    f"  {summary.phase_name} [{summary.measure!s}] "
                    f"{summary.completed_length:.2f} / {summary.design_length:.2f} ({percent}%)"
                )

        if options["aggregate"]:
            for item in aggregate_phase_progress(summaries):
                label = f"{item.name} ({item.spec})" if item.spec else item.name
                self.stdout.write(
                    f"{label} [{item.measure!s}] {item.total_completed_length:.2f} / "
                    f"{item.total_design_length:.2f} ({item.completed_percent}%) "
                    f"roads: {', '.join(item.road_names)}"
                )
        self.stdout.write(self.style.SUCCESS(f"Reported {len(summaries)} phase(s)."))
