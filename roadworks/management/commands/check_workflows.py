from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.management.base import BaseCommand, CommandError

from roadworks.services.workflows import load_registry


class Command(BaseCommand):
    help = "Validate a workflow catalog and list its templates."

    def add_arguments(self, parser):
        parser.add_argument(
            "--catalog",
            default=None,
            help="Dotted path of the catalog module (defaults to ROADWORKS_WORKFLOW_CATALOG).",
        )

    def handle(self, *args, **options):
        catalog = options["catalog"] or settings.ROADWORKS_WORKFLOW_CATALOG
        try:
            registry = load_registry(catalog)
        except ImproperlyConfigured as exc:
            raise CommandError(str(exc)) from exc

        for template in registry:
            stages = sorted({layer.stage for layer in template.layers})
            self.stdout.write(
                f"{template.id}: {template.phase_name} ({template.measure!s}) "
                f"{len(template.layers)} layer(s), stages {stages[0]}-{stages[-1]}"
            )
        for rule in registry.propagation_rules:
            self.stdout.write(f"propagate {rule.source_workflow} -> {rule.target_workflow}")
        self.stdout.write(self.style.SUCCESS(f"Catalog {catalog} is valid ({len(registry)} template(s))."))
