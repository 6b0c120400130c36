from django.contrib import admin, messages

from . import models
from .choices import InspectionStatus


class PhaseIntervalInline(admin.TabularInline):
    model = models.PhaseInterval
    extra = 0
    fields = ("start_pk", "end_pk", "side", "spec", "bill_quantity", "layers")


@admin.register(models.RoadSection)
class RoadSectionAdmin(admin.ModelAdmin):
    list_display = ("slug", "name", "length_m", "start_pk", "end_pk")
    search_fields = ("slug", "name")
    prepopulated_fields = {"slug": ("name",)}
    fieldsets = (
        ("Road section", {"fields": ("name", "slug")}),
        ("Chainage", {"fields": ("length_m", "start_pk", "end_pk")}),
    )


@admin.register(models.PhaseDefinition)
class PhaseDefinitionAdmin(admin.ModelAdmin):
    list_display = ("name", "measure", "workflow_key")
    list_filter = ("measure",)
    search_fields = ("name", "workflow_key")


@admin.register(models.Phase)
class PhaseAdmin(admin.ModelAdmin):
    list_display = ("name", "road", "definition", "measure", "point_has_sides", "updated_at")
    list_filter = ("measure", "definition")
    search_fields = ("name", "road__name", "road__slug")
    inlines = [PhaseIntervalInline]


@admin.register(models.InspectionEntry)
class InspectionEntryAdmin(admin.ModelAdmin):
    list_display = (
        "phase",
        "layer_name",
        "check_name",
        "side",
        "start_pk",
        "end_pk",
        "status",
        "appointment_date",
        "updated_at",
    )
    list_filter = ("status", "side", "phase__definition")
    search_fields = ("layer_name", "check_name", "phase__name", "road__slug")
    date_hierarchy = "appointment_date"
    actions = ["mark_submitted", "mark_in_progress", "mark_approved"]

    def _advance(self, request, queryset, target):
        moved = skipped = 0
        for entry in queryset:
            if InspectionStatus.coerce(entry.status).can_advance_to(target):
                entry.advance_status(target)
                moved += 1
            else:
                skipped += 1
        self.message_user(request, f"{moved} entries moved to {target.label}.", messages.SUCCESS)
        if skipped:
            self.message_user(request, f"{skipped} entries were already past {target.label}.", messages.WARNING)

    @admin.action(description="Mark selected entries as submitted")
    def mark_submitted(self, request, queryset):
        self._advance(request, queryset, InspectionStatus.SUBMITTED)

    @admin.action(description="Mark selected entries as in progress")
    def mark_in_progress(self, request, queryset):
        self._advance(request, queryset, InspectionStatus.IN_PROGRESS)

    @admin.action(description="Mark selected entries as approved")
    def mark_approved(self, request, queryset):
        self._advance(request, queryset, InspectionStatus.APPROVED)
