"""Serializers for the road works inspection API."""

from rest_framework import serializers

from . import models
from .choices import Side


class PhaseIntervalSerializer(serializers.ModelSerializer):
    class Meta:
        model = models.PhaseInterval
        fields = ["id", "start_pk", "end_pk", "side", "spec", "bill_quantity", "layers"]


class PhaseSerializer(serializers.ModelSerializer):
    intervals = PhaseIntervalSerializer(many=True, read_only=True)
    definition_name = serializers.CharField(source="definition.name", read_only=True)

    class Meta:
        model = models.Phase
        fields = [
            "id",
            "road",
            "definition",
            "definition_name",
            "name",
            "measure",
            "point_has_sides",
            "layers",
            "checks",
            "intervals",
            "updated_at",
        ]


class RoadSectionSerializer(serializers.ModelSerializer):
    phases = PhaseSerializer(many=True, read_only=True)

    class Meta:
        model = models.RoadSection
        fields = ["id", "slug", "name", "length_m", "start_pk", "end_pk", "phases"]


class InspectionEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = models.InspectionEntry
        fields = "__all__"


class BookingQuerySerializer(serializers.Serializer):
    start = serializers.FloatField()
    end = serializers.FloatField()
    side = serializers.ChoiceField(choices=Side.choices, default=Side.BOTH)


class InspectionSubmissionSerializer(serializers.Serializer):
    """Shape of a submission; completeness is judged by the batcher.

    Range, number and appointment fields stay free text so that missing or
    malformed values surface as classified submission errors.
    """

    side = serializers.ChoiceField(choices=Side.choices, default=Side.BOTH)
    startPk = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    endPk = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
    layers = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    checks = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    types = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    remark = serializers.CharField(required=False, allow_blank=True, default="")
    appointmentDate = serializers.DateField(required=False, allow_null=True, default=None)
    submissionNumber = serializers.CharField(required=False, allow_blank=True, allow_null=True, default=None)
