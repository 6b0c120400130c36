from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase

from roadworks.choices import InspectionStatus, Side


class CheckWorkflowsCommandTests(SimpleTestCase):
    def test_default_catalog_is_valid(self):
        out = StringIO()
        call_command("check_workflows", stdout=out)
        output = out.getvalue()
        self.assertIn("culvert: Culvert (POINT) 9 layer(s), stages 1-5", output)
        self.assertIn("propagate subbase -> earthwork", output)
        self.assertIn("is valid (11 template(s))", output)

    def test_unknown_catalog(self):
        with self.assertRaises(CommandError):
            call_command("check_workflows", catalog="roadworks.services.no_such_catalog", stdout=StringIO())


@pytest.mark.django_db
def test_phase_progress_per_road(road, earthwork, create_entry):
    create_entry(
        earthwork, "Fill layer 4", "Compaction inspection", side=Side.LEFT, start_pk=0, end_pk=400,
        status=InspectionStatus.APPROVED,
    )
    out = StringIO()
    call_command("phase_progress", "rn-7", stdout=out)

    lines = out.getvalue().splitlines()
    assert lines[0] == "rn-7:"
    assert lines[1] == "  Earthwork [LINEAR] 400.00 / 800.00 (50%)"
    assert "Reported 1 phase(s)." in lines[-1]


@pytest.mark.django_db
def test_phase_progress_aggregate(road, earthwork):
    out = StringIO()
    call_command("phase_progress", "--aggregate", stdout=out)

    assert "Earthwork [LINEAR] 0.00 / 800.00 (0%) roads: RN7 Lot 2" in out.getvalue()


@pytest.mark.django_db
def test_phase_progress_unknown_road(road):
    with pytest.raises(CommandError, match="rn-404"):
        call_command("phase_progress", "rn-7", "rn-404", stdout=StringIO())
