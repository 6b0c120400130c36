"""URL configuration for the road works inspection API."""

from django.urls import include, path
from rest_framework import routers

from . import views


router = routers.DefaultRouter()
router.register(r"roads", views.RoadSectionViewSet)
router.register(r"inspections", views.InspectionEntryViewSet)


urlpatterns = [
    path("api/workflows/", views.workflow_list, name="workflow_list"),
    path("api/roads/<slug:slug>/phases/", views.road_phase_views, name="road_phase_views"),
    path(
        "api/roads/<slug:slug>/phases/<int:phase_id>/booking/",
        views.phase_booking,
        name="phase_booking",
    ),
    path(
        "api/roads/<slug:slug>/phases/<int:phase_id>/inspections/",
        views.submit_phase_inspections,
        name="phase_inspections",
    ),
    path("api/", include(router.urls)),
]
