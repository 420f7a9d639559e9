"""Tests for reporthub/utils/geo.py and GeoIndex"""

import pytest

from reporthub.models.report import Report, ReportStatus, Severity
from reporthub.services.geo_index import GeoIndex
from reporthub.utils.geo import haversine_distance, is_valid_coordinate

from conftest import T0


def make_report(lat, lon, **overrides):
    fields = dict(
        latitude=lat,
        longitude=lon,
        photo_ref="p.jpg",
        category="POTHOLE",
        severity=Severity.MEDIUM,
        sla_deadline=T0,
        created_at=T0,
    )
    fields.update(overrides)
    return Report(**fields)


def test_distance_to_same_point_is_zero():
    assert haversine_distance(12.0, 77.0, 12.0, 77.0) == 0


def test_nearby_points_are_about_fifteen_meters_apart():
    distance = haversine_distance(12.0, 77.0, 12.0001, 77.0001)
    assert 15 < distance < 16.5


def test_distance_is_symmetric():
    assert haversine_distance(12.0, 77.0, 13.0, 78.0) == pytest.approx(haversine_distance(13.0, 78.0, 12.0, 77.0))


def test_one_degree_apart_is_far_outside_duplicate_radius():
    assert haversine_distance(12.0, 77.0, 13.0, 78.0) > 100_000


@pytest.mark.parametrize("lat,lon,expected", [
    (0, 0, True),
    (90, 180, True),
    (-90, -180, True),
    (90.0001, 0, False),
    (0, -180.5, False),
    (None, 0, False),
    ("abc", 0, False),
    (float("nan"), 0, False),
])
def test_is_valid_coordinate(lat, lon, expected):
    assert is_valid_coordinate(lat, lon) is expected


def test_geo_index_returns_open_primaries_inside_radius(store):
    near_id = store.insert(make_report(12.0001, 77.0001))
    store.insert(make_report(13.0, 78.0))
    resolved_id = store.insert(make_report(12.0, 77.0, status=ReportStatus.RESOLVED))
    duplicate_id = store.insert(make_report(12.0, 77.0, is_primary=False, duplicate_of=near_id))

    candidates = GeoIndex(store).find_nearby(12.0, 77.0, 50)

    ids = [c.report.id for c in candidates]
    assert ids == [near_id]
    assert resolved_id not in ids and duplicate_id not in ids
    assert 15 < candidates[0].distance < 16.5


def test_geo_index_includes_report_exactly_on_radius(store):
    report_id = store.insert(make_report(12.0001, 77.0001))
    radius = haversine_distance(12.0, 77.0, 12.0001, 77.0001)

    candidates = GeoIndex(store).find_nearby(12.0, 77.0, radius)

    assert [c.report.id for c in candidates] == [report_id]


def test_geo_index_orders_most_recent_first(store):
    from datetime import timedelta

    older = store.insert(make_report(12.0, 77.0, created_at=T0))
    newer = store.insert(make_report(12.0, 77.0, created_at=T0 + timedelta(hours=1)))

    candidates = GeoIndex(store).find_nearby(12.0, 77.0, 50)

    assert [c.report.id for c in candidates] == [newer, older]


def test_geo_index_excludes_given_id(store):
    report_id = store.insert(make_report(12.0, 77.0))
    assert GeoIndex(store).find_nearby(12.0, 77.0, 50, exclude_id=report_id) == []
