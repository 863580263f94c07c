"""
tests/test_reports_api.py
=========================
Courier day summary, admin analytics and per-courier reports.
"""
import json

import pytest

from conftest import COURIER_ID, OTHER_COURIER_ID

DAY = "2024-05-14"


@pytest.fixture
def seeded(store):
    store.add(order_id="ORD-1", status="delivered", total_order_fees=100, delivery_fee=20)
    store.add(order_id="ORD-2", status="canceled", total_order_fees=80)
    store.add(order_id="ORD-3", status="delivered", total_order_fees=300, assigned_courier_id=OTHER_COURIER_ID)
    # touched two days later
    store.add(
        order_id="ORD-4", status="delivered", total_order_fees=50,
        updated_at="2024-05-16T10:00:00+00:00",
    )
    return store


class TestCourierSummary:

    def test_courier_gets_own_day(self, seeded, app_client, courier_user):
        response = app_client(courier_user).get("/reports/summary", params={"day": DAY})

        assert response.status_code == 200
        body = response.json()
        assert body["courier_id"] == COURIER_ID
        assert body["date"] == DAY
        assert body["metrics"]["total_orders"]["count"] == 2
        assert body["metrics"]["delivered"]["count"] == 1
        assert sorted(o["order_id"] for o in body["orders"]) == ["ORD-1", "ORD-2"]

    def test_courier_id_param_ignored_for_couriers(self, seeded, app_client, courier_user):
        response = app_client(courier_user).get(
            "/reports/summary", params={"day": DAY, "courier_id": OTHER_COURIER_ID}
        )
        assert response.json()["courier_id"] == COURIER_ID

    def test_metric_narrows_orders(self, seeded, app_client, courier_user):
        response = app_client(courier_user).get("/reports/summary", params={"day": DAY, "metric": "delivered"})

        assert [o["order_id"] for o in response.json()["orders"]] == ["ORD-1"]

    def test_unknown_metric(self, seeded, app_client, courier_user):
        response = app_client(courier_user).get("/reports/summary", params={"day": DAY, "metric": "tips"})
        assert response.status_code == 400

    def test_degraded_user_has_no_summary(self, app_client):
        from courierdesk.models.user import AuthUser

        degraded = AuthUser(id="u9", email="u9@example.com", name="u9", degraded=True)
        assert app_client(degraded).get("/reports/summary").status_code == 403


class TestAdminSummary:

    def test_courier_list_without_selection(self, seeded, app_client, admin_user):
        body = app_client(admin_user).get("/reports/summary", params={"day": DAY}).json()

        assert {c["id"] for c in body["couriers"]} == {COURIER_ID, OTHER_COURIER_ID}
        assert body["summary"] is None

    def test_selected_courier(self, seeded, app_client, admin_user):
        body = app_client(admin_user).get(
            "/reports/summary", params={"day": DAY, "courier_id": OTHER_COURIER_ID}
        ).json()

        assert body["summary"]["courier_id"] == OTHER_COURIER_ID
        assert body["summary"]["metrics"]["delivered"]["count"] == 1


class TestAnalytics:

    def test_analytics_over_range(self, seeded, app_client, admin_user):
        response = app_client(admin_user).get(
            "/reports/analytics", params={"date_from": DAY, "date_to": DAY, "period": "daily"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total_orders"] == 4
        assert body["delivered_orders"] == 3
        assert body["date_from"] == DAY
        assert [b["period"] for b in body["daily_stats"]] == [DAY]
        assert "weekly_stats" not in body

    def test_filter_by_courier(self, seeded, app_client, admin_user):
        body = app_client(admin_user).get("/reports/analytics", params={"courier_id": OTHER_COURIER_ID}).json()
        assert body["total_orders"] == 1

    def test_unknown_period(self, app_client, admin_user):
        response = app_client(admin_user).get("/reports/analytics", params={"period": "yearly"})
        assert response.status_code == 422

    def test_reversed_range(self, app_client, admin_user):
        response = app_client(admin_user).get(
            "/reports/analytics", params={"date_from": "2024-05-20", "date_to": DAY}
        )
        assert response.status_code == 400

    def test_couriers_cannot_see_analytics(self, app_client, courier_user):
        assert app_client(courier_user).get("/reports/analytics").status_code == 403

    def test_export(self, seeded, app_client, admin_user):
        response = app_client(admin_user).get("/reports/analytics/export", params={"date_from": DAY})

        assert response.status_code == 200
        assert 'filename="analytics.json"' in response.headers["content-disposition"]
        data = json.loads(response.text)
        assert data["total_orders"] == 4
        assert data["date_from"] == DAY


class TestCourierReport:

    def test_report(self, seeded, app_client, admin_user):
        response = app_client(admin_user).get(f"/reports/couriers/{COURIER_ID}")

        assert response.status_code == 200
        body = response.json()
        assert body["courier_id"] == COURIER_ID
        assert body["total_orders"] == 3
        assert body["delivered_orders"] == 2
