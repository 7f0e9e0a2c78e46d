"""
API tests: auth, envelopes and exports through the FastAPI app.

Service getters are patched per route module; the auth lookup is patched
by the login fixture.

Run: pytest tests/test_routes_api.py -v
"""

import pytest
from unittest.mock import MagicMock, patch

from models.analytics import BusinessAnalytics
from models.client import ClientResponse
from models.collection import CollectionResponse
from models.user import UserRole
from exceptions import (
    ClientNotFoundError,
    CollectionNotFoundError,
    NoExportDataError,
    ThreadNotFoundError,
)
from tests.conftest import make_user


@pytest.fixture
def service():
    return MagicMock()


def patched(target, service):
    return patch(target, return_value=service)


# ===================
# HEALTH
# ===================

class TestHealth:

    def test_healthy(self, test_client):
        with patch("main.check_connection", return_value={"status": "healthy", "customers_count": 3, "orders_count": 9}):
            response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_degraded(self, test_client):
        with patch("main.check_connection", return_value={"status": "unhealthy", "error": "timeout"}):
            response = test_client.get("/health")

        assert response.json()["status"] == "degraded"

    def test_root_lists_endpoints(self, test_client):
        body = test_client.get("/").json()

        assert body["endpoints"]["clients"] == "/api/clients"
        assert body["endpoints"]["analytics"] == "/api/analytics"


# ===================
# AUTH
# ===================

class TestAuth:

    def test_missing_token(self, test_client, login):
        response = test_client.get("/api/clients")

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "UNAUTHORIZED"

    def test_viewer_cannot_write(self, test_client, login, viewer_user, auth_headers):
        login(viewer_user)

        response = test_client.post(
            "/api/clients",
            json={"name": "Oakline", "email": "ap@oakline.test"},
            headers=auth_headers,
        )

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"

    def test_disabled_account(self, test_client, login, auth_headers):
        login(make_user(UserRole.ADMIN, is_active=False))

        response = test_client.get("/api/clients", headers=auth_headers)

        assert response.status_code == 403
        assert response.json()["error"]["message"] == "Account is disabled"

    def test_any_of_permissions(self, test_client, login, auth_headers, service):
        login(make_user(UserRole.EMPLOYEE))
        service.update_session.return_value = {"id": "s1", "status": "completed"}

        with patched("routes.factory_reviews.get_factory_review_service", service):
            response = test_client.put(
                "/api/factory-reviews/sessions/s1",
                json={"status": "completed"},
                headers=auth_headers,
            )

        assert response.status_code == 200

    def test_single_permission_route(self, test_client, login, auth_headers):
        login(make_user(UserRole.EMPLOYEE))

        response = test_client.patch(
            "/api/production-tracking",
            json={"id": "pi-1", "status": "done"},
            headers=auth_headers,
        )

        assert response.status_code == 403


# ===================
# CLIENTS / TASKS / ACTIVITIES
# ===================

class TestClientRoutes:

    def test_list_envelope(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.get_all.return_value = [ClientResponse(id="1", name="Oakline", creditTerms="Net 30")]

        with patched("routes.clients.get_client_service", service):
            response = test_client.get("/api/clients?search=oak", headers=auth_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["count"] == 1
        assert body["data"][0]["creditTerms"] == "Net 30"
        service.get_all.assert_called_once_with(search="oak", limit=50, offset=0)

    def test_validation_error_is_400(self, test_client, login, admin_user, auth_headers):
        login(admin_user)

        response = test_client.post("/api/clients", json={"email": "ap@oakline.test"}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_update_missing_client(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.update.side_effect = ClientNotFoundError("9")

        with patched("routes.clients.get_client_service", service):
            response = test_client.put("/api/clients", json={"id": "9", "name": "X"}, headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "CLIENT_NOT_FOUND"

    def test_delete_requires_id(self, test_client, login, admin_user, auth_headers):
        login(admin_user)

        response = test_client.delete("/api/clients", headers=auth_headers)

        assert response.status_code == 400

    def test_unexpected_error_is_500(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.delete.side_effect = RuntimeError("boom")

        with patched("routes.clients.get_client_service", service):
            response = test_client.delete("/api/clients?id=5", headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"


class TestTaskRoutes:

    def test_missing_table_flag(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.get_all.return_value = ([], False)

        with patched("routes.tasks.get_task_service", service):
            response = test_client.get("/api/tasks?status=all", headers=auth_headers)

        assert response.json() == {"success": True, "data": [], "count": 0, "tableExists": False}

    def test_create_uses_caller_email(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.create.return_value = {"id": "t1"}

        with patched("routes.tasks.get_task_service", service):
            response = test_client.post("/api/tasks", json={"title": "Glue-up"}, headers=auth_headers)

        assert response.status_code == 201
        assert service.create.call_args.kwargs["created_by"] == admin_user.email


class TestActivityRoutes:

    def test_list(self, test_client, login, viewer_user, auth_headers, service):
        login(viewer_user)
        service.get_for_entity.return_value = [{"id": "a1"}]

        with patched("routes.activities.get_activity_service", service):
            response = test_client.get(
                "/api/crm/activities?related_to=customers&related_id=c1",
                headers=auth_headers,
            )

        assert response.json()["count"] == 1
        service.get_for_entity.assert_called_once_with("customers", "c1", "all")


# ===================
# EXPORTS
# ===================

class TestExports:

    def test_ar_aging_csv_attachment(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.export.return_value = "Customer Name\nAcme\n"

        with patched("routes.ar_aging.get_ar_aging_service", service):
            response = test_client.post(
                "/api/ar-aging/export",
                json={"type": "csv", "filters": {"search": "acme"}},
                headers=auth_headers,
            )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        disposition = response.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="ar_aging_report_')
        assert disposition.endswith('.csv"')
        service.export.assert_called_once_with("csv", {"search": "acme"})

    def test_payments_excel_attachment(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.export.return_value = b"PK\x03\x04"

        with patched("routes.payments.get_payment_service", service):
            response = test_client.post("/api/payments/export", json={"type": "excel"}, headers=auth_headers)

        assert response.headers["content-disposition"].endswith('.xlsx"')
        assert response.content == b"PK\x03\x04"

    def test_no_data_is_400(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.export.side_effect = NoExportDataError("No data matches the current filters")

        with patched("routes.ar_aging.get_ar_aging_service", service):
            response = test_client.post("/api/ar-aging/export", json={"type": "csv"}, headers=auth_headers)

        assert response.status_code == 400

    def test_factory_review_html(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.get_export_data.return_value = {"id": "s1", "session_name": "Spring Review", "status": "completed"}

        with patched("routes.factory_reviews.get_factory_review_service", service):
            response = test_client.get("/api/factory-reviews/sessions/s1/export", headers=auth_headers)

        assert response.headers["content-type"].startswith("text/html")
        assert 'filename="factory-review-Spring-Review-' in response.headers["content-disposition"]
        assert "Spring Review" in response.text


# ===================
# OTHER MODULES
# ===================

class TestFinanceRoutes:

    def test_ar_summary_needs_finance(self, test_client, login, viewer_user, auth_headers):
        login(viewer_user)

        assert test_client.get("/api/ar-aging/summary", headers=auth_headers).status_code == 403

    def test_invalid_period(self, test_client, login, admin_user, auth_headers):
        login(admin_user)

        response = test_client.get("/api/payments/summary?period=2w", headers=auth_headers)

        assert response.status_code == 400

    def test_collection_activity_defaults_creator(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.create_collection_activity.return_value = {"id": "ca1"}

        with patched("routes.ar_aging.get_ar_aging_service", service):
            response = test_client.post(
                "/api/ar-aging/collection-activities",
                json={"customer_id": "c1", "activity_type": "call", "description": "Voicemail"},
                headers=auth_headers,
            )

        assert response.status_code == 201
        payload = service.create_collection_activity.call_args.args[0]
        assert payload["created_by"] == admin_user.email


class TestPortalRoutes:

    def test_any_signed_in_user(self, test_client, login, auth_headers, service):
        login(make_user(UserRole.CLIENT))
        service.list_threads.return_value = [{"id": "t1", "unread_count": 2}]

        with patched("routes.portal.get_message_service", service):
            response = test_client.get("/api/portal/messages/threads", headers=auth_headers)

        assert response.json()["data"][0]["unread_count"] == 2

    def test_foreign_thread_is_404(self, test_client, login, auth_headers, service):
        login(make_user(UserRole.CLIENT))
        service.get_messages.side_effect = ThreadNotFoundError("t9")

        with patched("routes.portal.get_message_service", service):
            response = test_client.get("/api/portal/messages/threads/t9/messages", headers=auth_headers)

        assert response.status_code == 404

    def test_blank_reply_rejected(self, test_client, login, auth_headers):
        login(make_user(UserRole.CLIENT))

        response = test_client.post(
            "/api/portal/messages/threads/t1/messages",
            json={"content": "   "},
            headers=auth_headers,
        )

        assert response.status_code == 400


class TestWorkflowRoutes:

    def test_manager_cannot_configure(self, test_client, login, auth_headers):
        login(make_user(UserRole.MANAGER))

        assert test_client.get("/api/workflows/rules", headers=auth_headers).status_code == 403

    def test_execute_counts_executed(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)
        service.execute.return_value = [
            {"rule_id": "r1", "executed": True, "results": []},
            {"rule_id": "r2", "executed": False, "results": []},
        ]

        with patched("routes.workflows.get_automation_service", service):
            response = test_client.post(
                "/api/workflows/execute",
                json={"trigger_event": "invoice.overdue", "trigger_data": {"invoice": {"id": "i1"}}},
                headers=auth_headers,
            )

        assert response.json()["executed"] == 1


class TestSMSRoutes:

    def test_opt_out(self, test_client, login, admin_user, auth_headers, service):
        login(admin_user)

        with patched("routes.sms.get_sms_provider_service", service):
            response = test_client.post("/api/sms/opt-out", json={"phone": "+15550001111"}, headers=auth_headers)

        assert response.json()["data"] == {"phone": "+15550001111", "opted_out": True}
        service.handle_opt_out.assert_called_once_with("+15550001111", "sms_reply")


class TestProductionRoutes:

    def test_bottleneck_depth_validated(self, test_client, login, admin_user, auth_headers):
        login(admin_user)

        response = test_client.get("/api/production/bottlenecks?depth=deep", headers=auth_headers)

        assert response.status_code == 400


class TestCollectionRoutes:

    def test_viewer_lists_collections(self, test_client, login, viewer_user, auth_headers, service):
        login(viewer_user)
        service.get_all.return_value = [CollectionResponse(id="c1", name="Harbor", designer="Ana")]

        with patched("routes.collections.get_collection_service", service):
            response = test_client.get("/api/collections", headers=auth_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["count"] == 1
        assert body["data"][0]["designer"] == "Ana"
        assert body["data"][0]["display_order"] == 1

    def test_viewer_cannot_create(self, test_client, login, viewer_user, auth_headers):
        login(viewer_user)

        response = test_client.post("/api/collections", json={"name": "Harbor"}, headers=auth_headers)

        assert response.status_code == 403

    def test_create_records_caller_as_designer(self, test_client, login, auth_headers, service):
        manager = login(make_user(UserRole.MANAGER))
        service.create.return_value = CollectionResponse(id="c1", name="Harbor", designer=manager.email)

        with patched("routes.collections.get_collection_service", service):
            response = test_client.post(
                "/api/collections", json={"name": "Harbor", "prefix": "HB"}, headers=auth_headers
            )

        assert response.status_code == 201
        assert service.create.call_args.kwargs["created_by"] == manager.email

    def test_missing_collection_is_404(self, test_client, login, viewer_user, auth_headers, service):
        login(viewer_user)
        service.get_by_id.side_effect = CollectionNotFoundError("c9")

        with patched("routes.collections.get_collection_service", service):
            response = test_client.get("/api/collections/c9", headers=auth_headers)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "COLLECTION_NOT_FOUND"

    def test_delete_needs_delete_permission(self, test_client, login, auth_headers):
        login(make_user(UserRole.MANAGER))

        response = test_client.delete("/api/collections/c1", headers=auth_headers)

        assert response.status_code == 403


class TestDesignBoardRoutes:

    def test_missing_table_lists_empty(self, test_client, login, auth_headers, service):
        login(make_user(UserRole.CONTRACTOR))
        service.list_boards.return_value = ([], False)

        with patched("routes.design_boards.get_design_board_service", service):
            response = test_client.get("/api/design-boards", headers=auth_headers)

        assert response.json() == {"success": True, "data": [], "count": 0, "tableExists": False}

    def test_viewer_has_no_design_access(self, test_client, login, viewer_user, auth_headers):
        login(viewer_user)

        response = test_client.get("/api/design-boards", headers=auth_headers)

        assert response.status_code == 403

    def test_create_board(self, test_client, login, auth_headers, service):
        employee = login(make_user(UserRole.EMPLOYEE))
        service.create_board.return_value = {"id": "b1", "name": "Lobby"}

        with patched("routes.design_boards.get_design_board_service", service):
            response = test_client.post("/api/design-boards", json={"name": "Lobby"}, headers=auth_headers)

        assert response.status_code == 201
        data, user = service.create_board.call_args.args
        assert data.status == "active"
        assert user.id == employee.id

    def test_invite_participant(self, test_client, login, auth_headers, service):
        login(make_user(UserRole.EMPLOYEE))
        service.invite_participant.return_value = {"id": "p1", "user_email": "sam@oak.test", "role": "viewer"}

        with patched("routes.design_boards.get_design_board_service", service):
            response = test_client.post(
                "/api/design-boards/b1/participants", json={"email": "sam@oak.test"}, headers=auth_headers
            )

        assert response.status_code == 201
        board_id, invite = service.invite_participant.call_args.args
        assert board_id == "b1"
        assert invite.role == "viewer"


class TestAnalyticsRoutes:

    def test_report_with_timestamp(self, test_client, login, auth_headers, service):
        login(make_user(UserRole.CLIENT))
        service.get_analytics.return_value = BusinessAnalytics(totalOrders=4, totalRevenue=1200)

        with patched("routes.analytics.get_analytics_service", service):
            response = test_client.get("/api/analytics", headers=auth_headers)

        body = response.json()
        assert response.status_code == 200
        assert body["data"]["totalOrders"] == 4
        assert body["data"]["orderMetrics"]["productionMetrics"]["items_in_production"] == 0
        assert "computed_at" in body

    def test_requires_sign_in(self, test_client, login):
        response = test_client.get("/api/analytics")

        assert response.status_code == 401
