from __future__ import annotations

import unittest
from collections.abc import Generator

from fastapi.testclient import TestClient

from db_support import add_shift, add_user, approver, credit_paid_leave, employee, make_clock, make_session

from hrops.clock import get_clock
from hrops.db import get_db
from hrops.main import app
from hrops.models import AuditLog, LeaveBalance
from hrops.security import require_identity


def _override_get_db(db):
    def _override() -> Generator[object, None, None]:
        yield db

    return _override


class RequestEndpointTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.clock = make_clock()
        self.user = add_user(self.db)
        self.manager = add_user(self.db, "Line Manager")
        add_shift(self.db)
        self.identity = employee(self.user.id)

        app.dependency_overrides[get_db] = _override_get_db(self.db)
        app.dependency_overrides[get_clock] = lambda: self.clock
        app.dependency_overrides[require_identity] = lambda: self.identity
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()
        self.db.close()

    def _act_as_manager(self) -> None:
        self.identity = approver(self.manager.id)

    def test_create_and_approve_day_off(self) -> None:
        credit_paid_leave(self.db, user_id=self.user.id, days=3, clock=self.clock)
        created = self.client.post(
            "/api/requests",
            json={
                "kind": "DAY_OFF",
                "user_id": self.user.id,
                "start_date": "2024-02-15",
                "end_date": "2024-02-16",
                "reason": "Family trip",
            },
        )
        self.assertEqual(created.status_code, 201)
        body = created.json()
        self.assertEqual(body["status"], "PENDING")
        self.assertEqual(body["payload"]["total_days"], 2.0)

        self._act_as_manager()
        approved = self.client.post(f"/api/requests/DAY_OFF/{body['id']}/approve")

        self.assertEqual(approved.status_code, 200)
        result = approved.json()
        self.assertEqual(result["request"]["status"], "APPROVED")
        self.assertEqual(len(result["timesheet_ids"]), 2)
        balance = self.db.query(LeaveBalance).filter_by(user_id=self.user.id).one()
        self.assertEqual(balance.paid_leave_balance, 1)
        actions = [row.action for row in self.db.query(AuditLog).order_by(AuditLog.id).all()]
        self.assertEqual(actions, ["REQUEST_CREATED", "REQUEST_APPROVED"])

    def test_office_remote_work_uses_error_envelope(self) -> None:
        response = self.client.post(
            "/api/requests",
            json={"kind": "REMOTE_WORK", "user_id": self.user.id, "work_date": "2024-02-15", "remote_type": "OFFICE"},
            headers={"X-Request-Id": "req-office"},
        )

        self.assertEqual(response.status_code, 422)
        error = response.json()["error"]
        self.assertEqual(error["code"], "INVALID_INPUT")
        self.assertEqual(error["request_id"], "req-office")

    def test_unknown_kind_fails_validation(self) -> None:
        response = self.client.post(
            "/api/requests",
            json={"kind": "SABBATICAL", "user_id": self.user.id, "work_date": "2024-02-15"},
        )

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json()["error"]["code"], "INVALID_INPUT")

    def test_employee_cannot_file_for_someone_else(self) -> None:
        response = self.client.post(
            "/api/requests",
            json={"kind": "REMOTE_WORK", "user_id": self.manager.id, "work_date": "2024-02-15", "remote_type": "REMOTE"},
        )

        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"]["code"], "UNAUTHORIZED")

    def test_duplicate_request_reports_conflict_date(self) -> None:
        payload = {"kind": "REMOTE_WORK", "user_id": self.user.id, "work_date": "2024-02-15", "remote_type": "REMOTE"}
        self.assertEqual(self.client.post("/api/requests", json=payload).status_code, 201)

        response = self.client.post("/api/requests", json=payload)

        self.assertEqual(response.status_code, 409)
        error = response.json()["error"]
        self.assertEqual(error["code"], "CONFLICT")
        self.assertEqual(error["details"]["conflict_date"], "2024-02-15")

    def test_employee_cannot_approve(self) -> None:
        created = self.client.post(
            "/api/requests",
            json={"kind": "REMOTE_WORK", "user_id": self.user.id, "work_date": "2024-02-15", "remote_type": "REMOTE"},
        ).json()

        response = self.client.post(f"/api/requests/REMOTE_WORK/{created['id']}/approve")

        self.assertEqual(response.status_code, 403)

    def test_reject_then_reject_again_is_invalid_state(self) -> None:
        created = self.client.post(
            "/api/requests",
            json={"kind": "REMOTE_WORK", "user_id": self.user.id, "work_date": "2024-02-15", "remote_type": "REMOTE"},
        ).json()
        self._act_as_manager()

        missing_reason = self.client.post(f"/api/requests/REMOTE_WORK/{created['id']}/reject", json={})
        rejected = self.client.post(
            f"/api/requests/REMOTE_WORK/{created['id']}/reject",
            json={"reason": "Client visit planned"},
        )
        again = self.client.post(
            f"/api/requests/REMOTE_WORK/{created['id']}/reject",
            json={"reason": "Still no"},
        )

        self.assertEqual(missing_reason.status_code, 422)
        self.assertEqual(rejected.status_code, 200)
        self.assertEqual(rejected.json()["request"]["rejected_reason"], "Client visit planned")
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()["error"]["code"], "INVALID_STATE")

    def test_employee_sees_only_own_requests(self) -> None:
        for user_id in (self.user.id, self.manager.id):
            self.identity = employee(user_id)
            self.client.post(
                "/api/requests",
                json={"kind": "REMOTE_WORK", "user_id": user_id, "work_date": "2024-02-15", "remote_type": "REMOTE"},
            )
        self.identity = employee(self.user.id)

        rows = self.client.get("/api/requests").json()

        self.assertEqual([row["user_id"] for row in rows], [self.user.id])

    def test_leave_balance_endpoint(self) -> None:
        credit_paid_leave(self.db, user_id=self.user.id, days=4, clock=self.clock)

        response = self.client.get(f"/api/leave/balance/{self.user.id}")

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["year"], 2024)
        self.assertEqual(body["remaining_paid_days"], 4)

    def test_admin_endpoints_require_approver(self) -> None:
        denied = self.client.put("/api/admin/penalty-rule", json={"minutes_per_block": 15, "amount_per_block": 50000})
        self.assertEqual(denied.status_code, 403)

        self._act_as_manager()
        allowed = self.client.put("/api/admin/penalty-rule", json={"minutes_per_block": 15, "amount_per_block": 50000})

        self.assertEqual(allowed.status_code, 200)
        self.assertTrue(allowed.json()["is_active"])

        logs = self.client.get("/api/admin/audit-logs", params={"action": "PENALTY_RULE_UPDATED"})
        self.assertEqual(logs.status_code, 200)
        self.assertEqual([item["actor_id"] for item in logs.json()], [str(self.manager.id)])


if __name__ == "__main__":
    unittest.main()
