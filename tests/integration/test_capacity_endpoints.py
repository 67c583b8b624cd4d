from fastapi.testclient import TestClient

from app.models import MemberSubscription


class TestCapacityEndpoints:
    """Тесты для лимитов локаций и продажи абонементов"""

    def test_set_and_read_location_limit(self, client: TestClient, auth_headers, test_member, test_location):
        response = client.put(
            f"/capacity/locations/{test_location.id}",
            json={"max_active_members": 1, "hard_limit_enforced": True},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["status"] == "BLOCK_NEW"

        status_response = client.get(f"/capacity/locations/{test_location.id}", headers=auth_headers)
        assert status_response.json()["active_count"] == 1

    def test_member_sees_status_only(self, client: TestClient, member_headers, test_location):
        response = client.get(f"/capacity/locations/{test_location.id}", headers=member_headers)

        assert response.status_code == 200
        assert response.json() == {"status": "NO_LIMIT"}

    def test_staff_cannot_set_limits(self, client: TestClient, staff_headers, test_location):
        response = client.put(
            f"/capacity/locations/{test_location.id}", json={"max_active_members": 10}, headers=staff_headers
        )

        assert response.status_code == 403

    def test_plan_limit_lifecycle(self, client: TestClient, auth_headers, test_plan, test_location):
        url = f"/capacity/plans/{test_plan.id}/locations/{test_location.id}"

        created = client.put(url, json={"max_active_members": 5, "soft_limit_threshold": 4}, headers=auth_headers)
        deleted = client.delete(url, headers=auth_headers)
        after = client.get(url, headers=auth_headers)

        assert created.status_code == 200
        assert deleted.status_code == 204
        assert after.json()["status"] == "NO_LIMIT"

    def test_invalid_threshold(self, client: TestClient, auth_headers, test_location):
        response = client.put(
            f"/capacity/locations/{test_location.id}",
            json={"max_active_members": 5, "soft_limit_threshold": 6},
            headers=auth_headers,
        )

        assert response.status_code == 422


class TestMembershipEndpoints:
    def test_enroll_blocked_by_hard_limit(
        self, client: TestClient, auth_headers, create_member, test_member, test_location, test_plan
    ):
        client.put(
            f"/capacity/locations/{test_location.id}",
            json={"max_active_members": 1, "hard_limit_enforced": True},
            headers=auth_headers,
        )
        newcomer = create_member(access_state=None)

        response = client.post(
            "/memberships/",
            json={"member_id": newcomer.id, "plan_id": test_plan.id, "location_id": test_location.id},
            headers=auth_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "CAPACITY_BLOCKED"

    def test_enroll(self, client: TestClient, auth_headers, create_member, test_location, test_plan):
        newcomer = create_member(access_state=None)

        response = client.post(
            "/memberships/",
            json={"member_id": newcomer.id, "plan_id": test_plan.id, "location_id": test_location.id},
            headers=auth_headers,
        )

        assert response.status_code == 201
        assert response.json()["subscription"]["access_state"] == "active"
        assert response.json()["capacity_warning"] is False

    def test_access_state_requires_api_key(self, client: TestClient, auth_headers, db_session, test_member):
        subscription = db_session.query(MemberSubscription).filter(MemberSubscription.member_id == test_member.id).one()

        response = client.put(
            f"/memberships/{subscription.id}/access-state", json={"access_state": "restricted"}, headers=auth_headers
        )

        assert response.status_code == 403

    def test_access_state_update(self, client: TestClient, api_key_headers, db_session, test_member):
        subscription = db_session.query(MemberSubscription).filter(MemberSubscription.member_id == test_member.id).one()

        response = client.put(
            f"/memberships/{subscription.id}/access-state",
            json={"access_state": "restricted"},
            headers=api_key_headers,
        )

        assert response.status_code == 200
        assert response.json()["subscription"]["access_state"] == "restricted"
        assert response.json()["removed_waitlist_entry_ids"] == []
