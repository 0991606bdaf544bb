"""End-to-end API flows for EITs and supervisors (F6)."""

from accreda.core.catalog import skill_id_for


def _connect(client, signup):
    """Sign up an EIT and a supervisor and link them. Returns both headers."""
    eit_headers, _ = signup()
    sup_headers, _ = signup("sam@sup.test", "supervisor", "Sam Lee")
    response = client.post(
        "/api/connections", json={"supervisor_email": "sam@sup.test"}, headers=eit_headers
    )
    relationship_id = response.json()["relationship"]["id"]
    client.post(f"/api/connections/{relationship_id}/accept", headers=sup_headers)
    return eit_headers, sup_headers


class TestDashboardAndSkills:
    def test_new_eit_starts_at_zero(self, client, signup):
        headers, _ = signup()
        data = client.get("/api/dashboard/progress", headers=headers).json()
        assert data["overall_progress"] == 0
        assert data["total_skills"] == 22

    def test_skill_tree_is_seeded(self, client, signup):
        headers, _ = signup()
        data = client.get("/api/skills", headers=headers).json()
        assert len(data["categories"]) == 6
        assert data["completed"] == 0

    def test_ranking_a_skill_updates_progress(self, client, signup):
        headers, _ = signup()
        client.get("/api/dashboard/progress", headers=headers)

        response = client.put(
            f"/api/skills/{skill_id_for('1.1')}/rank", json={"rank": 4}, headers=headers
        )
        assert response.status_code == 200
        assert response.json()["completed"] is True

        data = client.get("/api/dashboard/progress", headers=headers).json()
        assert data["completed_skills"] == 1
        # 1/22 / 3 = 1.5% rounds up
        assert data["overall_progress"] == 2

    def test_rank_out_of_range(self, client, signup):
        headers, _ = signup()
        response = client.put(
            f"/api/skills/{skill_id_for('1.1')}/rank", json={"rank": 7}, headers=headers
        )
        assert response.status_code == 422

    def test_unknown_skill(self, client, signup):
        headers, _ = signup()
        response = client.put("/api/skills/skill-9.9/rank", json={"rank": 1}, headers=headers)
        assert response.status_code == 404


class TestConnectionFlow:
    def test_request_accept_and_notify(self, client, signup):
        eit_headers, _ = signup()
        sup_headers, _ = signup("sam@sup.test", "supervisor", "Sam Lee")

        sent = client.post(
            "/api/connections", json={"supervisor_email": "sam@sup.test"}, headers=eit_headers
        ).json()
        assert sent["status"] == "sent"
        assert sent["supervisor_name"] == "Sam Lee"

        pending = client.get("/api/connections/pending", headers=sup_headers).json()
        assert [p["id"] for p in pending] == [sent["relationship"]["id"]]

        notes = client.get("/api/notifications", headers=sup_headers).json()
        assert notes["unread_count"] == 1
        assert notes["notifications"][0]["title"] == "New EIT Connection Request"

        accepted = client.post(
            f"/api/connections/{sent['relationship']['id']}/accept", headers=sup_headers
        )
        assert accepted.json()["status"] == "active"

        supervisor = client.get("/api/connections/supervisor", headers=eit_headers).json()
        assert supervisor["full_name"] == "Sam Lee"
        eits = client.get("/api/connections/eits", headers=sup_headers).json()
        assert [e["full_name"] for e in eits] == ["Alex Doe"]

    def test_unknown_supervisor_reported_in_status(self, client, signup):
        headers, _ = signup()
        data = client.post(
            "/api/connections", json={"supervisor_email": "ghost@sup.test"}, headers=headers
        ).json()
        assert data["status"] == "supervisor_not_found"
        assert data["relationship"] is None

    def test_accept_twice_conflicts(self, client, signup):
        eit_headers, _ = signup()
        sup_headers, _ = signup("sam@sup.test", "supervisor", "Sam Lee")
        sent = client.post(
            "/api/connections", json={"supervisor_email": "sam@sup.test"}, headers=eit_headers
        ).json()
        rel_id = sent["relationship"]["id"]

        client.post(f"/api/connections/{rel_id}/accept", headers=sup_headers)
        response = client.post(f"/api/connections/{rel_id}/deny", headers=sup_headers)

        assert response.status_code == 409

    def test_unknown_relationship(self, client, signup):
        headers, _ = signup("sam@sup.test", "supervisor", "Sam Lee")
        assert client.post("/api/connections/missing/accept", headers=headers).status_code == 404

    def test_either_party_can_complete(self, client, signup):
        eit_headers, sup_headers = _connect(client, signup)
        relationship = client.get("/api/connections/active", headers=eit_headers).json()
        assert relationship["status"] == "active"

        outsider, _ = signup("eve@eit.test", "eit", "Eve")
        response = client.post(
            f"/api/connections/{relationship['id']}/complete", headers=outsider
        )
        assert response.status_code == 404

        response = client.post(
            f"/api/connections/{relationship['id']}/complete", headers=eit_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"
        assert client.get("/api/connections/active", headers=eit_headers).json() is None

        again = client.post(
            f"/api/connections/{relationship['id']}/complete", headers=sup_headers
        )
        assert again.status_code == 409

    def test_accept_over_eit_allowance_conflicts(self, client, signup):
        eit_headers, _ = signup()
        sam, _ = signup("sam@sup.test", "supervisor", "Sam Lee")
        kim, _ = signup("kim@sup.test", "supervisor", "Kim Park")
        first = client.post(
            "/api/connections", json={"supervisor_email": "sam@sup.test"}, headers=eit_headers
        ).json()
        second = client.post(
            "/api/connections", json={"supervisor_email": "kim@sup.test"}, headers=eit_headers
        ).json()

        client.post(f"/api/connections/{first['relationship']['id']}/accept", headers=sam)
        response = client.post(
            f"/api/connections/{second['relationship']['id']}/accept", headers=kim
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Connection limit reached for this plan"


class TestNotifications:
    def test_read_and_read_all(self, client, signup):
        eit_headers, sup_headers = _connect(client, signup)
        notes = client.get("/api/notifications", headers=eit_headers).json()
        assert notes["unread_count"] == 1
        note_id = notes["notifications"][0]["id"]

        read = client.post(f"/api/notifications/{note_id}/read", headers=eit_headers).json()
        assert read["unread_count"] == 0

        marked = client.post("/api/notifications/read-all", headers=sup_headers).json()
        assert marked == {"marked": 1, "unread_count": 0}

    def test_unknown_notification(self, client, signup):
        headers, _ = signup()
        assert client.post("/api/notifications/missing/read", headers=headers).status_code == 404


class TestExperiences:
    def test_document_and_approve(self, client, signup):
        eit_headers, sup_headers = _connect(client, signup)
        created = client.post(
            "/api/experiences",
            json={"title": "Commissioning", "is_documented": True},
            headers=eit_headers,
        )
        assert created.status_code == 201
        exp_id = created.json()["id"]

        approved = client.post(f"/api/experiences/{exp_id}/approve", headers=sup_headers)
        assert approved.json()["supervisor_approved"] is True

        progress = client.get("/api/dashboard/progress", headers=eit_headers).json()
        assert progress["documented_experiences"] == 1
        assert progress["supervisor_approvals"] == 1

    def test_unlinked_supervisor_cannot_approve(self, client, signup):
        eit_headers, _ = signup()
        sup_headers, _ = signup("sam@sup.test", "supervisor", "Sam Lee")
        exp_id = client.post(
            "/api/experiences", json={"title": "Commissioning"}, headers=eit_headers
        ).json()["id"]

        response = client.post(f"/api/experiences/{exp_id}/approve", headers=sup_headers)

        assert response.status_code == 403


class TestSaos:
    def test_create_list_delete(self, client, signup):
        headers, _ = signup()
        created = client.post(
            "/api/saos",
            json={"title": "Pump retrofit", "skill_ids": [skill_id_for("1.1")]},
            headers=headers,
        )
        assert created.status_code == 201
        sao_id = created.json()["id"]

        assert [s["id"] for s in client.get("/api/saos", headers=headers).json()] == [sao_id]
        assert client.delete(f"/api/saos/{sao_id}", headers=headers).status_code == 204
        assert client.delete(f"/api/saos/{sao_id}", headers=headers).status_code == 404

    def test_limit_conflict(self, client, signup):
        headers, _ = signup()
        for i in range(5):
            client.post("/api/saos", json={"title": f"SAO {i}"}, headers=headers)

        response = client.post("/api/saos", json={"title": "Sixth"}, headers=headers)

        assert response.status_code == 409

    def test_validator_invite(self, client, signup, functions):
        headers, _ = signup()
        response = client.post(
            "/api/saos/validators",
            json={"skill_id": skill_id_for("1.1"), "first_name": "Val", "email": "val@x.test"},
            headers=headers,
        )
        assert response.status_code == 201
        assert "send-validator" in functions.names()


class TestSettings:
    def test_profile_and_timeline(self, client, signup):
        headers, _ = signup()
        profile = client.patch(
            "/api/settings/profile", json={"organization": "ACME"}, headers=headers
        ).json()
        assert profile["organization"] == "ACME"

        timeline = client.put(
            "/api/settings/timeline",
            json={"start_date": "2024-01-01", "target_date": "2028-01-01"},
            headers=headers,
        ).json()
        assert timeline["target_date"] == "2028-01-01"

    def test_bad_timeline(self, client, signup):
        headers, _ = signup()
        response = client.put(
            "/api/settings/timeline",
            json={"start_date": "2028-01-01", "target_date": "2024-01-01"},
            headers=headers,
        )
        assert response.status_code == 400

    def test_subscription_and_checkout(self, client, signup, functions):
        functions.responses["create-checkout-session"] = (200, {"url": "https://pay.test/c"})
        headers, _ = signup()

        assert client.get("/api/settings/subscription", headers=headers).json()["tier"] == "free"
        response = client.post(
            "/api/settings/subscription/checkout", json={"tier": "pro"}, headers=headers
        )
        assert response.json() == {"url": "https://pay.test/c"}

    def test_checkout_failure_is_bad_gateway(self, client, signup, functions):
        functions.responses["create-checkout-session"] = (500, {})
        headers, _ = signup()
        response = client.post(
            "/api/settings/subscription/checkout", json={"tier": "pro"}, headers=headers
        )
        assert response.status_code == 502

    def test_avatar_upload(self, client, signup):
        headers, _ = signup()
        response = client.post(
            "/api/settings/avatar",
            files={"file": ("me.png", b"\x89PNG data", "image/png")},
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json()["avatar_url"].endswith("/avatar.png")

    def test_delete_account(self, client, signup):
        headers, _ = signup()
        response = client.delete("/api/settings/account", headers=headers)
        assert response.status_code == 200
        assert response.json()["deleted_rows"] > 0
        assert client.get("/api/auth/session", headers=headers).status_code == 401


class TestExport:
    def test_missing_template(self, client, signup):
        headers, _ = signup()
        response = client.get("/api/export/csaw", headers=headers)
        assert response.status_code == 422
        assert response.json()["detail"] == "CSAW export could not be generated"


class TestReviews:
    def _link(self, client, signup):
        eit_headers, eit = signup()
        sup_headers, supervisor = signup("sam@sup.test", "supervisor", "Sam Lee")
        sent = client.post(
            "/api/connections", json={"supervisor_email": "sam@sup.test"}, headers=eit_headers
        ).json()
        client.post(f"/api/connections/{sent['relationship']['id']}/accept", headers=sup_headers)
        return eit_headers, eit["user_id"], sup_headers, supervisor["user_id"]

    def test_supervisor_scores_skill(self, client, signup):
        eit_headers, eit_id, sup_headers, _ = self._link(client, signup)

        response = client.post(
            "/api/reviews/skills",
            json={"eit_id": eit_id, "skill_id": skill_id_for("1.1"), "score": 5},
            headers=sup_headers,
        )
        assert response.status_code == 201

        scores = client.get("/api/reviews/skills", headers=eit_headers).json()
        assert [s["score"] for s in scores] == [5]
        notes = client.get("/api/notifications", headers=eit_headers).json()
        assert notes["notifications"][0]["title"] == "New Skill Score"

    def test_score_out_of_range(self, client, signup):
        _, eit_id, sup_headers, _ = self._link(client, signup)
        response = client.post(
            "/api/reviews/skills",
            json={"eit_id": eit_id, "skill_id": skill_id_for("1.1"), "score": 9},
            headers=sup_headers,
        )
        assert response.status_code == 422

    def test_unlinked_supervisor_cannot_score(self, client, signup):
        _, eit = signup()
        sup_headers, _ = signup("sam@sup.test", "supervisor", "Sam Lee")
        response = client.post(
            "/api/reviews/skills",
            json={"eit_id": eit["user_id"], "skill_id": skill_id_for("1.1"), "score": 3},
            headers=sup_headers,
        )
        assert response.status_code == 403

    def test_sao_feedback_round_trip(self, client, signup):
        eit_headers, _, sup_headers, _ = self._link(client, signup)
        sao_id = client.post(
            "/api/saos", json={"title": "Pump retrofit"}, headers=eit_headers
        ).json()["id"]

        requested = client.post(
            f"/api/reviews/saos/{sao_id}/feedback-request", headers=eit_headers
        )
        assert requested.status_code == 201
        pending = client.get(
            "/api/reviews/feedback", params={"status": "pending"}, headers=sup_headers
        ).json()
        assert [p["sao_id"] for p in pending] == [sao_id]

        submitted = client.post(
            f"/api/reviews/feedback/{pending[0]['id']}",
            json={"feedback": "Quantify the savings", "score": 4},
            headers=sup_headers,
        )
        assert submitted.json()["status"] == "submitted"

        feedback = client.get(f"/api/reviews/saos/{sao_id}/feedback", headers=eit_headers).json()
        assert feedback[0]["feedback"] == "Quantify the savings"
        assert feedback[0]["score"] == 4

        resolved = client.post(
            f"/api/reviews/feedback/{pending[0]['id']}/resolve", headers=sup_headers
        )
        assert resolved.json()["status"] == "resolved"

    def test_unknown_sao_and_feedback(self, client, signup):
        eit_headers, _, sup_headers, _ = self._link(client, signup)
        response = client.post("/api/reviews/saos/missing/feedback-request", headers=eit_headers)
        assert response.status_code == 404
        response = client.post(
            "/api/reviews/feedback/missing", json={"feedback": "Hi"}, headers=sup_headers
        )
        assert response.status_code == 404

    def test_nudge(self, client, signup):
        eit_headers, eit_id, sup_headers, supervisor_id = self._link(client, signup)

        response = client.post(
            "/api/reviews/nudge", json={"user_id": supervisor_id}, headers=eit_headers
        )
        assert response.status_code == 204

        notes = client.get("/api/notifications", headers=sup_headers).json()
        assert notes["notifications"][0]["title"] == "You have been nudged!"

    def test_nudge_stranger_is_forbidden(self, client, signup):
        eit_headers, _ = signup()
        _, stranger = signup("sam@sup.test", "supervisor", "Sam Lee")
        response = client.post(
            "/api/reviews/nudge", json={"user_id": stranger["user_id"]}, headers=eit_headers
        )
        assert response.status_code == 403
