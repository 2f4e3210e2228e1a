"""Tests for the batches API."""

from typing import Any, Dict, List

from fastapi.testclient import TestClient

BASE = "/api/batches"


def _create(client: TestClient, photos: List[str]) -> str:
    response = client.post(BASE, json={"photos": photos})
    assert response.status_code == 201
    return response.json()["batch"]["id"]


def _groups(client: TestClient, batch_id: str) -> List[Dict[str, Any]]:
    return client.get(f"{BASE}/{batch_id}").json()["batch"]["groups"]


def _to_shipping(client: TestClient, photos: List[str]) -> str:
    batch_id = _create(client, photos)
    client.post(f"{BASE}/{batch_id}/grouping")
    client.post(f"{BASE}/{batch_id}/confirm")
    return batch_id


def test_health(client):
    """Health check should answer."""
    assert client.get("/health").json() == {"status": "healthy"}


class TestBatchLifecycle:
    """Tests for creating, reading and finishing batches."""

    def test_create_and_get(self, client, upload, batch_registry):
        """Created batches are registered and readable."""
        batch_id = _create(client, upload)

        data = client.get(f"{BASE}/{batch_id}").json()

        assert data["batch"]["stage"] == "upload"
        assert data["batch"]["photos"] == upload
        assert data["progress"]["total"] == 0
        assert batch_registry.batch_ids() == [batch_id]
        assert client.get(BASE).json() == {"batch_ids": [batch_id]}

    def test_unknown_batch(self, client):
        """Unknown batches return 404."""
        response = client.get(f"{BASE}/missing")

        assert response.status_code == 404
        assert response.json()["detail"] == "Batch not found"

    def test_wrong_stage_is_conflict(self, client, upload):
        """Stage errors map to 409."""
        batch_id = _create(client, upload)

        response = client.post(f"{BASE}/{batch_id}/confirm")

        assert response.status_code == 409
        assert "expected grouping" in response.json()["detail"]

    def test_finished_batch_refuses_operations(self, client, upload):
        """A finished batch stays readable but refuses changes."""
        batch_id = _create(client, upload)

        finished = client.post(f"{BASE}/{batch_id}/finish")
        assert finished.json()["batch"]["is_closed"] is True

        assert client.post(f"{BASE}/{batch_id}/grouping").status_code == 409
        assert client.get(f"{BASE}/{batch_id}").status_code == 200


class TestGrouping:
    """Tests for grouping endpoints."""

    def test_grouping_operations(self, client, upload):
        """Groups can be created, renamed, split and merged."""
        batch_id = _create(client, upload)
        grouped = client.post(f"{BASE}/{batch_id}/grouping").json()
        groups = grouped["batch"]["groups"]
        assert grouped["batch"]["stage"] == "grouping"
        assert len(groups) == 3

        renamed = client.patch(
            f"{BASE}/{batch_id}/groups/{groups[0]['id']}", json={"name": "Teapot"}
        )
        assert renamed.json()["batch"]["groups"][0]["name"] == "Teapot"

        split = client.post(f"{BASE}/{batch_id}/groups/{groups[1]['id']}/split")
        assert len(split.json()["batch"]["groups"]) == 4

        created = client.post(f"{BASE}/{batch_id}/groups", json={"name": "Spare"})
        assert created.status_code == 201
        assert created.json()["batch"]["groups"][-1]["name"] == "Spare"

        merged = client.post(
            f"{BASE}/{batch_id}/groups/merge",
            json={"group_ids": [groups[0]["id"], groups[2]["id"]]},
        )
        assert merged.json()["batch"]["groups"][0]["photos"] == [
            "upload_1.jpg",
            "upload_2.jpg",
            "upload_5.jpg",
            "upload_6.jpg",
        ]

    def test_refused_operations_are_conflicts(self, client, upload):
        """Operations that change nothing return 409."""
        batch_id = _create(client, upload)
        groups = client.post(f"{BASE}/{batch_id}/grouping").json()["batch"]["groups"]

        merge = client.post(
            f"{BASE}/{batch_id}/groups/merge", json={"group_ids": [groups[0]["id"]]}
        )
        delete = client.delete(f"{BASE}/{batch_id}/groups/missing")
        move = client.post(
            f"{BASE}/{batch_id}/groups/move",
            json={
                "source_id": groups[0]["id"],
                "target_id": groups[1]["id"],
                "photo_index": 9,
            },
        )

        assert merge.status_code == 409
        assert delete.status_code == 409
        assert move.status_code == 409


class TestProcessingAndShipping:
    """Tests for processing, editing and shipping endpoints."""

    def test_confirm_runs_processing(self, client, upload):
        """Confirmation enriches every group and prepares shipping."""
        batch_id = _to_shipping(client, upload)

        progress = client.get(f"{BASE}/{batch_id}/progress").json()
        groups = _groups(client, batch_id)

        assert progress["stage"] == "shipping"
        assert progress["progress"]["completed"] == 3
        assert progress["progress"]["percent"] == 100
        assert all(g["status"] == "completed" for g in groups)
        assert all(g["selected_shipping"]["id"] == "usps-ground" for g in groups)

    def test_retry_failed_group(self, client, upload, enricher):
        """A failed group can be retried after the cause is fixed."""
        enricher.results["upload_3.jpg"] = RuntimeError("vision service down")
        batch_id = _to_shipping(client, upload)
        failed = _groups(client, batch_id)[1]
        assert failed["status"] == "error"

        del enricher.results["upload_3.jpg"]
        response = client.post(f"{BASE}/{batch_id}/groups/{failed['id']}/retry")

        assert response.json()["batch"]["groups"][1]["status"] == "completed"

    def test_edit_listing(self, client, upload):
        """Listing edits are applied to the group."""
        batch_id = _to_shipping(client, upload)
        group_id = _groups(client, batch_id)[0]["id"]

        response = client.patch(
            f"{BASE}/{batch_id}/groups/{group_id}/listing",
            json={"changes": {"title": "Blue Vase", "price": 35}},
        )

        data = response.json()["batch"]["groups"][0]["listing_data"]
        assert data["title"] == "Blue Vase"
        assert data["price"] == 35.0

    def test_invalid_edit_is_unprocessable(self, client, upload):
        """Edits that do not form valid listing data return 422."""
        batch_id = _to_shipping(client, upload)
        group_id = _groups(client, batch_id)[0]["id"]
        url = f"{BASE}/{batch_id}/groups/{group_id}/listing"

        price = client.patch(url, json={"changes": {"price": "abc"}})
        weight = client.patch(url, json={"changes": {"measurements": {"weight": -1}}})

        assert price.status_code == 422
        assert "price" in price.json()["detail"]
        assert weight.status_code == 422
        assert _groups(client, batch_id)[0]["listing_data"]["price"] == 20.0

    def test_unknown_group_is_not_found(self, client, upload):
        """Operations on unknown groups return 404."""
        batch_id = _to_shipping(client, upload)

        edit = client.patch(
            f"{BASE}/{batch_id}/groups/missing/listing", json={"changes": {"title": "x"}}
        )
        retry = client.post(f"{BASE}/{batch_id}/groups/missing/retry")

        assert edit.status_code == 404
        assert retry.status_code == 404

    def test_shipping_selection(self, client, upload):
        """Shipping can be selected per group or applied in bulk."""
        batch_id = _to_shipping(client, upload)
        group_id = _groups(client, batch_id)[0]["id"]
        url = f"{BASE}/{batch_id}/groups/{group_id}/shipping"

        pickup = client.put(url, json={"option_id": "local-pickup"})
        again = client.put(url, json={"option_id": "local-pickup"})
        unknown = client.put(url, json={"option_id": "teleport"})

        assert pickup.json()["batch"]["groups"][0]["selected_shipping"]["id"] == (
            "local-pickup"
        )
        assert again.status_code == 200
        assert unknown.status_code == 409

        applied = client.post(
            f"{BASE}/{batch_id}/shipping/apply",
            json={"option_id": "usps-priority", "min_price": 10},
        ).json()
        assert applied["updated"] == 3

        review = client.post(f"{BASE}/{batch_id}/shipping/complete")
        assert review.json()["batch"]["stage"] == "review"


class TestReviewAndCommit:
    """Tests for review navigation and commits."""

    def test_review_and_commit(self, client, upload, saver):
        """Review edits feed into the commit; rejected groups are skipped."""
        batch_id = _to_shipping(client, upload)
        client.post(f"{BASE}/{batch_id}/shipping/complete")
        groups = _groups(client, batch_id)

        opened = client.post(f"{BASE}/{batch_id}/review/open", json={"index": 0}).json()
        assert opened["stage"] == "individual-review"
        assert opened["group"]["id"] == groups[0]["id"]

        approved = client.post(
            f"{BASE}/{batch_id}/review/approve",
            json={"changes": {"title": "Edited Title"}},
        ).json()
        assert approved["group"]["id"] == groups[1]["id"]

        rejected = client.post(
            f"{BASE}/{batch_id}/review/reject", json={"reason": "Duplicate item"}
        ).json()
        assert rejected["review_index"] == 2

        finished = client.post(f"{BASE}/{batch_id}/review/next").json()
        assert finished["stage"] == "review"
        assert finished["group"] is None

        result = client.post(f"{BASE}/{batch_id}/commit", json={"mode": "active"}).json()

        assert result["success"] is True
        assert result["attempted"] == 2
        assert result["message"] == "2 of 2 succeeded"
        assert result["skipped"][0]["group_id"] == groups[1]["id"]
        assert saver.calls[0]["data"].title == "Edited Title"

        draft = client.post(
            f"{BASE}/{batch_id}/groups/{groups[1]['id']}/commit", json={"mode": "draft"}
        ).json()
        assert draft["succeeded"] == 1

        posted = [g["is_posted"] for g in _groups(client, batch_id)]
        assert posted == [True, False, True]

    def test_open_out_of_range(self, client, upload):
        """Opening a missing index is a conflict."""
        batch_id = _to_shipping(client, upload)
        client.post(f"{BASE}/{batch_id}/shipping/complete")

        response = client.post(f"{BASE}/{batch_id}/review/open", json={"index": 10})

        assert response.status_code == 409

    def test_commit_with_nothing_eligible(self, client, upload, enricher):
        """A commit without eligible groups reports why."""
        for photo in ("upload_1.jpg", "upload_3.jpg", "upload_5.jpg"):
            enricher.results[photo] = None
        batch_id = _to_shipping(client, upload)
        client.post(f"{BASE}/{batch_id}/shipping/complete")

        result = client.post(f"{BASE}/{batch_id}/commit", json={"mode": "active"}).json()

        assert result["success"] is False
        assert result["attempted"] == 0
        assert result["message"].startswith("No items are ready to post")
