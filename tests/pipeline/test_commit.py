"""Tests for the bulk commit orchestrator."""

import asyncio

from bulklist.analysis.validation import PRICE_REQUIRED, TITLE_REQUIRED
from bulklist.models import Batch, CommitMode, GroupStatus, ListingData
from bulklist.pipeline import SaveResult
from bulklist.pipeline.commit import BulkCommitOrchestrator, apply_commit


def _titled(make_group, listing_data, *titles):
    return [make_group(data=listing_data.replace(title=title)) for title in titles]


def test_partial_failure_reports_counts(make_group, listing_data, saver):
    """N eligible with M failing should report N - M successes."""
    groups = _titled(make_group, listing_data, "A", "B", "C", "D", "E")
    saver.fail_titles = {"B", "D"}

    result = asyncio.run(BulkCommitOrchestrator(saver).run(groups, CommitMode.ACTIVE))

    assert [call["data"].title for call in saver.calls] == ["A", "B", "C", "D", "E"]
    assert result.attempted == 5
    assert result.succeeded == 3
    assert result.success
    assert result.message == "3 of 5 succeeded"
    assert set(result.listing_ids) == {groups[0].id, groups[2].id, groups[4].id}
    assert [f.name for f in result.failures] == [groups[1].name, groups[3].name]
    assert result.failures[0].reasons == ["Could not save B"]


def test_saver_exception_is_isolated(make_group, listing_data):
    """A raising saver fails one item only."""
    calls = []

    async def flaky(data, cost, mode, existing_id=None):
        calls.append(data.title)
        if data.title == "A":
            raise ConnectionError("database unavailable")
        return SaveResult(success=True, listing_id="ok")

    groups = _titled(make_group, listing_data, "A", "B")
    result = asyncio.run(BulkCommitOrchestrator(flaky).run(groups, CommitMode.ACTIVE))

    assert calls == ["A", "B"]
    assert result.succeeded == 1
    assert result.failures[0].reasons == ["database unavailable"]


def test_no_eligible_items_fails_fast(make_group, saver):
    """Nothing is saved when no group passes the gate."""
    groups = [make_group(data=ListingData(title="", price=0.0), shipped=False)]

    result = asyncio.run(BulkCommitOrchestrator(saver).run(groups, CommitMode.ACTIVE))

    assert saver.calls == []
    assert not result.success
    assert result.no_eligible_items
    assert TITLE_REQUIRED in result.message
    assert PRICE_REQUIRED in result.message
    assert result.skipped[0].group_id == groups[0].id


def test_all_failed_message_differs(make_group, listing_data, saver):
    """All items failing is reported differently from none eligible."""
    groups = _titled(make_group, listing_data, "A", "B")
    saver.fail_titles = {"A", "B"}

    result = asyncio.run(BulkCommitOrchestrator(saver).run(groups, CommitMode.ACTIVE))

    assert not result.success
    assert result.message == "All 2 items failed to save"


def test_ineligible_and_posted_groups_are_skipped(make_group, listing_data, saver):
    """Only eligible, unposted groups are attempted."""
    ready = make_group()
    posted = make_group(is_posted=True, listing_id="old")
    unshipped = make_group(shipped=False)

    result = asyncio.run(
        BulkCommitOrchestrator(saver).run([ready, posted, unshipped], CommitMode.ACTIVE)
    )

    assert result.attempted == 1
    assert {s.group_id for s in result.skipped} == {posted.id, unshipped.id}


def test_save_arguments(make_group, listing_data, saver):
    """Photos, shipping cost, mode and existing id are passed through."""
    shipped = make_group(photos=["1.jpg", "2.jpg"], listing_id="draft-7")
    unshipped = make_group(shipped=False)

    asyncio.run(
        BulkCommitOrchestrator(saver, default_draft_shipping_cost=4.5).run(
            [shipped, unshipped], CommitMode.DRAFT
        )
    )

    first, second = saver.calls
    assert first["data"].photos == ["1.jpg", "2.jpg"]
    assert first["shipping_cost"] == shipped.selected_shipping.cost
    assert first["existing_id"] == "draft-7"
    assert first["mode"] == CommitMode.DRAFT
    assert second["shipping_cost"] == 4.5
    assert second["existing_id"] is None


def test_progress_callback(make_group, listing_data, saver):
    """Progress is reported after every attempted item."""
    groups = _titled(make_group, listing_data, "A", "B")
    saver.fail_titles = {"A"}
    seen = []

    asyncio.run(
        BulkCommitOrchestrator(saver).run(
            groups, CommitMode.ACTIVE, on_progress=lambda *args: seen.append(args)
        )
    )

    assert seen == [(1, 2, groups[0].id, False), (2, 2, groups[1].id, True)]


def test_apply_commit_marks_only_successes(make_group, listing_data, saver):
    """Exactly the saved groups become posted."""
    groups = _titled(make_group, listing_data, "A", "B", "C")
    saver.fail_titles = {"B"}
    batch = Batch(groups=groups)

    result = asyncio.run(BulkCommitOrchestrator(saver).run(groups, CommitMode.ACTIVE))
    batch = apply_commit(batch, result)

    assert [g.is_posted for g in batch.groups] == [True, False, True]
    assert batch.groups[0].listing_id == result.listing_ids[groups[0].id]
    assert batch.groups[1].status == GroupStatus.COMPLETED


def test_apply_draft_commit_records_listing_id(make_group, saver):
    """Drafts remember their listing id without being posted."""
    group = make_group(shipped=False)
    batch = Batch(groups=[group])

    result = asyncio.run(BulkCommitOrchestrator(saver).run([group], CommitMode.DRAFT))
    batch = apply_commit(batch, result)

    assert not batch.groups[0].is_posted
    assert batch.groups[0].listing_id == "listing-1"
    assert batch.groups[0].status_message == "Saved as draft"


def test_failing_progress_callback_does_not_abort(make_group, listing_data, saver):
    """Every eligible item is still saved when the progress display raises."""
    groups = _titled(make_group, listing_data, "A", "B", "C")

    def on_progress(*args):
        raise RuntimeError("terminal closed")

    result = asyncio.run(
        BulkCommitOrchestrator(saver).run(
            groups, CommitMode.ACTIVE, on_progress=on_progress
        )
    )

    assert len(saver.calls) == 3
    assert result.succeeded == 3
    assert set(result.listing_ids) == {g.id for g in groups}


def test_apply_commit_tolerates_group_rejected_during_commit(
    make_group, listing_data, saver
):
    """A group rejected while saving keeps its listing id; others are posted."""
    groups = _titled(make_group, listing_data, "A", "B", "C")
    result = asyncio.run(BulkCommitOrchestrator(saver).run(groups, CommitMode.ACTIVE))

    rejected = groups[1].replace(
        status=GroupStatus.ERROR, status_message="Rejected during review"
    )
    batch = Batch(groups=[groups[0], rejected, groups[2]])
    batch = apply_commit(batch, result)

    assert [g.is_posted for g in batch.groups] == [True, False, True]
    assert batch.groups[1].status == GroupStatus.ERROR
    assert batch.groups[1].listing_id == result.listing_ids[groups[1].id]
    assert batch.groups[1].status_message == "Rejected during review"
