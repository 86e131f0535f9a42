"""
Approval engine tests.

Covers:
  - submit / decide / return / cancel happy paths and refusals
  - one ledger entry per accepted transition, none for refused ones
  - monotonic stage index (only Return moves it back)
  - parked approvals when the next stage has no approver
  - cross-tenant isolation
  - optimistic-lock retry and CONCURRENT_MODIFICATION
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from procurement.core.exceptions import NotFoundError
from procurement.models import db
from procurement.models.approval import ApprovalDecision, ApprovalHistory, ApprovalInstance, ApprovalWorkflow
from procurement.models.requisition import Requisition
from procurement.services import approval_engine as engine
from procurement.utils.errors import E


def _ledger(req):
    return (
        ApprovalHistory.query.filter_by(requisition_id=req.id)
        .order_by(ApprovalHistory.id)
        .all()
    )


def _instance(req):
    return db.session.get(ApprovalInstance, db.session.get(Requisition, req.id).approval_instance_id)


@pytest.fixture()
def req(make_requisition):
    return make_requisition()


@pytest.fixture()
def submitted(org, req):
    view, err = engine.submit(req.id, org.users["requester"].id, org.tenant.id)
    assert err is None
    return req


# ═════════════════════════════════════════════════════════════════════════
# SCENARIOS
# ═════════════════════════════════════════════════════════════════════════

class TestScenarios:
    def test_two_stage_approval(self, org, req):
        """Cost-center head then department manager approve."""
        tid = org.tenant.id
        head, manager = org.users["head"], org.users["manager"]

        view, err = engine.submit(req.id, org.users["requester"].id, tid)
        assert err is None
        assert view["status"] == "in_progress"
        assert view["requisition_status"] == "in_progress"
        assert view["current_stage"] == {"stage": "Cost Center Approval", "stage_order": 0}
        assert [a["user_id"] for a in view["current_approvers"]] == [head.id]

        view, err = engine.decide(req.id, head.id, tid, "approve", "ok")
        assert err is None
        assert view["current_stage"] == {"stage": "Department Approval", "stage_order": 1}
        assert [a["user_id"] for a in view["current_approvers"]] == [manager.id]
        assert len(view["completed_stages"]) == 1
        assert view["completed_stages"][0]["approver"]["user_id"] == head.id
        assert view["completed_stages"][0]["comments"] == "ok"

        view, err = engine.decide(req.id, manager.id, tid, "approve")
        assert err is None
        assert view["is_complete"] is True
        assert view["status"] == "approved"
        assert view["requisition_status"] == "approved"
        assert view["current_stage"] is None
        assert view["current_approvers"] == []
        assert [s["stage_order"] for s in view["completed_stages"]] == [0, 1]

    def test_missing_cost_center_head_blocks_submit(self, org, req):
        org.cost_center.head_id = None
        db.session.commit()

        view, err = engine.submit(req.id, org.users["requester"].id, org.tenant.id)
        assert view is None
        assert err["code"] == E.NO_ELIGIBLE_APPROVER
        assert err["status"] == 422
        assert db.session.get(Requisition, req.id).status == "draft"
        assert db.session.get(Requisition, req.id).approval_instance_id is None
        assert ApprovalInstance.query.count() == 0
        assert _ledger(req) == []

    def test_permission_holder_outside_stage_is_not_eligible(self, org, submitted):
        view, err = engine.decide(submitted.id, org.users["bystander"].id, org.tenant.id, "approve")
        assert view is None
        assert err["code"] == E.NOT_ELIGIBLE_APPROVER
        assert len(_ledger(submitted)) == 1

    def test_return_to_first_stage(self, org, submitted):
        tid = org.tenant.id
        engine.decide(submitted.id, org.users["head"].id, tid, "approve")

        view, err = engine.return_to_stage(submitted.id, org.users["manager"].id, tid, 0, "needs quotes")
        assert err is None
        assert view["current_stage"] == {"stage": "Cost Center Approval", "stage_order": 0}
        assert view["requisition_status"] == "in_progress"
        assert view["completed_stages"] == []

        instance = _instance(submitted)
        assert instance.current_stage_index == 0
        assert [s.status for s in instance.stages] == ["in_progress", "not_started"]
        assert ApprovalDecision.query.count() == 0

        last = _ledger(submitted)[-1]
        assert last.action_type == "returned"
        assert last.stage_order == 0
        assert last.status_from == "in_progress"
        assert last.status_to == "in_progress"
        assert last.comments == "needs quotes"

        # Flow resumes from stage 0
        view, err = engine.decide(submitted.id, org.users["head"].id, tid, "approve")
        assert err is None
        assert view["current_stage"]["stage_order"] == 1


# ═════════════════════════════════════════════════════════════════════════
# SUBMIT
# ═════════════════════════════════════════════════════════════════════════

class TestSubmit:
    def test_submit_writes_one_ledger_entry(self, org, submitted):
        entries = _ledger(submitted)
        assert len(entries) == 1
        e = entries[0]
        assert e.action_type == "submitted"
        assert e.status_from == "draft"
        assert e.status_to == "in_progress"
        assert e.action_by_id == org.users["requester"].id
        assert e.approval_instance_id == _instance(submitted).id

    def test_submit_sets_submitted_at_and_snapshot(self, org, submitted):
        req = db.session.get(Requisition, submitted.id)
        assert req.submitted_at is not None
        instance = _instance(submitted)
        assert instance.stages[0].approver_ids == [org.users["head"].id]
        assert instance.stages[1].approver_ids == []

    def test_submit_twice_is_invalid(self, org, submitted):
        view, err = engine.submit(submitted.id, org.users["requester"].id, org.tenant.id)
        assert err["code"] == E.INVALID_TRANSITION
        assert len(_ledger(submitted)) == 1

    def test_submit_permission_can_be_inherited(self, org, req):
        # approver inherits requester
        view, err = engine.submit(req.id, org.users["head"].id, org.tenant.id)
        assert err is None

    def test_submit_denied_without_permission(self, org, req):
        org.roles["approver"].inherits_from = None
        db.session.commit()
        view, err = engine.submit(req.id, org.users["head"].id, org.tenant.id)
        assert err["code"] == E.PERMISSION_DENIED
        assert _ledger(req) == []

    def test_submit_without_actor(self, org, req):
        view, err = engine.submit(req.id, None, org.tenant.id)
        assert err["code"] == E.NOT_AUTHENTICATED

    def test_submit_with_no_applicable_stage(self, org, make_requisition):
        req = make_requisition(cost_center=False, department=False)
        view, err = engine.submit(req.id, org.users["requester"].id, org.tenant.id)
        assert err["code"] == E.NO_ELIGIBLE_APPROVER

    @pytest.mark.parametrize("stage", [
        {"name": "X", "rule": "nope"},
        {"name": "Pool", "rule": "role_pool"},
    ])
    def test_misconfigured_workflow_is_a_typed_error(self, org, req, stage):
        db.session.add(ApprovalWorkflow(tenant_id=org.tenant.id, name="Broken", stages=[stage]))
        db.session.commit()
        view, err = engine.submit(req.id, org.users["requester"].id, org.tenant.id)
        assert view is None
        assert err["code"] == E.VALIDATION_RULE
        assert err["status"] == 422
        assert err["details"]["stage"] == 0
        assert db.session.get(Requisition, req.id).status == "draft"
        assert db.session.get(Requisition, req.id).approval_instance_id is None
        assert ApprovalInstance.query.count() == 0
        assert _ledger(req) == []

    def test_submit_records_workflow(self, org, req):
        wf = ApprovalWorkflow(
            tenant_id=org.tenant.id, name="Finance only",
            stages=[{"name": "Finance Approval", "rule": "role_pool", "role_code": "finance"}],
        )
        db.session.add(wf)
        db.session.commit()
        view, err = engine.submit(req.id, org.users["requester"].id, org.tenant.id)
        assert err is None
        assert _instance(req).workflow_id == wf.id
        assert view["current_stage"]["stage"] == "Finance Approval"
        assert {a["role"] for a in view["current_approvers"]} == {"finance"}
        assert len(view["current_approvers"]) == 2


# ═════════════════════════════════════════════════════════════════════════
# DECIDE
# ═════════════════════════════════════════════════════════════════════════

class TestDecide:
    def test_action_is_case_insensitive(self, org, submitted):
        view, err = engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "APPROVE")
        assert err is None

    def test_invalid_action(self, org, submitted):
        view, err = engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "maybe")
        assert err["code"] == E.VALIDATION_INVALID
        assert len(_ledger(submitted)) == 1

    def test_reject_closes_instance(self, org, submitted):
        view, err = engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "reject", "too pricey")
        assert err is None
        assert view["status"] == "rejected"
        assert view["requisition_status"] == "rejected"
        assert view["is_complete"] is True
        assert view["completed_stages"][0]["status"] == "rejected"
        assert [e.action_type for e in _ledger(submitted)] == ["submitted", "rejected"]

    def test_decide_on_draft_is_invalid(self, org, req):
        view, err = engine.decide(req.id, org.users["head"].id, org.tenant.id, "approve")
        assert err["code"] == E.INVALID_TRANSITION

    def test_decide_after_completion_is_invalid(self, org, submitted):
        engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "reject")
        view, err = engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        assert err["code"] == E.INVALID_TRANSITION
        assert len(_ledger(submitted)) == 2

    def test_requester_cannot_approve(self, org, submitted):
        view, err = engine.decide(submitted.id, org.users["requester"].id, org.tenant.id, "approve")
        assert err["code"] == E.PERMISSION_DENIED

    def test_head_without_permission_is_denied(self, org, submitted):
        from procurement.services import role_service
        role_service.remove_role(org.tenant.id, org.users["head"].id, "approver")
        view, err = engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        assert err["code"] == E.PERMISSION_DENIED

    def test_admin_still_needs_eligibility(self, org, submitted):
        view, err = engine.decide(submitted.id, org.users["admin"].id, org.tenant.id, "approve")
        assert err["code"] == E.NOT_ELIGIBLE_APPROVER

    def test_same_stage_cannot_be_approved_twice(self, org, submitted):
        tid = org.tenant.id
        assert engine.decide(submitted.id, org.users["head"].id, tid, "approve")[1] is None
        view, err = engine.decide(submitted.id, org.users["head"].id, tid, "approve")
        assert err["code"] == E.NOT_ELIGIBLE_APPROVER
        assert [e.action_type for e in _ledger(submitted)] == ["submitted", "approved"]

    def test_missing_next_approver_parks_requisition(self, org, submitted):
        tid = org.tenant.id
        org.department.manager_id = None
        db.session.commit()
        before = _instance(submitted).version

        view, err = engine.decide(submitted.id, org.users["head"].id, tid, "approve")
        assert err["code"] == E.NO_ELIGIBLE_APPROVER
        instance = _instance(submitted)
        assert instance.current_stage_index == 0
        assert instance.version == before
        assert instance.stages[0].status == "in_progress"
        assert instance.stages[0].decisions == []
        assert len(_ledger(submitted)) == 1

        # Fix the org chart and retry
        org.department.manager_id = org.users["manager"].id
        db.session.commit()
        view, err = engine.decide(submitted.id, org.users["head"].id, tid, "approve")
        assert err is None
        assert view["current_stage"]["stage_order"] == 1

    def test_live_approvers_follow_reassignment(self, org, submitted):
        org.cost_center.head_id = org.users["bystander"].id
        db.session.commit()
        view = engine.get_status(submitted.id, org.tenant.id)
        assert [a["user_id"] for a in view["current_approvers"]] == [org.users["bystander"].id]
        assert engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")[1]["code"] == (
            E.NOT_ELIGIBLE_APPROVER
        )
        assert engine.decide(submitted.id, org.users["bystander"].id, org.tenant.id, "approve")[1] is None

    def test_snapshot_approvers_ignore_reassignment(self, app, org, submitted, monkeypatch):
        monkeypatch.setitem(app.config, "APPROVERS_FOLLOW_ORG_CHANGES", False)
        org.cost_center.head_id = org.users["bystander"].id
        db.session.commit()
        view = engine.get_status(submitted.id, org.tenant.id)
        assert [a["user_id"] for a in view["current_approvers"]] == [org.users["head"].id]
        assert engine.decide(submitted.id, org.users["bystander"].id, org.tenant.id, "approve")[1]["code"] == (
            E.NOT_ELIGIBLE_APPROVER
        )
        assert engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")[1] is None


# ═════════════════════════════════════════════════════════════════════════
# RETURN
# ═════════════════════════════════════════════════════════════════════════

class TestReturn:
    def test_return_to_current_stage_is_invalid(self, org, submitted):
        view, err = engine.return_to_stage(submitted.id, org.users["head"].id, org.tenant.id, 0)
        assert err["code"] == E.INVALID_TRANSITION
        assert len(_ledger(submitted)) == 1

    @pytest.mark.parametrize("order", [-1, 1, 5])
    def test_return_out_of_range(self, org, submitted, order):
        engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        view, err = engine.return_to_stage(submitted.id, org.users["manager"].id, org.tenant.id, order)
        assert err["code"] == E.INVALID_TRANSITION

    def test_return_requires_integer(self, org, submitted):
        view, err = engine.return_to_stage(submitted.id, org.users["manager"].id, org.tenant.id, "0")
        assert err["code"] == E.VALIDATION_INVALID

    def test_return_by_non_approver(self, org, submitted):
        engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        view, err = engine.return_to_stage(submitted.id, org.users["bystander"].id, org.tenant.id, 0)
        assert err["code"] == E.NOT_ELIGIBLE_APPROVER

    def test_return_target_without_approver(self, org, submitted):
        engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        org.cost_center.head_id = None
        db.session.commit()
        view, err = engine.return_to_stage(submitted.id, org.users["manager"].id, org.tenant.id, 0)
        assert err["code"] == E.NO_ELIGIBLE_APPROVER
        assert _instance(submitted).current_stage_index == 1

    def test_stage_index_only_moves_back_on_return(self, org, req):
        db.session.add(ApprovalWorkflow(
            tenant_id=org.tenant.id, name="Three step",
            stages=[
                {"name": "Cost Center Approval", "rule": "cost_center_head"},
                {"name": "Department Approval", "rule": "department_manager"},
                {"name": "Finance Approval", "rule": "role_pool", "role_code": "finance"},
            ],
        ))
        db.session.commit()
        tid = org.tenant.id
        seen = []

        engine.submit(req.id, org.users["requester"].id, tid)
        seen.append(_instance(req).current_stage_index)
        engine.decide(req.id, org.users["head"].id, tid, "approve")
        seen.append(_instance(req).current_stage_index)
        engine.decide(req.id, org.users["manager"].id, tid, "approve")
        seen.append(_instance(req).current_stage_index)
        assert seen == [0, 1, 2]

        view, err = engine.return_to_stage(req.id, org.users["finance_2"].id, tid, 1)
        assert err is None
        instance = _instance(req)
        assert instance.current_stage_index == 1
        assert [s.status for s in instance.stages] == ["approved", "in_progress", "not_started"]
        # stage 0 approval survives a return to stage 1
        assert [s["stage_order"] for s in view["completed_stages"]] == [0]


# ═════════════════════════════════════════════════════════════════════════
# CANCEL & RESUBMIT
# ═════════════════════════════════════════════════════════════════════════

class TestCancel:
    def test_cancel_in_progress(self, org, submitted):
        view, err = engine.cancel(submitted.id, org.users["requester"].id, org.tenant.id)
        assert err is None
        assert view["requisition_status"] == "cancelled"
        assert view["status"] == "cancelled"
        assert view["is_complete"] is True
        last = _ledger(submitted)[-1]
        assert last.action_type == "cancelled"
        assert last.status_from == "in_progress"
        assert last.stage_order == 0

    def test_cancel_draft(self, org, req):
        view, err = engine.cancel(req.id, org.users["requester"].id, org.tenant.id)
        assert err is None
        assert view["requisition_status"] == "cancelled"
        assert view["status"] == "not_started"
        entries = _ledger(req)
        assert len(entries) == 1
        assert entries[0].approval_instance_id is None

    def test_cancel_is_idempotent(self, org, submitted):
        first, err = engine.cancel(submitted.id, org.users["requester"].id, org.tenant.id)
        assert err is None
        second, err = engine.cancel(submitted.id, org.users["requester"].id, org.tenant.id)
        assert err is None
        assert second == first
        assert [e.action_type for e in _ledger(submitted)] == ["submitted", "cancelled"]

    def test_cancel_approved_is_invalid(self, org, submitted):
        tid = org.tenant.id
        engine.decide(submitted.id, org.users["head"].id, tid, "approve")
        engine.decide(submitted.id, org.users["manager"].id, tid, "approve")
        view, err = engine.cancel(submitted.id, org.users["requester"].id, tid)
        assert err["code"] == E.INVALID_TRANSITION

    def test_cancel_requires_permission(self, org, submitted):
        org.roles["approver"].inherits_from = None
        db.session.commit()
        view, err = engine.cancel(submitted.id, org.users["head"].id, org.tenant.id)
        assert err["code"] == E.PERMISSION_DENIED

    def test_resubmit_after_cancel_uses_fresh_instance(self, org, submitted):
        tid = org.tenant.id
        old_instance_id = _instance(submitted).id
        engine.cancel(submitted.id, org.users["requester"].id, tid)

        view, err = engine.submit(submitted.id, org.users["requester"].id, tid)
        assert err is None
        new_instance = _instance(submitted)
        assert new_instance.id != old_instance_id
        assert new_instance.current_stage_index == 0
        assert view["completed_stages"] == []
        assert db.session.get(ApprovalInstance, old_instance_id).status == "cancelled"

    def test_resubmit_after_reject(self, org, submitted):
        tid = org.tenant.id
        engine.decide(submitted.id, org.users["head"].id, tid, "reject")
        view, err = engine.submit(submitted.id, org.users["requester"].id, tid)
        assert err is None
        assert view["status"] == "in_progress"
        assert view["completed_stages"] == []
        assert [e.action_type for e in _ledger(submitted)] == ["submitted", "rejected", "submitted"]
        assert _ledger(submitted)[-1].status_from == "rejected"


# ═════════════════════════════════════════════════════════════════════════
# TENANT ISOLATION & READS
# ═════════════════════════════════════════════════════════════════════════

class TestTenantIsolation:
    def test_foreign_tenant_sees_not_found(self, org, other_org, submitted):
        view, err = engine.decide(submitted.id, other_org.users["head"].id, other_org.tenant.id, "approve")
        assert err["code"] == E.NOT_FOUND
        view, err = engine.cancel(submitted.id, other_org.users["requester"].id, other_org.tenant.id)
        assert err["code"] == E.NOT_FOUND
        with pytest.raises(NotFoundError):
            engine.get_status(submitted.id, other_org.tenant.id)

    def test_actor_from_other_tenant(self, org, other_org, submitted):
        view, err = engine.decide(submitted.id, other_org.users["head"].id, org.tenant.id, "approve")
        assert err["code"] == E.NOT_FOUND
        assert len(_ledger(submitted)) == 1


class TestPending:
    def test_pending_lists_current_stage_only(self, org, make_requisition):
        tid = org.tenant.id
        a = make_requisition()
        b = make_requisition()
        engine.submit(a.id, org.users["requester"].id, tid)
        engine.submit(b.id, org.users["requester"].id, tid)
        engine.decide(b.id, org.users["head"].id, tid, "approve")

        head_pending = engine.list_pending_for_approver(org.users["head"].id, tid)
        assert [p["requisition_id"] for p in head_pending] == [a.id]
        manager_pending = engine.list_pending_for_approver(org.users["manager"].id, tid)
        assert [p["requisition_id"] for p in manager_pending] == [b.id]
        assert manager_pending[0]["requisition"]["requisition_number"] == b.requisition_number

    def test_pending_empty_without_permission(self, org, submitted):
        assert engine.list_pending_for_approver(org.users["requester"].id, org.tenant.id) == []

    def test_status_of_unsubmitted_requisition(self, org, req):
        view = engine.get_status(req.id, org.tenant.id)
        assert view == {
            "requisition_id": req.id,
            "requisition_status": "draft",
            "status": "not_started",
            "current_stage": None,
            "current_approvers": [],
            "completed_stages": [],
            "is_complete": False,
        }


# ═════════════════════════════════════════════════════════════════════════
# CONCURRENCY
# ═════════════════════════════════════════════════════════════════════════

class TestOptimisticLocking:
    def test_persistent_conflict_surfaces_concurrent_modification(self, app, org, submitted, monkeypatch):
        calls = {"n": 0}

        def _stale_commit():
            calls["n"] += 1
            raise StaleDataError("approval_instances row changed underneath")

        monkeypatch.setattr(db.session, "commit", _stale_commit)
        view, err = engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        monkeypatch.undo()

        assert view is None
        assert err["code"] == E.CONCURRENT_MODIFICATION
        assert err["status"] == 409
        assert calls["n"] == app.config["APPROVAL_MAX_ATTEMPTS"]
        assert _instance(submitted).current_stage_index == 0
        assert len(_ledger(submitted)) == 1

    def test_transient_conflict_is_retried(self, org, submitted, monkeypatch):
        real_commit = db.session.commit
        calls = {"n": 0}

        def _flaky_commit():
            calls["n"] += 1
            if calls["n"] == 1:
                raise StaleDataError("lost the first race")
            return real_commit()

        monkeypatch.setattr(db.session, "commit", _flaky_commit)
        view, err = engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        monkeypatch.undo()

        assert err is None
        assert calls["n"] == 2
        assert view["current_stage"]["stage_order"] == 1
        assert [e.action_type for e in _ledger(submitted)] == ["submitted", "approved"]

    def test_version_advances_on_every_transition(self, org, submitted):
        v0 = _instance(submitted).version
        engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        v1 = _instance(submitted).version
        engine.return_to_stage(submitted.id, org.users["manager"].id, org.tenant.id, 0)
        v2 = _instance(submitted).version
        assert v0 < v1 < v2

    def test_requisition_version_advances_on_every_transition(self, org, req):
        tid = org.tenant.id
        versions = [db.session.get(Requisition, req.id).version]
        engine.submit(req.id, org.users["requester"].id, tid)
        versions.append(db.session.get(Requisition, req.id).version)
        engine.decide(req.id, org.users["head"].id, tid, "approve")
        versions.append(db.session.get(Requisition, req.id).version)
        engine.cancel(req.id, org.users["requester"].id, tid)
        versions.append(db.session.get(Requisition, req.id).version)
        assert versions == sorted(set(versions))

    def test_cancel_of_draft_also_checks_requisition_version(self, org, req, monkeypatch):
        calls = {"n": 0}

        def _stale_commit():
            calls["n"] += 1
            raise StaleDataError("requisitions row changed underneath")

        monkeypatch.setattr(db.session, "commit", _stale_commit)
        view, err = engine.cancel(req.id, org.users["requester"].id, org.tenant.id)
        monkeypatch.undo()
        assert err["code"] == E.CONCURRENT_MODIFICATION
        assert db.session.get(Requisition, req.id).status == "draft"
        assert _ledger(req) == []


class TestRequisitionLocks:
    def test_lock_is_shared_per_requisition(self):
        with engine._requisition_lock(1, 10):
            entry = engine._requisition_locks[(1, 10)]
            assert entry[0].locked()
            with engine._requisition_lock(1, 11), engine._requisition_lock(2, 10):
                assert set(engine._requisition_locks) == {(1, 10), (1, 11), (2, 10)}

    def test_lock_entries_are_evicted(self, org, submitted):
        engine.decide(submitted.id, org.users["head"].id, org.tenant.id, "approve")
        engine.cancel(submitted.id, org.users["requester"].id, org.tenant.id)
        assert engine._requisition_locks == {}

    def test_lock_released_when_transition_raises(self):
        with pytest.raises(RuntimeError):
            with engine._requisition_lock(3, 30):
                raise RuntimeError("boom")
        assert (3, 30) not in engine._requisition_locks
        with engine._requisition_lock(3, 30):
            pass
