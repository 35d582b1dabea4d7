"""Tests for the payout run state machine declaration."""

import pytest

from agency_kernel.domain.workflow import Transition, Workflow
from agency_services.reconciliation_service import PAYOUT_RUN_WORKFLOW


class TestPayoutRunWorkflow:

    def test_declared_transitions(self):
        assert PAYOUT_RUN_WORKFLOW.initial_state == "draft"
        assert PAYOUT_RUN_WORKFLOW.actions_from("draft") == ("lock",)
        assert set(PAYOUT_RUN_WORKFLOW.actions_from("locked")) == {"unlock", "mark_paid"}
        assert PAYOUT_RUN_WORKFLOW.actions_from("paid") == ()

    def test_find_transition(self):
        transition = PAYOUT_RUN_WORKFLOW.find_transition("locked", "mark_paid")
        assert transition is not None
        assert transition.to_state == "paid"
        assert PAYOUT_RUN_WORKFLOW.find_transition("draft", "mark_paid") is None

    def test_unknown_state_rejected(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", "go"),),
            )
