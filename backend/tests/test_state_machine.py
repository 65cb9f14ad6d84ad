"""Transition table tests — pure, no database.

Covers:
- Every legal (status, operation, actor) triple and its target
- Read-only once signed: edit / regenerate / delete rejected
- Wrong party in the right state → ActorNotAllowed (still an InvalidTransition)
- Error context: current status + attempted operation
"""
import pytest

from contract_engine.exceptions import ActorNotAllowed, InvalidTransition
from contract_engine.models.contract import ActorRole, ContractStatus
from contract_engine.models.contract_transition import Operation
from contract_engine.services import state_machine

OWNER = ActorRole.owner
COUNTERPARTY = ActorRole.counterparty
S = ContractStatus


LEGAL = [
    (S.draft, Operation.edit, OWNER, S.draft),
    (S.draft, Operation.regenerate, OWNER, S.draft),
    (S.draft, Operation.publish, OWNER, S.published),
    (S.draft, Operation.delete, OWNER, None),
    (S.published, Operation.edit, OWNER, S.published),
    (S.published, Operation.delete, OWNER, None),
    (S.published, Operation.sign, COUNTERPARTY, S.signed),
    (S.signed, Operation.request_cancel, OWNER, S.cancellation_requested_by_owner),
    (S.signed, Operation.request_cancel, COUNTERPARTY, S.cancellation_requested_by_counterparty),
    (S.cancellation_requested_by_owner, Operation.confirm_cancel, COUNTERPARTY, S.cancelled),
    (S.cancellation_requested_by_owner, Operation.reject_cancel, COUNTERPARTY, S.signed),
    (S.cancellation_requested_by_owner, Operation.withdraw_cancel, OWNER, S.signed),
    (S.cancellation_requested_by_counterparty, Operation.confirm_cancel, OWNER, S.cancelled),
    (S.cancellation_requested_by_counterparty, Operation.reject_cancel, OWNER, S.signed),
    (S.cancellation_requested_by_counterparty, Operation.withdraw_cancel, COUNTERPARTY, S.signed),
]


class TestLegalTransitions:
    """The table accepts exactly the documented moves."""

    @pytest.mark.parametrize("status,operation,actor,target", LEGAL)
    def test_resolves_target(self, status, operation, actor, target):
        assert state_machine.resolve_transition(status, operation, actor) == target

    def test_generate_is_owner_only(self):
        assert state_machine.check_generate(OWNER) == S.draft
        with pytest.raises(ActorNotAllowed):
            state_machine.check_generate(COUNTERPARTY)

    def test_cancelled_is_terminal(self):
        assert state_machine.allowed_operations(S.cancelled) == []

    def test_allowed_operations_per_actor(self):
        assert state_machine.allowed_operations(S.published, COUNTERPARTY) == [Operation.sign]
        assert set(state_machine.allowed_operations(S.published, OWNER)) == {
            Operation.edit, Operation.regenerate, Operation.delete,
        }


class TestReadOnlyOnceSigned:
    """SIGNED and later states reject content and delete operations."""

    @pytest.mark.parametrize("status", [
        S.signed, S.cancelled, S.cancellation_requested_by_owner, S.cancellation_requested_by_counterparty,
    ])
    @pytest.mark.parametrize("operation", [Operation.edit, Operation.regenerate, Operation.delete])
    @pytest.mark.parametrize("actor", [OWNER, COUNTERPARTY])
    def test_rejected(self, status, operation, actor):
        with pytest.raises(InvalidTransition) as exc_info:
            state_machine.resolve_transition(status, operation, actor)
        assert not isinstance(exc_info.value, ActorNotAllowed)
        assert "read-only" in exc_info.value.message

    def test_error_carries_context(self):
        with pytest.raises(InvalidTransition) as exc_info:
            state_machine.resolve_transition(S.signed, Operation.edit, OWNER)
        detail = exc_info.value.to_detail()
        assert detail["current_status"] == "SIGNED"
        assert detail["operation"] == "edit"
        assert detail["error"] == "invalid_transition"


class TestIllegalMoves:
    """Unlisted moves fail with InvalidTransition; wrong party fails with ActorNotAllowed."""

    def test_sign_draft(self):
        with pytest.raises(InvalidTransition) as exc_info:
            state_machine.resolve_transition(S.draft, Operation.sign, COUNTERPARTY)
        assert "publish" in exc_info.value.message

    def test_publish_twice(self):
        with pytest.raises(InvalidTransition):
            state_machine.resolve_transition(S.published, Operation.publish, OWNER)

    def test_request_cancel_before_signature(self):
        with pytest.raises(InvalidTransition):
            state_machine.resolve_transition(S.published, Operation.request_cancel, OWNER)

    def test_owner_cannot_sign(self):
        with pytest.raises(ActorNotAllowed) as exc_info:
            state_machine.resolve_transition(S.published, Operation.sign, OWNER)
        assert exc_info.value.status_code == 403
        assert isinstance(exc_info.value, InvalidTransition)

    def test_counterparty_cannot_edit(self):
        with pytest.raises(ActorNotAllowed):
            state_machine.resolve_transition(S.draft, Operation.edit, COUNTERPARTY)

    def test_requester_cannot_confirm_in_table(self):
        with pytest.raises(ActorNotAllowed):
            state_machine.resolve_transition(S.cancellation_requested_by_owner, Operation.confirm_cancel, OWNER)

    def test_other_party_cannot_withdraw(self):
        with pytest.raises(ActorNotAllowed):
            state_machine.resolve_transition(
                S.cancellation_requested_by_owner, Operation.withdraw_cancel, COUNTERPARTY,
            )

    def test_other_party(self):
        assert state_machine.other_party(OWNER) == COUNTERPARTY
        assert state_machine.other_party(COUNTERPARTY) == OWNER
