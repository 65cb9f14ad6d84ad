"""Cancellation consent protocol tests (service layer).

Covers:
- Either party may open a request on a SIGNED contract
- Only the other party confirms / rejects; the requester may withdraw
- AlreadyRequested for a repeated request by the same party
- Reason length validation and structural-only writes (no new version)
"""
import pytest

from contract_engine.config import settings
from contract_engine.exceptions import (
    ActorNotAllowed,
    AlreadyRequested,
    InvalidTransition,
    SelfConfirmationForbidden,
    ValidationError,
)
from contract_engine.models.contract import ActorRole, ContractStatus
from contract_engine.models.contract_transition import ContractTransition, Operation
from contract_engine.models.contract_version import ContractVersion
from contract_engine.services import consent, contract_service

OWNER = ActorRole.owner
COUNTERPARTY = ActorRole.counterparty
REASON = "client moved the wedding abroad"


def _signed(db, subject_id="booking-1"):
    contract = contract_service.generate_contract(db, subject_id, OWNER, "studio-1", content="Terms")
    contract_service.publish_contract(db, contract.contract_id, OWNER, "studio-1")
    return contract_service.sign_contract(db, contract.contract_id, COUNTERPARTY, "client-7")


class TestRequestCancellation:

    @pytest.mark.parametrize("actor,expected", [
        (OWNER, ContractStatus.cancellation_requested_by_owner),
        (COUNTERPARTY, ContractStatus.cancellation_requested_by_counterparty),
    ])
    def test_either_party_may_request(self, db, actor, expected):
        contract = _signed(db)
        result = consent.request_cancellation(db, contract.contract_id, actor, REASON, "someone")
        assert result.status == expected
        assert result.cancellation_requested_by == actor
        assert result.cancellation_reason == REASON
        assert result.cancellation_requested_at is not None

    def test_no_new_version(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, OWNER, REASON)
        assert contract.current_version == 1
        assert db.query(ContractVersion).filter_by(contract_id=contract.contract_id).count() == 1

    def test_reason_too_short(self, db):
        contract = _signed(db)
        with pytest.raises(ValidationError) as exc_info:
            consent.request_cancellation(db, contract.contract_id, OWNER, "  short   ")
        assert exc_info.value.current_status == "SIGNED"
        db.refresh(contract)
        assert contract.status == ContractStatus.signed

    def test_reason_minimum_is_inclusive(self, db):
        contract = _signed(db)
        reason = "x" * settings.CANCELLATION_REASON_MIN_LENGTH
        assert consent.request_cancellation(db, contract.contract_id, OWNER, reason).cancellation_reason == reason

    def test_same_party_twice(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, OWNER, REASON)
        with pytest.raises(AlreadyRequested) as exc_info:
            consent.request_cancellation(db, contract.contract_id, OWNER, REASON)
        assert exc_info.value.status_code == 409

    def test_other_party_must_answer_instead(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, OWNER, REASON)
        with pytest.raises(InvalidTransition):
            consent.request_cancellation(db, contract.contract_id, COUNTERPARTY, REASON)

    def test_unsigned_contract(self, db):
        contract = contract_service.generate_contract(db, "booking-2", OWNER, content="Terms")
        with pytest.raises(InvalidTransition):
            consent.request_cancellation(db, contract.contract_id, OWNER, REASON)


class TestAnswerRequest:

    def test_confirm_by_other_party(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, COUNTERPARTY, REASON)
        result = consent.confirm_cancellation(db, contract.contract_id, OWNER, "studio-1")
        assert result.status == ContractStatus.cancelled
        assert result.cancelled_at is not None
        assert result.signed_at is not None
        assert result.cancellation_reason == REASON

    @pytest.mark.parametrize("answer", [consent.confirm_cancellation, consent.reject_cancellation])
    @pytest.mark.parametrize("requester", [OWNER, COUNTERPARTY])
    def test_requester_cannot_answer(self, db, answer, requester):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, requester, REASON)
        with pytest.raises(SelfConfirmationForbidden):
            answer(db, contract.contract_id, requester)
        db.refresh(contract)
        assert contract.status != ContractStatus.cancelled

    def test_reject_clears_request(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, OWNER, REASON)
        result = consent.reject_cancellation(db, contract.contract_id, COUNTERPARTY)
        assert result.status == ContractStatus.signed
        assert result.cancellation_reason is None
        assert result.cancellation_requested_by is None
        assert result.cancellation_requested_at is None
        # A fresh request is legal again
        again = consent.request_cancellation(db, contract.contract_id, OWNER, REASON)
        assert again.status == ContractStatus.cancellation_requested_by_owner

    def test_confirm_without_request(self, db):
        contract = _signed(db)
        with pytest.raises(InvalidTransition):
            consent.confirm_cancellation(db, contract.contract_id, COUNTERPARTY)


class TestWithdraw:

    def test_requester_withdraws(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, COUNTERPARTY, REASON)
        result = consent.withdraw_cancellation(db, contract.contract_id, COUNTERPARTY, "client-7")
        assert result.status == ContractStatus.signed
        assert result.cancellation_requested_by is None

    def test_other_party_cannot_withdraw(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, COUNTERPARTY, REASON)
        with pytest.raises(ActorNotAllowed):
            consent.withdraw_cancellation(db, contract.contract_id, OWNER)


class TestLedger:

    def test_handshake_recorded(self, db):
        contract = _signed(db)
        consent.request_cancellation(db, contract.contract_id, OWNER, REASON, "studio-1")
        consent.confirm_cancellation(db, contract.contract_id, COUNTERPARTY, "client-7")
        entries = contract_service.list_transitions(db, contract.contract_id)
        assert [e.operation for e in entries] == [
            Operation.generate, Operation.publish, Operation.sign,
            Operation.request_cancel, Operation.confirm_cancel,
        ]
        assert [e.sequence for e in entries] == [1, 2, 3, 4, 5]
        last = entries[-1]
        assert last.from_status == "CANCELLATION_REQUESTED_BY_OWNER"
        assert last.to_status == "CANCELLED"
        assert last.actor_role == COUNTERPARTY
        assert last.actor_id == "client-7"
        assert last.from_version == last.to_version == 1
        assert db.query(ContractTransition).count() == 5
