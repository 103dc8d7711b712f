"""
Unit tests for EscrowRecord entity.

Tests record construction rules, role lookup and serialization.

Usage:
    pytest greffier/tests/unit/domain/test_escrow_record.py
"""

import pytest

from greffier.domain.entities.escrow_record import (
    EscrowRecord,
    EscrowRole,
    same_account,
)

BUYER = "0xAbC0000000000000000000000000000000000001"
SELLER = "0xDeF0000000000000000000000000000000000002"
ARBITER = "0x1230000000000000000000000000000000000003"


class TestEscrowRecord:
    """Unit tests for EscrowRecord."""

    # ================================================================
    # Helper Methods
    # ================================================================

    def _record(self, **overrides) -> EscrowRecord:
        data = dict(
            id="7",
            buyer=BUYER,
            seller=SELLER,
            arbiter=ARBITER,
            amount="1.5",
        )
        data.update(overrides)
        return EscrowRecord(**data)

    # ================================================================
    # Construction
    # ================================================================

    def test_id_is_stringified(self):
        """Test integer ids of any width become strings."""
        record = EscrowRecord(id=2**80)
        assert record.id == str(2**80)

    def test_empty_id_rejected(self):
        """Test record without id is rejected."""
        with pytest.raises(ValueError, match="id is required"):
            EscrowRecord(id="")

    def test_placeholder_and_error_rejected(self):
        """Test a record cannot be placeholder and error at once."""
        with pytest.raises(ValueError, match="both placeholder and error"):
            EscrowRecord(id="1", placeholder=True, error=True)

    def test_placeholder_factory(self):
        """Test placeholder carries only its id."""
        record = EscrowRecord.placeholder_for(5)
        assert record.id == "5"
        assert record.placeholder is True
        assert record.error is False
        assert record.is_populated is False
        assert record.is_active is False

    def test_failed_factory(self):
        """Test error marker carries only its id."""
        record = EscrowRecord.failed("9")
        assert record.error is True
        assert record.placeholder is False
        assert record.is_populated is False

    def test_active_excludes_disbursed(self):
        """Test disbursed records are populated but not active."""
        record = self._record(funds_disbursed=True)
        assert record.is_populated is True
        assert record.is_active is False

    # ================================================================
    # Roles
    # ================================================================

    def test_roles_case_insensitive(self):
        """Test role lookup ignores address case."""
        record = self._record()
        assert record.roles_of(BUYER.lower()) == [EscrowRole.BUYER]
        assert record.roles_of(SELLER.upper()) == [EscrowRole.SELLER]
        assert record.involves(ARBITER.lower()) is True

    def test_multiple_roles(self):
        """Test an address holding two roles reports both."""
        record = self._record(arbiter=BUYER)
        assert record.roles_of(BUYER) == [EscrowRole.BUYER, EscrowRole.ARBITER]

    def test_unrelated_address(self):
        """Test an outsider holds no role."""
        record = self._record()
        assert record.roles_of("0x9999") == []
        assert record.involves("0x9999") is False

    def test_same_account_rejects_empty(self):
        """Test empty identifiers never match."""
        assert same_account("", "") is False
        assert same_account("0xab", "0xAB") is True

    # ================================================================
    # Ordering and serialization
    # ================================================================

    def test_sort_key_numeric(self):
        """Test ids order numerically, not lexically."""
        ids = ["10", "9", "100"]
        ordered = sorted((EscrowRecord(id=i) for i in ids), key=lambda r: r.sort_key)
        assert [r.id for r in ordered] == ["9", "10", "100"]

    def test_with_changes_returns_copy(self):
        """Test with_changes leaves the original untouched."""
        record = self._record()
        changed = record.with_changes(dispute_raised=True)
        assert changed.dispute_raised is True
        assert record.dispute_raised is False

    def test_to_dict(self):
        """Test camelCase serialization."""
        data = self._record(dispute_raised=True).to_dict()
        assert data == {
            "id": "7",
            "buyer": BUYER,
            "seller": SELLER,
            "arbiter": ARBITER,
            "amount": "1.5",
            "fundsDisbursed": False,
            "disputeRaised": True,
        }

    def test_to_dict_flags_placeholder(self):
        """Test placeholder flag appears only when set."""
        assert EscrowRecord.placeholder_for("3").to_dict()["placeholder"] is True
        assert "placeholder" not in self._record().to_dict()
