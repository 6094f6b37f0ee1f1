"""
Tests for the Wallet facade.

Covers:
  - End-to-end transfers through an InMemoryLedger
  - Spend budget consumption modes
  - Top-ups to the owner
  - Ownership transfer
  - Failed moves and budget restoration
  - Concurrency: the wallet lock linearizes budget consumption
"""

import threading
from decimal import Decimal

import pytest

from custodian.clock import ManualClock
from custodian.config import CustodianConfig
from custodian.constants import ZERO_ADDRESS
from custodian.crypto.address import normalize_address
from custodian.exceptions import (
    InvalidAmountError,
    InvalidPayloadError,
    LimitExceededError,
    TransferFailedError,
    UnauthorizedError,
    UnpricedAssetError,
)
from custodian.policy.events import AuditAction
from custodian.roles import Roles
from custodian.wallet import InMemoryLedger, StaticRateTable, Wallet
from custodian.wallet.authorizer import UnpricedAssetPolicy


WALLET = "0x" + "99" * 20
OWNER = "0x" + "11" * 20
CONTROLLER = "0x" + "22" * 20
STRANGER = "0x" + "33" * 20
TRUSTED = "0x" + "aa" * 20
PAYEE = "0x" + "bb" * 20
TOKEN = "0x" + "77" * 20

FUNDS = 10 ** 6


# ══════════════════════════════════════════════════════════════════════
#  FIXTURES
# ══════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock():
    return ManualClock(1_700_000_000)


@pytest.fixture
def ledger():
    book = InMemoryLedger(WALLET)
    book.credit(WALLET, None, FUNDS)
    book.credit(WALLET, TOKEN, FUNDS)
    return book


def make_wallet(ledger, clock, **kwargs):
    roles = Roles(OWNER, [CONTROLLER], transferable=kwargs.pop("transferable", False))
    wallet = Wallet(
        WALLET, roles, ledger,
        StaticRateTable({TOKEN: Decimal("0.5")}),
        clock=clock, min_top_up=1, max_top_up=500,
        **kwargs,
    )
    wallet.initialize_spend_limit(OWNER, 100)
    wallet.initialize_whitelist(OWNER, [TRUSTED])
    return wallet


@pytest.fixture
def wallet(ledger, clock):
    return make_wallet(ledger, clock)


@pytest.fixture
def consuming_wallet(ledger, clock):
    return make_wallet(ledger, clock, consume_spend_limit=True)


# ══════════════════════════════════════════════════════════════════════
#  1. TRANSFERS
# ══════════════════════════════════════════════════════════════════════

class TestTransfer:

    def test_moves_funds(self, wallet, ledger):
        decision = wallet.transfer(OWNER, PAYEE, 40)
        assert decision.accepted
        assert ledger.balance_of(PAYEE) == 40
        assert ledger.balance_of(WALLET) == FUNDS - 40

    def test_owner_only(self, wallet, ledger):
        for caller in (CONTROLLER, STRANGER):
            with pytest.raises(UnauthorizedError):
                wallet.transfer(caller, PAYEE, 1)
        assert ledger.balance_of(PAYEE) == 0

    def test_zero_destination(self, wallet):
        with pytest.raises(InvalidPayloadError):
            wallet.transfer(OWNER, ZERO_ADDRESS, 1)

    def test_malformed_destination(self, wallet):
        with pytest.raises(InvalidPayloadError):
            wallet.transfer(OWNER, "0xnothex", 1)

    def test_zero_amount(self, wallet):
        with pytest.raises(InvalidAmountError):
            wallet.transfer(OWNER, TRUSTED, 0)

    def test_limit_scenario(self, wallet, ledger):
        wallet.submit_spend_limit(OWNER, 60)
        wallet.confirm_spend_limit(CONTROLLER, 60)
        assert wallet.spend_available == 60

        with pytest.raises(LimitExceededError):
            wallet.transfer(OWNER, PAYEE, 70)
        assert ledger.balance_of(PAYEE) == 0

        wallet.transfer(OWNER, PAYEE, 60)
        assert ledger.balance_of(PAYEE) == 60

    def test_whitelisted_unlimited(self, wallet, ledger):
        wallet.transfer(OWNER, TRUSTED, 5000)
        assert ledger.balance_of(TRUSTED) == 5000
        assert wallet.spend_available == 100

    def test_token_transfer(self, wallet, ledger):
        wallet.transfer(OWNER, PAYEE, 200, TOKEN)
        assert ledger.balance_of(PAYEE, TOKEN) == 200
        with pytest.raises(LimitExceededError):
            wallet.transfer(OWNER, PAYEE, 202, TOKEN)

    def test_unpriced_token(self, wallet):
        with pytest.raises(UnpricedAssetError):
            wallet.transfer(OWNER, PAYEE, 10, "0x" + "78" * 20)

    def test_symbol_asset_rejected_not_raised(self, wallet, ledger):
        decision = wallet.authorize(PAYEE, 10, "DAI")
        assert not decision
        with pytest.raises(UnpricedAssetError):
            wallet.transfer(OWNER, PAYEE, 10, "DAI")
        assert ledger.balance_of(PAYEE, "DAI") == 0

    def test_symbol_asset_to_trusted_payee(self, wallet, ledger):
        ledger.credit(WALLET, "DAI", 30)
        wallet.transfer(OWNER, TRUSTED, 30, "DAI")
        assert ledger.balance_of(TRUSTED, "DAI") == 30
        assert ledger.balance_of(WALLET, "DAI") == 0

    def test_unpriced_token_allowed(self, ledger, clock):
        permissive = make_wallet(ledger, clock, unpriced_policy=UnpricedAssetPolicy.ALLOW)
        other = "0x" + "78" * 20
        ledger.credit(WALLET, other, 10)
        assert permissive.transfer(OWNER, PAYEE, 10, other).unprotected

    def test_audit_event(self, wallet):
        wallet.transfer(OWNER, PAYEE, 40)
        event = wallet.audit.last
        assert event.name == "transfer/executed"
        assert event.actor == normalize_address(OWNER)
        assert event.value["to"] == normalize_address(PAYEE)
        assert event.value["amount"] == "40"
        assert event.to_dict()["value"]["whitelisted"] is False

    def test_dry_run(self, wallet, ledger):
        assert wallet.authorize(PAYEE, 100).accepted
        assert not wallet.authorize(PAYEE, 101).accepted
        assert ledger.balance_of(PAYEE) == 0


# ══════════════════════════════════════════════════════════════════════
#  2. SPEND CONSUMPTION MODES
# ══════════════════════════════════════════════════════════════════════

class TestSpendConsumption:

    def test_default_does_not_deduct(self, wallet):
        # Each transfer is checked against the full window
        wallet.transfer(OWNER, PAYEE, 60)
        wallet.transfer(OWNER, PAYEE, 60)
        assert wallet.spend_available == 100

    def test_consuming_mode_deducts(self, consuming_wallet, ledger):
        consuming_wallet.transfer(OWNER, PAYEE, 60)
        assert consuming_wallet.spend_available == 40
        with pytest.raises(LimitExceededError):
            consuming_wallet.transfer(OWNER, PAYEE, 60)
        assert ledger.balance_of(PAYEE) == 60

    def test_consuming_mode_deducts_budget_units(self, consuming_wallet):
        consuming_wallet.transfer(OWNER, PAYEE, 100, TOKEN)
        assert consuming_wallet.spend_available == 50

    def test_consuming_mode_skips_whitelisted(self, consuming_wallet):
        consuming_wallet.transfer(OWNER, TRUSTED, 500)
        assert consuming_wallet.spend_available == 100

    def test_budget_renews(self, consuming_wallet, clock):
        consuming_wallet.transfer(OWNER, PAYEE, 100)
        clock.advance_days(1)
        clock.advance(1)
        consuming_wallet.transfer(OWNER, PAYEE, 100)
        assert consuming_wallet.spend_available == 0

    def test_failed_move_restores_budget(self, clock):
        empty = InMemoryLedger(WALLET)
        wallet = make_wallet(empty, clock, consume_spend_limit=True)
        with pytest.raises(TransferFailedError):
            wallet.transfer(OWNER, PAYEE, 50)
        assert wallet.spend_available == 100
        assert wallet.audit.filter(subject="transfer") == []


# ══════════════════════════════════════════════════════════════════════
#  3. TOP-UP
# ══════════════════════════════════════════════════════════════════════

class TestTopUp:

    def test_default_limit_is_max(self, wallet):
        assert wallet.top_up_available == 500

    def test_scenario(self, wallet, ledger):
        wallet.initialize_top_up_limit(OWNER, 200)
        assert wallet.top_up(OWNER, 50) == 150
        with pytest.raises(LimitExceededError):
            wallet.top_up(OWNER, 160)
        assert wallet.top_up_available == 150
        assert ledger.balance_of(OWNER) == 50

    def test_initialize_after_top_up_cannot_refill(self, wallet, ledger):
        wallet.top_up(OWNER, 400)
        wallet.initialize_top_up_limit(OWNER, 200)
        assert wallet.top_up_available == 100
        with pytest.raises(LimitExceededError):
            wallet.top_up(OWNER, 200)
        wallet.top_up(OWNER, 100)
        # Never more than max_top_up in one window
        assert ledger.balance_of(OWNER) == 500

    def test_controller_may_top_up(self, wallet, ledger):
        wallet.top_up(CONTROLLER, 10)
        assert ledger.balance_of(OWNER) == 10
        assert ledger.balance_of(CONTROLLER) == 0

    def test_stranger_rejected(self, wallet):
        with pytest.raises(UnauthorizedError):
            wallet.top_up(STRANGER, 10)
        assert wallet.top_up_available == 500

    def test_zero_rejected(self, wallet):
        with pytest.raises(InvalidAmountError):
            wallet.top_up(OWNER, 0)

    def test_failed_move_restores(self, clock):
        wallet = make_wallet(InMemoryLedger(WALLET), clock)
        with pytest.raises(TransferFailedError):
            wallet.top_up(OWNER, 10)
        assert wallet.top_up_available == 500

    def test_limit_change_flow(self, wallet):
        wallet.initialize_top_up_limit(OWNER, 200)
        wallet.submit_top_up_limit(OWNER, 300)
        wallet.cancel_top_up_limit(CONTROLLER, 300)
        wallet.submit_top_up_limit(OWNER, 100)
        wallet.confirm_top_up_limit(CONTROLLER, 100)
        assert wallet.top_up_available == 100
        with pytest.raises(InvalidPayloadError):
            wallet.submit_top_up_limit(OWNER, 501)

    def test_audit_event(self, wallet):
        wallet.top_up(CONTROLLER, 10)
        event = wallet.audit.last
        assert event.name == "top_up/executed"
        assert event.actor == normalize_address(CONTROLLER)
        assert event.value == {"to": normalize_address(OWNER), "amount": "10"}


# ══════════════════════════════════════════════════════════════════════
#  4. OWNERSHIP
# ══════════════════════════════════════════════════════════════════════

class TestOwnership:

    def test_not_transferable_by_default(self, wallet):
        with pytest.raises(UnauthorizedError):
            wallet.transfer_ownership(OWNER, PAYEE)
        assert wallet.owner == normalize_address(OWNER)

    def test_transfer(self, ledger, clock):
        wallet = make_wallet(ledger, clock, transferable=True)
        wallet.transfer_ownership(OWNER, PAYEE)
        assert wallet.owner == normalize_address(PAYEE)
        with pytest.raises(UnauthorizedError):
            wallet.transfer(OWNER, PAYEE, 1)

        event = wallet.audit.last
        assert event.name == "ownership/transferred"
        assert event.action is AuditAction.TRANSFERRED
        assert event.actor == normalize_address(OWNER)
        assert event.value == normalize_address(PAYEE)

    def test_whitelisted_cannot_become_owner(self, ledger, clock):
        wallet = make_wallet(ledger, clock, transferable=True)
        with pytest.raises(InvalidPayloadError, match="whitelisted"):
            wallet.transfer_ownership(OWNER, TRUSTED)
        assert wallet.owner == normalize_address(OWNER)

    def test_only_owner(self, ledger, clock):
        wallet = make_wallet(ledger, clock, transferable=True)
        with pytest.raises(UnauthorizedError):
            wallet.transfer_ownership(CONTROLLER, CONTROLLER)

    def test_zero_address_refused(self, ledger, clock):
        wallet = make_wallet(ledger, clock, transferable=True)
        with pytest.raises(InvalidPayloadError):
            wallet.transfer_ownership(OWNER, ZERO_ADDRESS)


# ══════════════════════════════════════════════════════════════════════
#  5. WHITELIST THROUGH THE WALLET
# ══════════════════════════════════════════════════════════════════════

class TestWhitelistProxy:

    def test_addition_then_unlimited_transfer(self, wallet, ledger):
        token = wallet.submit_whitelist_addition(OWNER, [PAYEE])
        with pytest.raises(LimitExceededError):
            wallet.transfer(OWNER, PAYEE, 1000)
        wallet.confirm_whitelist_addition(CONTROLLER, token)
        wallet.transfer(OWNER, PAYEE, 1000)
        assert ledger.balance_of(PAYEE) == 1000

    def test_removal_restores_limit(self, wallet):
        token = wallet.submit_whitelist_removal(OWNER, [TRUSTED])
        wallet.confirm_whitelist_removal(CONTROLLER, token)
        assert not wallet.is_whitelisted(TRUSTED)
        with pytest.raises(LimitExceededError):
            wallet.transfer(OWNER, TRUSTED, 1000)

    def test_cancel(self, wallet):
        token = wallet.submit_whitelist_addition(OWNER, [PAYEE])
        wallet.cancel_whitelist_addition(CONTROLLER, token)
        token = wallet.submit_whitelist_removal(OWNER, [TRUSTED])
        wallet.cancel_whitelist_removal(CONTROLLER, token)
        assert wallet.is_whitelisted(TRUSTED)
        assert not wallet.is_whitelisted(PAYEE)

    def test_spend_limit_cancel(self, wallet):
        wallet.submit_spend_limit(OWNER, 10)
        wallet.cancel_spend_limit(CONTROLLER, 10)
        assert wallet.spend_available == 100


# ══════════════════════════════════════════════════════════════════════
#  6. CONCURRENCY
# ══════════════════════════════════════════════════════════════════════

class TestConcurrency:

    def test_top_ups_never_overdraw(self, wallet, ledger):
        wallet.initialize_top_up_limit(OWNER, 200)
        results = []
        results_lock = threading.Lock()

        def worker():
            try:
                wallet.top_up(CONTROLLER, 10)
                outcome = True
            except LimitExceededError:
                outcome = False
            with results_lock:
                results.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(50)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 20
        assert wallet.top_up_available == 0
        assert ledger.balance_of(OWNER) == 200


# ══════════════════════════════════════════════════════════════════════
#  7. CONSTRUCTION
# ══════════════════════════════════════════════════════════════════════

class TestConstruction:

    def test_from_config(self, ledger, clock):
        config = CustodianConfig.from_dict({
            "wallet": {
                "owner": OWNER,
                "controllers": [CONTROLLER],
                "consume_spend_limit": True,
            },
            "limits": {"min_top_up": 5, "max_top_up": 50},
        })
        wallet = Wallet.from_config(config, WALLET, ledger, clock=clock)
        assert wallet.owner == normalize_address(OWNER)
        assert wallet.consume_spend_limit is True
        assert wallet.top_up_available == 50
        assert wallet.top_up_limit.min_top_up == 5

    def test_from_config_needs_owner(self, ledger):
        with pytest.raises(InvalidPayloadError):
            Wallet.from_config(CustodianConfig(), WALLET, ledger)

    def test_to_dict(self, wallet):
        d = wallet.to_dict()
        assert d["address"] == normalize_address(WALLET)
        assert d["spendLimit"]["limit"]["limit"] == 100
        assert d["whitelist"]["addresses"] == [normalize_address(TRUSTED)]
        assert d["auditEvents"] == len(wallet.audit)
