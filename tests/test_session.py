from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest

from budget_tracker.analytics import FilterSpec
from budget_tracker.errors import CapacityExceeded, UnknownPartition, ValidationError
from budget_tracker.models import Snapshot
from budget_tracker.session import BudgetSession

CSV = (
    "Date,Description,Category,Amount,Type,State\n"
    "01/02/2024,Coffee Shop,Dining,-4.50,Card Payment,COMPLETED\n"
    "02/02/2024,Pay,Salary,2000,Transfer,COMPLETED\n"
    "03/02/2024,Pot,Savings,120,Transfer,COMPLETED\n"
    "04/02/2024,Bakery,,-3,Card Payment,COMPLETED\n"
)


class FakeGateway:
    """In-memory gateway; flip ``fail`` to make saves raise."""

    def __init__(self) -> None:
        self.store: dict[str, Snapshot] = {}
        self.saves = 0
        self.fail = False

    def save(self, user_id: str, snapshot: Snapshot) -> None:
        if self.fail:
            raise OSError("disk full")
        self.saves += 1
        self.store[user_id] = snapshot

    def load(self, user_id: str) -> Snapshot | None:
        return self.store.get(user_id)


class BrokenGateway(FakeGateway):
    def load(self, user_id: str) -> Snapshot | None:
        raise OSError("unreadable")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def session(gateway, ids) -> BudgetSession:
    return BudgetSession(gateway=gateway, user_id="alice", ids=ids, today=lambda: date(2024, 3, 5))


def _by_description(session: BudgetSession, description: str):
    return next(t for t in session.transactions if t.description == description)


def test_import_replaces_transactions_and_saves(session, gateway):
    result = session.import_csv(CSV)

    assert len(result.transactions) == 4
    assert [t.description for t in session.transactions][:2] == ["Coffee Shop", "Pay"]
    assert session.revision == 1
    assert gateway.saves == 1
    assert "alice" in gateway.store

    session.import_csv("Date,Description,Amount\n01/01/2024,Only,-1")
    assert [t.description for t in session.transactions] == ["Only"]
    assert session.rules.get("coffee shop") == "Dining"


def test_add_transaction_prepends_blank_row_and_opens_it(session):
    session.import_csv(CSV)

    t = session.add_transaction()

    assert session.transactions[0] is t
    assert (t.date, t.description, t.category, t.amount) == (
        "05/03/2024",
        "",
        "Uncategorized",
        Decimal(0),
    )
    assert (t.type, t.state) == ("Card Payment", "COMPLETED")
    assert session.editing_id == t.id
    assert session.edit_form is not None


def test_update_edit_validates_fields_and_amounts(session):
    t = session.add_transaction()

    with pytest.raises(ValidationError):
        session.update_edit(colour="red")
    with pytest.raises(ValidationError):
        session.update_edit(amount="12abc")

    form = session.update_edit(description="Cinema", amount="-12.5")
    assert form.amount == Decimal("-12.5")
    assert session.find(t.id).description == ""

    session.cancel_edit()
    with pytest.raises(ValidationError):
        session.update_edit(description="x")


def test_save_edit_writes_back_and_learns_rule(session):
    t = session.add_transaction()
    session.update_edit(description="Cinema", category="  Fun ", amount="-12.5")

    updated = session.save_edit()

    assert updated.id == t.id
    assert session.find(t.id).category == "Fun"
    assert session.find(t.id).amount == Decimal("-12.5")
    assert session.rules.get("cinema") == "Fun"
    assert session.editing_id is None
    with pytest.raises(ValidationError):
        session.save_edit()


def test_save_edit_with_blank_category_learns_nothing(session):
    t = session.add_transaction()
    session.update_edit(description="Mystery", category="   ")

    session.save_edit()

    assert session.find(t.id).category == "Uncategorized"
    assert len(session.rules) == 0


def test_deleting_the_edited_row_clears_edit_state(session):
    session.import_csv(CSV)
    coffee = _by_description(session, "Coffee Shop")
    session.begin_edit(coffee.id)

    session.delete_transaction(coffee.id)

    assert session.editing_id is None
    assert session.edit_form is None
    with pytest.raises(ValidationError):
        session.find(coffee.id)


def test_rules_add_delete_and_reapply(session):
    session.import_csv(CSV)
    bakery = _by_description(session, "Bakery")
    assert bakery.category == "Uncategorized"

    assert session.add_rule("  BAKERY ", "Food") == "bakery"
    assert session.reapply_rules() == 1
    assert _by_description(session, "Bakery").category == "Food"

    assert session.delete_rule("Bakery") is True
    revision = session.revision
    assert session.delete_rule("bakery") is False
    assert session.revision == revision


def test_allocate_requires_a_savings_deposit(session):
    session.import_csv(CSV)
    pot = _by_description(session, "Pot")
    pay = _by_description(session, "Pay")

    with pytest.raises(ValidationError):
        session.allocate(pay.id, "Trip", 10)

    session.allocate(pot.id, "Trip", 100)
    with pytest.raises(CapacityExceeded):
        session.allocate(pot.id, "Car", 50)
    assert session.ledger.total_allocated(pot.id) == 100

    removed = session.deallocate(pot.id, 0)
    assert removed.purpose == "Trip"
    assert session.ledger.total_allocated(pot.id) == 0


def test_save_edit_rejects_amount_below_allocations(session, gateway):
    session.import_csv(CSV)
    pot = _by_description(session, "Pot")
    session.allocate(pot.id, "Trip", 100)
    session.begin_edit(pot.id)
    session.update_edit(amount="50")
    revision, saves = session.revision, gateway.saves

    with pytest.raises(CapacityExceeded, match=r"Cannot set amount to 50\.00\. 100\.00 is"):
        session.save_edit()

    assert session.find(pot.id).amount == Decimal("120")
    assert session.ledger.total_allocated(pot.id) == 100
    assert session.editing_id == pot.id
    assert session.edit_form.amount == Decimal("50")
    assert (session.revision, gateway.saves) == (revision, saves)

    session.update_edit(amount="100")
    assert session.save_edit().amount == Decimal("100")
    assert session.views().savings[0].name == "Trip"


def test_account_operations_clear_edit_and_keep_data(session):
    session.import_csv(CSV)
    session.begin_edit(session.transactions[0].id)

    joint = session.add_account("Joint")
    assert joint is not None
    assert session.active_account_id == joint.id
    assert session.editing_id is None
    assert session.transactions == ()

    session.begin_edit(session.add_transaction().id)
    session.switch_account("default")
    assert session.editing_id is None
    assert len(session.transactions) == 4

    with pytest.raises(UnknownPartition):
        session.switch_account("ghost")
    assert session.add_account("  ") is None
    assert session.rename_account(joint.id, "Shared") is True
    assert session.delete_account(joint.id, lambda _a: True) is True
    assert [a.id for a in session.accounts] == ["default"]


def test_views_are_memoized_until_the_next_mutation(session):
    session.import_csv(CSV)
    spec = FilterSpec(categories=frozenset({"Dining"}))

    first = session.views(spec)
    assert session.views(FilterSpec(categories=frozenset({"Dining"}))) is first
    assert session.views() is not first

    session.add_rule("pay", "Income")
    refreshed = session.views(spec)
    assert refreshed is not first
    assert refreshed == first


def test_save_failure_is_logged_and_retried(session, gateway, caplog):
    gateway.fail = True
    with caplog.at_level(logging.ERROR, logger="budget_tracker"):
        session.import_csv(CSV)

    assert isinstance(session.save_error, OSError)
    assert len(session.transactions) == 4
    assert any("failed to save snapshot" in r.message for r in caplog.records)

    gateway.fail = False
    session.add_rule("pot", "Savings")
    assert session.save_error is None
    assert gateway.saves == 1


def test_save_without_user_is_skipped(gateway, ids):
    session = BudgetSession(gateway=gateway, ids=ids)
    session.add_rule("tea", "Dining")
    assert session.save() is False
    assert gateway.store == {}


def test_load_round_trips_through_gateway(session, gateway, ids):
    session.import_csv(CSV)
    pot = _by_description(session, "Pot")
    session.allocate(pot.id, "Trip", 20)
    session.add_account("Joint")

    loaded = BudgetSession.load(gateway, "alice", ids=ids)

    assert loaded.active_account_id == session.active_account_id
    loaded.switch_account("default")
    assert [t.description for t in loaded.transactions] == [
        "Coffee Shop",
        "Pay",
        "Pot",
        "Bakery",
    ]
    assert loaded.ledger.total_allocated(pot.id) == 20


def test_load_falls_back_to_fresh_state_unless_strict(caplog):
    gateway = BrokenGateway()

    with caplog.at_level(logging.ERROR, logger="budget_tracker"):
        session = BudgetSession.load(gateway, "bob")

    assert session.transactions == ()
    assert session.user_id == "bob"
    assert any("failed to load snapshot" in r.message for r in caplog.records)

    with pytest.raises(OSError):
        BudgetSession.load(gateway, "bob", strict=True)


def test_logout_resets_without_saving(session, gateway):
    session.import_csv(CSV)
    saves = gateway.saves
    session.begin_edit(session.transactions[0].id)

    session.logout()

    assert session.user_id is None
    assert session.transactions == ()
    assert session.editing_id is None
    assert [a.id for a in session.accounts] == ["default"]
    assert gateway.saves == saves
    assert len(gateway.store["alice"].accounts_data["default"].transactions) == 4
