import pytest

from bonus_watch.monitor import ChangeKind, NotifyPolicy, detect_change, is_notable, policy_from_config

from .conftest import make_snapshot


@pytest.mark.parametrize("new_price", [5.00, 3.00, 9.99])
def test_no_promotion_is_never_notable(new_price):
    old = make_snapshot(promotion_theme="bonus")
    new = make_snapshot(price_now=new_price)
    assert not is_notable(old, new)


@pytest.mark.parametrize("new_price", [5.00, 2.50])
def test_entering_promotion_is_notable(new_price):
    old = make_snapshot()
    new = make_snapshot(price_now=new_price, promotion_theme="bonus")
    assert is_notable(old, new)
    assert detect_change(old, new) is ChangeKind.ENTERING_PROMOTION


def test_identical_snapshots_are_not_notable():
    snap = make_snapshot(promotion_theme="bonus")
    assert not is_notable(snap, snap)
    assert not is_notable(snap, snap, NotifyPolicy.ANY_TRANSITION)


def test_price_change_while_on_promotion():
    old = make_snapshot(promotion_theme="bonus", price_now=4.00)
    new = make_snapshot(promotion_theme="bonus", price_now=3.00)
    assert detect_change(old, new) is ChangeKind.PRICE_CHANGED_ON_PROMOTION


def test_unchanged_price_and_theme_with_other_fields_changed():
    old = make_snapshot(promotion_theme="bonus", orderable=True)
    new = make_snapshot(promotion_theme="bonus", orderable=False, title="Renamed")
    assert detect_change(old, new) is None


def test_any_transition_policy_reports_exits_and_plain_price_changes():
    on = make_snapshot(promotion_theme="bonus")
    off = make_snapshot()
    cheaper = make_snapshot(price_now=4.00)
    policy = NotifyPolicy.ANY_TRANSITION
    assert detect_change(on, off, policy) is ChangeKind.LEAVING_PROMOTION
    assert detect_change(off, cheaper, policy) is ChangeKind.PRICE_CHANGED
    assert detect_change(off, on, policy) is ChangeKind.ENTERING_PROMOTION


def test_policy_from_config_falls_back():
    assert policy_from_config("ANY_TRANSITION") is NotifyPolicy.ANY_TRANSITION
    assert policy_from_config("nonsense") is NotifyPolicy.PROMOTION_ONLY
