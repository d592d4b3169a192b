"""Tests for keyhabit.core.actions — resolving keys to their bindings."""

from __future__ import annotations

from keyhabit.core.actions import ActionResult, Binding, resolve_action


def test_unbound_key_maps_to_itself():
    result = resolve_action("j", {})
    assert result == ActionResult(keys="j")
    assert not result.failed


def test_rhs_binding():
    result = resolve_action("j", {"j": Binding(lhs="j", rhs="gj")})
    assert result.keys == "gj"


def test_empty_rhs_falls_back_to_key():
    assert resolve_action("j", {"j": Binding(lhs="j")}).keys == "j"


def test_callback_result_is_the_action():
    result = resolve_action("j", {"j": Binding(lhs="j", callback=lambda: "5j")})
    assert result.keys == "5j"
    assert not result.failed


def test_callback_returning_none_emits_nothing():
    result = resolve_action("j", {"j": Binding(lhs="j", callback=lambda: None)})
    assert result.keys == ""


def test_failing_callback_falls_back_and_offers_retry():
    def broken():
        raise RuntimeError("not ready")

    result = resolve_action("j", {"j": Binding(lhs="j", callback=broken)})
    assert result.keys == "j"
    assert result.failed
    assert result.retry is broken
