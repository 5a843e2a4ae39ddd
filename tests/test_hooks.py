"""
Tests for linksync.hooks module.
"""

import pytest

from conftest import make_article
from linksync.hooks import HookContext, HookManager, HookType


class TestHookContext:
    """Tests for HookContext."""

    def test_defaults(self):
        context = HookContext()
        assert context.record is None
        assert context.results == []
        assert context.abort is False

    def test_messages_and_abort(self):
        context = HookContext(record=make_article("1"))
        context.add_error("boom")
        context.add_warning("careful")
        context.signal_abort("stop")

        assert context.errors == ["boom"]
        assert context.warnings == ["careful"]
        assert context.abort is True
        assert context.abort_reason == "stop"


class TestHookManager:
    """Tests for HookManager registration and execution."""

    def test_register_by_name(self):
        hooks = HookManager()
        hooks.register("post_insert", lambda ctx: None, name="noop")

        assert hooks.list_hooks()["post_insert"] == ["noop"]
        assert len(hooks) == 1

    def test_invalid_hook_type(self):
        hooks = HookManager()
        with pytest.raises(ValueError) as exc_info:
            hooks.register("post_render", lambda ctx: None)
        assert "Invalid hook type" in str(exc_info.value)

    def test_priority_order(self):
        hooks = HookManager()
        calls = []
        hooks.register(HookType.POST_UPDATE, lambda ctx: calls.append("late"), name="late", priority=200)
        hooks.register(HookType.POST_UPDATE, lambda ctx: calls.append("early"), name="early", priority=10)

        hooks.execute(HookType.POST_UPDATE, HookContext())

        assert calls == ["early", "late"]

    def test_decorator(self):
        hooks = HookManager()

        @hooks.on("pre_delete")
        def audit(context):
            context.results.append("audited")

        context = hooks.execute("pre_delete", HookContext())

        assert audit.__name__ == "audit"
        assert context.results == ["audited"]
        assert hooks.list_hooks()["pre_delete"] == ["audit"]

    def test_callback_error_is_recorded(self):
        hooks = HookManager()
        calls = []

        def broken(context):
            raise RuntimeError("broken hook")

        hooks.register("post_insert", broken)
        hooks.register("post_insert", lambda ctx: calls.append("after"), name="after")

        context = hooks.execute("post_insert", HookContext())

        assert len(context.errors) == 1
        assert "broken hook" in context.errors[0]
        assert calls == ["after"]

    def test_abort_on_error_stops_later_hooks(self):
        hooks = HookManager()
        calls = []

        def broken(context):
            raise RuntimeError("broken hook")

        hooks.register("post_insert", broken, priority=1, abort_on_error=True)
        hooks.register("post_insert", lambda ctx: calls.append("after"), name="after")

        context = hooks.execute("post_insert", HookContext())

        assert context.abort is True
        assert calls == []

    def test_signal_abort_skips_remaining(self):
        hooks = HookManager()
        calls = []
        hooks.register("post_insert", lambda ctx: ctx.signal_abort("done"), name="stopper", priority=1)
        hooks.register("post_insert", lambda ctx: calls.append("after"), name="after")

        hooks.execute("post_insert", HookContext())

        assert calls == []

    def test_execute_without_hooks(self):
        context = HookContext()
        assert HookManager().execute("post_insert", context) is context

    def test_unregister_by_name(self):
        hooks = HookManager()
        hooks.register("post_insert", lambda ctx: None, name="a")
        hooks.register("post_insert", lambda ctx: None, name="b")

        assert hooks.unregister("post_insert", "a") == 1
        assert hooks.list_hooks()["post_insert"] == ["b"]

    def test_unregister_all(self):
        hooks = HookManager()
        hooks.register("post_insert", lambda ctx: None, name="a")
        hooks.register("post_insert", lambda ctx: None, name="b")

        assert hooks.unregister("post_insert") == 2
        assert len(hooks) == 0

    def test_clear(self):
        hooks = HookManager()
        for hook_type in HookType:
            hooks.register(hook_type, lambda ctx: None, name="x")

        hooks.clear()

        assert len(hooks) == 0

    def test_managers_are_independent(self):
        first = HookManager()
        second = HookManager()
        first.register("post_insert", lambda ctx: None, name="x")

        assert len(second) == 0
