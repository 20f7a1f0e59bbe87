"""Tests for familiar.permissions: rules, manager, registry and approvers."""

from __future__ import annotations

import asyncio
import threading

import pytest

from familiar.permissions.approval import StdinApprover, describe_tool_call
from familiar.permissions.manager import PermissionManager
from familiar.permissions.registry import PermissionRegistry
from familiar.permissions.rules import PermissionDecision, PermRule, TrustMode, glob_match


class TestGlob:
    def test_star_matches_spaces_and_slashes(self):
        assert glob_match("cargo *", "cargo test --all")
        assert glob_match("/etc/**", "/etc/ssh/sshd_config")
        assert glob_match("*", "")

    def test_literal_characters(self):
        assert glob_match("ls", "ls")
        assert not glob_match("ls", "ls -la")
        assert glob_match("a.b*", "a.bc")
        assert not glob_match("a.b*", "axbc")


class TestRules:
    def test_parse(self):
        rule = PermRule.parse("allow:bash:git status:*")
        assert rule == PermRule(allow=True, tool="bash", pattern="git status:*")

    @pytest.mark.parametrize("spec", ["allow:bash", "maybe:bash:*", ""])
    def test_parse_invalid(self, spec):
        with pytest.raises(ValueError):
            PermRule.parse(spec)

    def test_wildcard_tool(self):
        assert PermRule.parse("deny:*:*secret*").matches("write_file", "/tmp/secret.txt")

    def test_trust_mode_parse(self):
        assert TrustMode.parse("FULL") is TrustMode.FULL
        assert TrustMode.parse("whatever") is TrustMode.PROMPT


class TestPermissionManager:
    def test_prompt_mode(self):
        mgr = PermissionManager()
        assert mgr.check("read_file", "a.txt") == PermissionDecision.ALLOW
        assert mgr.check("bash", "ls") == PermissionDecision.ASK
        assert mgr.check("write_file", "a.txt") == PermissionDecision.ASK

    def test_full_mode(self):
        mgr = PermissionManager(TrustMode.FULL)
        assert mgr.check("bash", "rm -rf build") == PermissionDecision.ALLOW

    def test_custom_first_match_wins(self):
        mgr = PermissionManager.from_strings("custom", [
            "deny:bash:cargo publish*",
            "allow:bash:cargo *",
            "not a rule",
        ])
        assert len(mgr.rules) == 2
        assert mgr.check("bash", "cargo test") == PermissionDecision.ALLOW
        assert mgr.check("bash", "cargo publish") == PermissionDecision.DENY
        assert mgr.check("bash", "make") == PermissionDecision.ASK
        assert mgr.check("list_files", ".") == PermissionDecision.ALLOW


class TestPermissionRegistry:
    @pytest.mark.asyncio
    async def test_respond_resolves_request(self):
        registry = PermissionRegistry()
        requests = []
        registry.subscribe(requests.append)

        task = asyncio.create_task(registry.request("bash", "Run command: ls"))
        await asyncio.sleep(0)
        assert requests[0].tool == "bash"
        assert registry.pending == [requests[0].id]

        assert registry.respond(requests[0].id, True)
        assert await task is True
        assert registry.pending == []

    @pytest.mark.asyncio
    async def test_respond_is_single_use(self):
        registry = PermissionRegistry()
        requests = []
        registry.subscribe(requests.append)

        task = asyncio.create_task(registry.request("bash", "ls"))
        await asyncio.sleep(0)
        assert registry.respond(requests[0].id, False)
        assert not registry.respond(requests[0].id, True)
        assert await task is False

    def test_respond_unknown_id(self):
        assert not PermissionRegistry().respond("missing", True)

    @pytest.mark.asyncio
    async def test_respond_from_other_thread(self):
        registry = PermissionRegistry()
        registry.subscribe(
            lambda req: threading.Thread(target=registry.respond, args=(req.id, True)).start()
        )
        assert await registry.request("write_file", "Write a.txt (1 lines)") is True

    @pytest.mark.asyncio
    async def test_cancel_denies(self):
        registry = PermissionRegistry(poll_interval=0.01)
        cancel = threading.Event()

        task = asyncio.create_task(registry.request("bash", "ls", cancel=cancel))
        await asyncio.sleep(0.02)
        cancel.set()

        assert await asyncio.wait_for(task, 1.0) is False
        assert registry.pending == []

    @pytest.mark.asyncio
    async def test_timeout_denies(self):
        registry = PermissionRegistry()
        assert await registry.request("bash", "ls", timeout=0.01) is False

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block(self):
        registry = PermissionRegistry()

        def broken(request):
            raise RuntimeError("ui crashed")

        registry.subscribe(broken)
        registry.subscribe(lambda req: registry.respond(req.id, True))
        assert await registry.request("bash", "ls") is True


class TestApproval:
    def test_describe_tool_call(self):
        assert describe_tool_call("bash", {"command": "ls -la"}) == "Run command: ls -la"
        assert describe_tool_call("write_file", {"path": "a.py", "content": "x\ny"}) == (
            "Write a.py (2 lines)"
        )
        assert describe_tool_call("edit_file", {"path": "a.py"}) == "Edit a.py"
        assert describe_tool_call("see", {}) == "see({})"

    def test_describe_truncates_long_args(self):
        text = describe_tool_call("recall", {"query": "x" * 200})
        assert text.endswith("...)")
        assert len(text) < 100

    @pytest.mark.asyncio
    async def test_stdin_approver_answers(self):
        registry = PermissionRegistry()

        class YesApprover(StdinApprover):
            async def prompt(self, request):
                return True

        approver = YesApprover(registry)
        approver.attach()
        try:
            assert await registry.request("bash", "ls") is True
        finally:
            approver.detach()
