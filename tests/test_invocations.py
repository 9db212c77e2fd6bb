"""
Test the invocation tracker of agent-tools.

The lifecycle is pending -> completed | failed | timeout, exactly once.
"""

import pytest

from agent_tools.core.context import CallContext
from agent_tools.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    OperationCancelledError,
    ValidationError,
)
from agent_tools.core.identity import hash_payload
from agent_tools.core.models import InvocationStatus

CONSUMER = "did:claw:agent:consumer"


@pytest.mark.unit
class TestPayloadHash:
    """Test payload digests."""

    def test_stable(self):
        assert hash_payload({"a": 1}) == hash_payload({"a": 1})

    def test_prefix(self):
        digest = hash_payload({"a": 1})
        assert digest.startswith("sha256:")
        assert len(digest) == len("sha256:") + 64

    def test_differs_by_content(self):
        assert hash_payload({"a": 1}) != hash_payload({"a": 2})


@pytest.mark.integration
class TestInvocationLifecycle:
    """Test recording and terminal transitions."""

    def test_record_creates_pending(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {"source": "contract"})

        invocation = registry.get_invocation(invocation_id)
        assert invocation_id.startswith("inv_")
        assert invocation.status == InvocationStatus.PENDING
        assert invocation.input_hash == hash_payload({"source": "contract"})
        assert invocation.output_hash is None
        assert invocation.completed_at is None

    def test_complete(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})

        invocation = registry.complete_invocation(invocation_id, "sha256:out", "sig", "0.5")

        assert invocation.status == InvocationStatus.COMPLETED
        assert invocation.output_hash == "sha256:out"
        assert invocation.receipt_sig == "sig"
        assert invocation.cost_claw == "0.5"
        assert invocation.completed_at is not None
        assert invocation.error is None

    def test_fail(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})

        invocation = registry.fail_invocation(invocation_id, "provider unreachable")

        assert invocation.status == InvocationStatus.FAILED
        assert invocation.error == "provider unreachable"
        assert invocation.completed_at is not None

    def test_timeout(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})

        invocation = registry.timeout_invocation(invocation_id)

        assert invocation.status == InvocationStatus.TIMEOUT
        assert invocation.status.is_terminal

    def test_fail_after_complete_rejected(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})
        registry.complete_invocation(invocation_id, "sha256:out")

        with pytest.raises(InvalidStateError) as exc_info:
            registry.fail_invocation(invocation_id, "too late")

        assert exc_info.value.details["status"] == "completed"
        invocation = registry.get_invocation(invocation_id)
        assert invocation.status == InvocationStatus.COMPLETED
        assert invocation.error is None

    def test_complete_twice_rejected(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})
        registry.complete_invocation(invocation_id, "sha256:first")

        with pytest.raises(InvalidStateError):
            registry.complete_invocation(invocation_id, "sha256:second")

        assert registry.get_invocation(invocation_id).output_hash == "sha256:first"

    @pytest.mark.parametrize("finish", [
        lambda r, i: r.complete_invocation(i, "sha256:out"),
        lambda r, i: r.fail_invocation(i, "boom"),
        lambda r, i: r.timeout_invocation(i),
    ])
    def test_unknown_invocation(self, registry, finish):
        with pytest.raises(NotFoundError) as exc_info:
            finish(registry, "inv_missing")
        assert exc_info.value.error_code == "INVOCATION_NOT_FOUND"

    def test_record_unknown_tool(self, registry):
        with pytest.raises(NotFoundError) as exc_info:
            registry.record_invocation("did:claw:tool:missing", CONSUMER, {})
        assert exc_info.value.error_code == "TOOL_NOT_FOUND"

    def test_record_requires_consumer(self, registry, registered_tool):
        with pytest.raises(ValidationError):
            registry.record_invocation(registered_tool.id, "", {})

    def test_complete_requires_output_hash(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})
        with pytest.raises(ValidationError):
            registry.complete_invocation(invocation_id, "")
        assert registry.get_invocation(invocation_id).status == InvocationStatus.PENDING

    def test_complete_rejects_bad_cost(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})
        with pytest.raises(ValidationError):
            registry.complete_invocation(invocation_id, "sha256:out", cost_claw="free")

    def test_get_unknown(self, registry):
        with pytest.raises(NotFoundError):
            registry.get_invocation("inv_missing")

    def test_cancelled_record_writes_nothing(self, registry, registered_tool):
        ctx = CallContext()
        ctx.cancel()

        with pytest.raises(OperationCancelledError):
            registry.record_invocation(registered_tool.id, CONSUMER, {}, ctx=ctx)

        assert registry.list_invocations(registered_tool.id) == []

    def test_list_newest_first(self, registry, registered_tool):
        ids = [registry.record_invocation(registered_tool.id, CONSUMER, {"n": n}) for n in range(3)]

        listed = registry.list_invocations(registered_tool.id)

        assert [inv.id for inv in listed] == list(reversed(ids))
        assert len(registry.list_invocations(registered_tool.id, limit=2)) == 2

    def test_invocation_survives_deactivation(self, registry, registered_tool):
        invocation_id = registry.record_invocation(registered_tool.id, CONSUMER, {})
        registry.deactivate_tool(registered_tool.id, registered_tool.provider_id)

        assert registry.get_invocation(invocation_id).tool_id == registered_tool.id
