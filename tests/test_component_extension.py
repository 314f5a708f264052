"""Tests for the generic resource lifecycle and extension objects."""

import asyncio

import pytest

from shootops.component import ExtensionResource
from shootops.core.errorcodes import ERR_INFRA_UNAUTHORIZED, ErrorClassifier
from shootops.core.errors import ProviderError
from shootops.resources.memory import InMemoryResourceStore
from shootops.resources.models import (
    ANNOTATION_CONFIRM_DELETION,
    ANNOTATION_OPERATION,
    LastError,
    OperationState,
    OperationType,
)
from shootops.resources.state import ResourceState, ShootState
from shootops.retry import PollTimeoutError, SevereError

NS = "shoot--dev--alpha"
KIND = "Infrastructure"


def infrastructure(store, **kwargs):
    kwargs.setdefault("values", {"region": "eu-west-1"})
    return ExtensionResource(store, KIND, NS, "alpha", "aws", **kwargs)


class TestDeploy:
    @pytest.mark.asyncio
    async def test_writes_spec_and_reconcile_annotation(self, store, ctx):
        await infrastructure(store).deploy(ctx)

        obj = store.peek(KIND, NS, "alpha")
        assert obj.spec == {"type": "aws", "region": "eu-west-1"}
        assert obj.annotations[ANNOTATION_OPERATION] == "reconcile"
        assert obj.generation == 1

    @pytest.mark.asyncio
    async def test_generation_moves_only_with_the_spec(self, store, ctx):
        await infrastructure(store).deploy(ctx)
        await infrastructure(store).deploy(ctx)
        assert store.peek(KIND, NS, "alpha").generation == 1

        await infrastructure(store, values={"region": "eu-central-1"}).deploy(ctx)
        assert store.peek(KIND, NS, "alpha").generation == 2

    @pytest.mark.asyncio
    async def test_purpose_is_part_of_the_spec(self, store, ctx):
        await infrastructure(store, purpose="normal").deploy(ctx)
        assert store.peek(KIND, NS, "alpha").spec["purpose"] == "normal"


class TestWait:
    @pytest.mark.asyncio
    async def test_ready_when_generation_observed_and_succeeded(self, store, ctx):
        component = infrastructure(store)
        await component.deploy(ctx)
        store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED)

        await component.wait(ctx)

    @pytest.mark.asyncio
    async def test_waits_for_the_reconciler(self, store, ctx):
        component = infrastructure(store)
        await component.deploy(ctx)

        async def reconcile_later():
            await asyncio.sleep(0.05)
            store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED)

        await asyncio.gather(component.wait(ctx), reconcile_later())

    @pytest.mark.asyncio
    async def test_redeploy_waits_for_the_new_request(self, store, ctx):
        component = infrastructure(store, timeout=0.1)
        await component.deploy(ctx)
        store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED)
        await component.wait(ctx)

        await component.deploy(ctx)

        with pytest.raises(PollTimeoutError, match="not yet picked up"):
            await component.wait(ctx)

        store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED)
        await component.wait(ctx)
        assert ANNOTATION_OPERATION not in store.peek(KIND, NS, "alpha").annotations

    @pytest.mark.asyncio
    async def test_last_error_wins_over_an_earlier_success(self, store, ctx):
        component = infrastructure(store, timeout=0.1)
        await component.deploy(ctx)
        store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED)
        store.peek(KIND, NS, "alpha").status.last_error = LastError("waiting for subnet to become available")

        with pytest.raises(PollTimeoutError, match="waiting for subnet"):
            await component.wait(ctx)

    @pytest.mark.asyncio
    async def test_outdated_generation_is_not_ready(self, store, ctx):
        component = infrastructure(store, timeout=0.1)
        await component.deploy(ctx)
        store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED, observed=False)

        with pytest.raises(PollTimeoutError, match="observed generation outdated"):
            await component.wait(ctx)

    @pytest.mark.asyncio
    async def test_processing_is_not_ready(self, store, ctx):
        component = infrastructure(store, timeout=0.1)
        await component.deploy(ctx)
        store.set_status(KIND, NS, "alpha", state=OperationState.PROCESSING)

        with pytest.raises(PollTimeoutError, match="Processing"):
            await component.wait(ctx)

    @pytest.mark.asyncio
    async def test_missing_object_is_minor(self, store, ctx):
        component = infrastructure(store, timeout=0.1)

        with pytest.raises(PollTimeoutError) as excinfo:
            await component.wait(ctx)

        assert "to become ready" in str(excinfo.value)
        assert "not found" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_fetch_failure_is_severe(self, store, ctx):
        component = infrastructure(store, timeout=5.0)
        await component.deploy(ctx)
        store.fail_on("get", KIND, NS, "alpha", ProviderError("api unavailable"))

        with pytest.raises(SevereError, match="api unavailable"):
            await component.wait(ctx)

    @pytest.mark.asyncio
    async def test_coded_error_escalates_to_severe(self, store, ctx):
        component = infrastructure(store, timeout=5.0)
        await component.deploy(ctx)
        store.set_status(
            KIND,
            NS,
            "alpha",
            state=OperationState.ERROR,
            last_error=LastError("Unauthorized: the provided credentials are invalid"),
        )

        with pytest.raises(SevereError) as excinfo:
            await component.wait(ctx)

        assert ERR_INFRA_UNAUTHORIZED in excinfo.value.codes

    @pytest.mark.asyncio
    async def test_uncoded_error_stays_minor(self, store, ctx):
        component = infrastructure(store, timeout=0.15)
        await component.deploy(ctx)
        store.set_status(
            KIND,
            NS,
            "alpha",
            state=OperationState.ERROR,
            last_error=LastError("waiting for subnet to become available"),
        )

        with pytest.raises(PollTimeoutError, match="waiting for subnet") as excinfo:
            await component.wait(ctx)

        assert not excinfo.value.is_user_error

    @pytest.mark.asyncio
    async def test_classifier_is_chosen_per_kind(self, store, ctx):
        classifier = ErrorClassifier().with_patterns({"ERR_FLAKY_ZONE": r"zone .* unavailable"})
        component = infrastructure(store, timeout=5.0, classifier=classifier)
        await component.deploy(ctx)
        store.set_status(
            KIND,
            NS,
            "alpha",
            state=OperationState.ERROR,
            last_error=LastError("zone eu-west-1c unavailable"),
        )

        with pytest.raises(SevereError) as excinfo:
            await component.wait(ctx)

        assert excinfo.value.codes == ("ERR_FLAKY_ZONE",)


class TestDestroy:
    @pytest.mark.asyncio
    async def test_confirms_before_deleting(self, ctx):
        store = InMemoryResourceStore(confirmation_required={KIND})
        component = infrastructure(store)
        await component.deploy(ctx)

        await component.destroy(ctx)

        assert store.journal[-2:] == [("patch", KIND, NS, "alpha"), ("delete", KIND, NS, "alpha")]
        assert not store.exists(KIND, NS, "alpha")

    @pytest.mark.asyncio
    async def test_absent_object_is_not_an_error(self, store, ctx):
        component = infrastructure(store)

        await component.destroy(ctx)
        await component.destroy(ctx)
        await component.wait_cleanup(ctx)

        assert store.writes("delete") == []

    @pytest.mark.asyncio
    async def test_wait_cleanup_surfaces_last_error(self, ctx):
        store = InMemoryResourceStore(finalize_deletes=False)
        component = infrastructure(store, timeout=0.1)
        await component.deploy(ctx)
        await component.destroy(ctx)
        assert store.peek(KIND, NS, "alpha").annotations[ANNOTATION_CONFIRM_DELETION] == "true"
        store.set_status(KIND, NS, "alpha", last_error=LastError("DependencyViolation: vpc in use"))

        with pytest.raises(PollTimeoutError) as excinfo:
            await component.wait_cleanup(ctx)

        assert "to be deleted" in str(excinfo.value)
        assert "vpc in use" in str(excinfo.value)
        assert excinfo.value.is_user_error

    @pytest.mark.asyncio
    async def test_wait_cleanup_returns_once_gone(self, ctx):
        store = InMemoryResourceStore(finalize_deletes=False)
        component = infrastructure(store)
        await component.deploy(ctx)
        await component.destroy(ctx)

        async def finalize_later():
            await asyncio.sleep(0.05)
            store.finish_deletion(KIND, NS, "alpha")

        await asyncio.gather(component.wait_cleanup(ctx), finalize_later())


class TestMigrateRestore:
    @pytest.mark.asyncio
    async def test_migrate_skips_absent_object(self, store, ctx):
        await infrastructure(store).migrate(ctx)
        assert store.journal == []

    @pytest.mark.asyncio
    async def test_migrate_annotates_and_waits(self, store, ctx):
        component = infrastructure(store)
        await component.deploy(ctx)

        await component.migrate(ctx)
        assert store.peek(KIND, NS, "alpha").annotations[ANNOTATION_OPERATION] == "migrate"

        store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED, operation=OperationType.MIGRATE)
        await component.wait_migrate(ctx)

    @pytest.mark.asyncio
    async def test_wait_migrate_needs_a_migrate_operation(self, store, ctx):
        component = infrastructure(store, timeout=0.1)
        await component.deploy(ctx)
        store.set_status(KIND, NS, "alpha", state=OperationState.SUCCEEDED)

        with pytest.raises(PollTimeoutError, match="to be migrated"):
            await component.wait_migrate(ctx)

    @pytest.mark.asyncio
    async def test_restore_writes_captured_state_before_handing_over(self, ctx):
        operations = []

        def record(store, obj):
            operations.append(obj.annotations[ANNOTATION_OPERATION])

        store = InMemoryResourceStore(reconciler=record)
        snapshot = ShootState(
            shoot="alpha",
            namespace=NS,
            version=3,
            entries=(
                ResourceState.from_dict(
                    {
                        "kind": KIND,
                        "name": "alpha",
                        "spec": {"type": "aws"},
                        "stateBlob": {"vpcID": "vpc-123"},
                        "resources": [{"name": "ssh-keypair"}],
                    }
                ),
            ),
        )

        await infrastructure(store).restore(ctx, snapshot)

        obj = store.peek(KIND, NS, "alpha")
        assert operations == ["wait-for-state", "restore"]
        assert [verb for verb, *_ in store.journal] == ["apply", "status", "patch"]
        assert obj.status.state_blob == {"vpcID": "vpc-123"}
        assert obj.status.resources == [{"name": "ssh-keypair"}]

    @pytest.mark.asyncio
    async def test_restore_without_captured_state(self, store, ctx):
        await infrastructure(store).restore(ctx, ShootState(shoot="alpha", namespace=NS))

        obj = store.peek(KIND, NS, "alpha")
        assert obj.status.state_blob is None
        assert obj.annotations[ANNOTATION_OPERATION] == "restore"
