"""Tests for ShootState capture and persistence."""

import dataclasses

import pytest

from shootops.resources.models import ManagedResource, ResourceStatus
from shootops.resources.state import ResourceState, ShootState, ShootStateStore, capture_shoot_state

NS = "shoot--dev--alpha"


def resource(kind, name, purpose=None, blob=None):
    spec = {"type": "aws"}
    if purpose:
        spec["purpose"] = purpose
    return ManagedResource(
        kind=kind,
        namespace=NS,
        name=name,
        spec=spec,
        status=ResourceStatus(state_blob=blob, resources=[{"name": "keypair"}] if blob else []),
    )


class TestShootState:
    def test_lookup_by_kind_name_and_purpose(self):
        state = ShootState(
            shoot="alpha",
            namespace=NS,
            entries=(
                ResourceState.from_resource(resource("ControlPlane", "alpha", "normal", {"a": 1})),
                ResourceState.from_resource(resource("ControlPlane", "alpha", "exposure", {"b": 2})),
            ),
        )

        assert state.get("ControlPlane", "alpha", "exposure").state_blob == {"b": 2}
        assert state.get("ControlPlane", "alpha", "normal").state_blob == {"a": 1}
        assert state.get("Worker", "alpha") is None

    def test_is_immutable(self):
        state = ShootState(shoot="alpha", namespace=NS)
        with pytest.raises(dataclasses.FrozenInstanceError):
            state.version = 5

    def test_entries_do_not_alias_the_source(self):
        source = resource("Infrastructure", "alpha", blob={"vpcID": "vpc-1"})
        entry = ResourceState.from_resource(source)

        source.status.state_blob["vpcID"] = "vpc-2"

        assert entry.state_blob == {"vpcID": "vpc-1"}
        with pytest.raises(TypeError):
            entry.state_blob["vpcID"] = "vpc-3"

    def test_dict_round_trip(self):
        state = ShootState(
            shoot="alpha",
            namespace=NS,
            version=2,
            entries=(ResourceState.from_resource(resource("Infrastructure", "alpha", blob={"vpcID": "vpc-1"})),),
        )

        assert ShootState.from_dict(state.to_dict()).to_dict() == state.to_dict()


class TestCaptureAndPersist:
    @pytest.mark.asyncio
    async def test_capture_collects_requested_kinds(self, store):
        store.put(resource("Infrastructure", "alpha", blob={"vpcID": "vpc-1"}))
        store.put(resource("Worker", "alpha"))
        store.put(resource("DNSEntry", "internal"))

        state = await capture_shoot_state(store, "alpha", NS, ("Infrastructure", "Worker"))

        assert state.kinds() == {"Infrastructure", "Worker"}
        assert state.get("Infrastructure", "alpha").resources[0] == {"name": "keypair"}

    @pytest.mark.asyncio
    async def test_every_persist_is_a_new_version(self, store):
        state_store = ShootStateStore(store, NS)
        assert await state_store.load("alpha") is None

        first = await state_store.persist(ShootState(shoot="alpha", namespace=NS))
        second = await state_store.persist(ShootState(shoot="alpha", namespace=NS))

        assert (first.version, second.version) == (1, 2)
        loaded = await state_store.load("alpha")
        assert loaded.version == 2
