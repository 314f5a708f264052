"""Tests for DNS ownership of a shoot: ordering, restore bootstrap and migration."""

import pytest

from shootops.component import DNSStateError
from shootops.core.errors import ConfigurationError
from shootops.operation import DNSRestoreDeployer, needs_external_dns, needs_internal_dns
from shootops.operation.dns import (
    additional_dns_providers,
    deploy_additional_dns_providers,
    deploy_external_dns,
    deploy_internal_dns,
    destroy_additional_dns_providers,
    destroy_internal_dns,
    generate_dns_provider_name,
    migrate_external_dns,
    owner_id,
)
from shootops.resources.memory import InMemoryResourceStore
from shootops.resources.models import LABEL_ROLE, ManagedResource
from shootops.retry import PollTimeoutError
from shootops.shoot.models import Shoot

NS = "shoot--dev--alpha"
DNS_KINDS = ("DNSProvider", "DNSEntry", "DNSOwner", "Secret")


def dns_writes(store, verb, name):
    return [
        (kind, obj_name)
        for v, kind, _, obj_name in store.journal
        if v == verb and kind in DNS_KINDS and obj_name in (name, f"extensions-dns-{name}")
    ]


class FakeDNSComponent:
    def __init__(self, name, journal, wait_errors=()):
        self.name = name
        self.journal = journal
        self.wait_errors = list(wait_errors)

    async def deploy(self, ctx):
        self.journal.append(f"deploy:{self.name}")

    async def wait(self, ctx):
        self.journal.append(f"wait:{self.name}")
        if self.wait_errors:
            raise self.wait_errors.pop(0)

    async def destroy(self, ctx):
        self.journal.append(f"destroy:{self.name}")

    async def wait_cleanup(self, ctx):
        self.journal.append(f"wait_cleanup:{self.name}")


class TestNeeds:
    def test_complete_shoot_needs_both(self, shoot_spec):
        shoot = Shoot.from_dict(shoot_spec)
        assert needs_internal_dns(shoot)
        assert needs_external_dns(shoot)

    def test_nip_io_domain_has_no_external_dns(self, shoot_spec):
        shoot_spec["dns"]["domain"] = "10.0.0.1.nip.io"
        assert not needs_external_dns(Shoot.from_dict(shoot_spec))

    def test_unmanaged_domains(self, shoot_spec):
        shoot_spec["externalDomain"]["provider"] = "unmanaged"
        shoot_spec["internalDomain"]["provider"] = "unmanaged"
        shoot = Shoot.from_dict(shoot_spec)
        assert not needs_internal_dns(shoot)
        assert not needs_external_dns(shoot)

    def test_disabled_dns(self, shoot_spec):
        shoot_spec["disableDNS"] = True
        shoot = Shoot.from_dict(shoot_spec)
        assert not needs_internal_dns(shoot)
        assert not needs_external_dns(shoot)

    def test_owner_id_and_provider_name(self, shoot_spec):
        shoot = Shoot.from_dict(shoot_spec)
        assert owner_id(shoot, "internal") == "alpha-1234-internal"
        assert generate_dns_provider_name("gcp-credentials", "google-clouddns") == (
            "google-clouddns-gcp-credentials"
        )


class TestDeployOrder:
    @pytest.mark.asyncio
    async def test_owner_is_claimed_before_provider_and_entry(self, make_operation, shoot_spec, live_store, ctx):
        op = make_operation(shoot_spec)

        await deploy_internal_dns(op, ctx)

        assert dns_writes(live_store, "apply", "internal") == [
            ("DNSOwner", "internal"),
            ("Secret", "extensions-dns-internal"),
            ("DNSProvider", "internal"),
            ("DNSEntry", "internal"),
        ]
        entry = live_store.peek("DNSEntry", NS, "internal")
        assert entry.spec["dnsName"] == "api.alpha.dev.internal.example.net"
        assert entry.spec["targets"] == ["10.0.0.1"]
        assert entry.spec["ownerId"] == "alpha-1234-internal"

    @pytest.mark.asyncio
    async def test_external_provider_includes_cluster_domain(self, make_operation, shoot_spec, live_store, ctx):
        await deploy_external_dns(make_operation(shoot_spec), ctx)

        provider = live_store.peek("DNSProvider", NS, "external")
        assert provider.spec["domains"] == {"include": ["api.alpha.example.com"]}
        assert live_store.peek("DNSEntry", NS, "external").spec["dnsName"] == "api.alpha.example.com"

    @pytest.mark.asyncio
    async def test_unneeded_triplet_is_torn_down_entry_first(self, make_operation, shoot_spec, live_store, ctx):
        await deploy_internal_dns(make_operation(shoot_spec), ctx)
        del shoot_spec["internalDomain"]

        await deploy_internal_dns(make_operation(shoot_spec), ctx)

        assert dns_writes(live_store, "delete", "internal") == [
            ("DNSEntry", "internal"),
            ("DNSProvider", "internal"),
            ("Secret", "extensions-dns-internal"),
            ("DNSOwner", "internal"),
        ]

    @pytest.mark.asyncio
    async def test_destroy_runs_entry_provider_owner(self, make_operation, shoot_spec, live_store, ctx):
        op = make_operation(shoot_spec)
        await deploy_internal_dns(op, ctx)

        await destroy_internal_dns(op, ctx)

        assert [kind for kind, _ in dns_writes(live_store, "delete", "internal")] == [
            "DNSEntry",
            "DNSProvider",
            "Secret",
            "DNSOwner",
        ]

    @pytest.mark.asyncio
    async def test_missing_domain_secret_is_a_configuration_error(self, make_operation, shoot_spec):
        shoot_spec["internalDomain"]["secretName"] = "does-not-exist"
        with pytest.raises(ConfigurationError, match="does-not-exist"):
            make_operation(shoot_spec)

    def test_domain_secret_without_provider_keys(self, make_operation, shoot_spec, secrets):
        del secrets.secrets["internal-credentials"]["secretAccessKey"]

        with pytest.raises(ConfigurationError, match="lacks key 'secretAccessKey'") as excinfo:
            make_operation(shoot_spec, secrets=secrets)

        assert excinfo.value.details == {"secret": "internal-credentials", "key": "secretAccessKey"}

    def test_unknown_provider_types_are_not_checked(self, make_operation, shoot_spec, secrets):
        shoot_spec["internalDomain"]["provider"] = "cloudflare-dns"
        secrets.secrets["internal-credentials"] = {"apiToken": "token"}

        assert make_operation(shoot_spec, secrets=secrets).dns.internal_provider is not None


class TestRestoreDeployer:
    @pytest.mark.asyncio
    async def test_tolerated_entry_state_proceeds_to_owner(self, ctx):
        journal = []
        invalid = PollTimeoutError("timed out", last_error=DNSStateError("Invalid", "owner not active"))
        deployer = DNSRestoreDeployer(
            FakeDNSComponent("provider", journal),
            FakeDNSComponent("entry", journal, wait_errors=[invalid]),
            FakeDNSComponent("owner", journal),
        )

        await deployer.deploy(ctx)

        assert journal == [
            "deploy:provider",
            "wait:provider",
            "deploy:entry",
            "wait:entry",
            "deploy:owner",
            "wait:owner",
            "wait:entry",
        ]

    @pytest.mark.parametrize("state", ["Error", "Stale"])
    @pytest.mark.asyncio
    async def test_every_tolerated_state(self, state, ctx):
        journal = []
        deployer = DNSRestoreDeployer(
            None,
            FakeDNSComponent("entry", journal, wait_errors=[DNSStateError(state)]),
            FakeDNSComponent("owner", journal),
        )

        await deployer.deploy(ctx)

        assert "deploy:owner" in journal

    @pytest.mark.asyncio
    async def test_other_entry_state_aborts_before_owner(self, ctx):
        journal = []
        pending = PollTimeoutError("timed out", last_error=DNSStateError("Pending"))
        deployer = DNSRestoreDeployer(
            FakeDNSComponent("provider", journal),
            FakeDNSComponent("entry", journal, wait_errors=[pending]),
            FakeDNSComponent("owner", journal),
        )

        with pytest.raises(PollTimeoutError):
            await deployer.deploy(ctx)

        assert "deploy:owner" not in journal

    @pytest.mark.asyncio
    async def test_error_without_state_aborts(self, ctx):
        journal = []
        deployer = DNSRestoreDeployer(
            None,
            FakeDNSComponent("entry", journal, wait_errors=[RuntimeError("api unavailable")]),
            FakeDNSComponent("owner", journal),
        )

        with pytest.raises(RuntimeError):
            await deployer.deploy(ctx)

        assert journal == ["deploy:entry", "wait:entry"]

    @pytest.mark.asyncio
    async def test_entry_becomes_ready_once_owner_is_claimed(self, make_operation, shoot_spec, reconciler, ctx):
        reconciler.dns_states[("DNSEntry", "internal")] = "Invalid"

        def claim_owner(store, obj):
            reconciler(store, obj)
            if obj.kind == "DNSOwner" and store.exists("DNSEntry", obj.namespace, obj.name):
                store.set_status("DNSEntry", obj.namespace, obj.name, dns_state="Ready")

        store = InMemoryResourceStore(reconciler=claim_owner)
        op = make_operation(shoot_spec, client=store)

        await deploy_internal_dns(op, ctx, restoring=True)

        assert dns_writes(store, "apply", "internal") == [
            ("Secret", "extensions-dns-internal"),
            ("DNSProvider", "internal"),
            ("DNSEntry", "internal"),
            ("DNSOwner", "internal"),
        ]
        assert store.peek("DNSEntry", NS, "internal").status.state == "Ready"


class TestMigration:
    @pytest.mark.asyncio
    async def test_keep_provider_preserves_external_provider(self, make_operation, shoot_spec, live_store, ctx):
        op = make_operation(shoot_spec)
        await deploy_external_dns(op, ctx)

        await migrate_external_dns(op, ctx, keep_provider=True)

        assert dns_writes(live_store, "delete", "external") == [
            ("DNSOwner", "external"),
            ("DNSEntry", "external"),
        ]
        assert live_store.exists("DNSProvider", NS, "external")
        assert live_store.exists("Secret", NS, "extensions-dns-external")

    @pytest.mark.asyncio
    async def test_without_keep_provider_everything_goes(self, make_operation, shoot_spec, live_store, ctx):
        op = make_operation(shoot_spec)
        await deploy_external_dns(op, ctx)

        await migrate_external_dns(op, ctx, keep_provider=False)

        assert dns_writes(live_store, "delete", "external") == [
            ("DNSOwner", "external"),
            ("DNSProvider", "external"),
            ("Secret", "extensions-dns-external"),
            ("DNSEntry", "external"),
        ]
        assert not live_store.exists("DNSProvider", NS, "external")


class TestAdditionalProviders:
    @pytest.fixture
    def additional_spec(self, shoot_spec):
        shoot_spec["dns"]["providers"].extend(
            [
                {"type": "google-clouddns", "secretName": "gcp-credentials", "domains": {"include": ["gcp.example.com"]}},
                {"type": "unmanaged"},
            ]
        )
        return shoot_spec

    @pytest.mark.asyncio
    async def test_primary_and_unmanaged_are_skipped(self, make_operation, additional_spec):
        providers = await additional_dns_providers(make_operation(additional_spec))
        assert list(providers) == ["google-clouddns-gcp-credentials"]

    @pytest.mark.asyncio
    async def test_missing_type(self, make_operation, shoot_spec):
        shoot_spec["dns"]["providers"].append({"secretName": "gcp-credentials"})
        with pytest.raises(ConfigurationError, match=r"dns provider\[1\] doesn't specify a type"):
            await additional_dns_providers(make_operation(shoot_spec))

    @pytest.mark.asyncio
    async def test_missing_secret_name(self, make_operation, shoot_spec):
        shoot_spec["dns"]["providers"].append({"type": "google-clouddns"})
        with pytest.raises(ConfigurationError, match="secretName"):
            await additional_dns_providers(make_operation(shoot_spec))

    @pytest.mark.asyncio
    async def test_secret_must_carry_the_provider_keys(self, make_operation, additional_spec, secrets):
        secrets.secrets["gcp-credentials"] = {"token": "x"}
        with pytest.raises(ConfigurationError, match=r"dns provider\[1\]: .*'serviceaccount.json'"):
            await additional_dns_providers(make_operation(additional_spec))

    @pytest.mark.asyncio
    async def test_deploy_labels_new_and_removes_stale(self, make_operation, additional_spec, live_store, ctx):
        live_store.put(
            ManagedResource(
                kind="DNSProvider",
                namespace=NS,
                name="aws-route53-old-credentials",
                labels={LABEL_ROLE: "managed-dns-provider"},
            )
        )

        await deploy_additional_dns_providers(make_operation(additional_spec), ctx)

        provider = live_store.peek("DNSProvider", NS, "google-clouddns-gcp-credentials")
        assert provider.labels == {LABEL_ROLE: "managed-dns-provider"}
        assert provider.spec["domains"] == {"include": ["gcp.example.com"]}
        assert not live_store.exists("DNSProvider", NS, "aws-route53-old-credentials")

    @pytest.mark.asyncio
    async def test_destroy_removes_every_labelled_provider(self, make_operation, additional_spec, live_store, ctx):
        op = make_operation(additional_spec)
        await deploy_additional_dns_providers(op, ctx)
        await deploy_external_dns(op, ctx)

        await destroy_additional_dns_providers(op, ctx)

        assert not live_store.exists("DNSProvider", NS, "google-clouddns-gcp-credentials")
        assert live_store.exists("DNSProvider", NS, "external")
