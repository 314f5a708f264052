"""Root test configuration and shared fixtures."""

import copy
import logging

import pytest
import structlog

from shootops.collaborators import StaticSecretStore
from shootops.config.settings import Settings
from shootops.context import OperationContext
from shootops.operation import Operation
from shootops.resources.memory import InMemoryResourceStore
from shootops.resources.models import (
    ANNOTATION_OPERATION,
    KIND_DNS_ENTRY,
    KIND_DNS_OWNER,
    KIND_DNS_PROVIDER,
    OPERATION_MIGRATE,
    OPERATION_RESTORE,
    OPERATION_WAIT_FOR_STATE,
    OperationState,
    OperationType,
)
from shootops.shoot.models import Seed, Shoot

DNS_KINDS = {KIND_DNS_PROVIDER, KIND_DNS_ENTRY, KIND_DNS_OWNER}
PASSIVE_KINDS = {"Secret", "ShootState"}


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


class AutoReconciler:
    """
    Plays every external reconciler: on each write the object converges at once.

    DNS objects report ``dns_states[(kind, name)]`` (Ready by default). Recording
    an operation consumes the operation annotation, as a real reconciler does.
    """

    def __init__(self):
        self.dns_states: dict[tuple[str, str], str] = {}

    def __call__(self, store, obj):
        if obj.kind in PASSIVE_KINDS:
            return
        if obj.kind in DNS_KINDS:
            store.set_status(
                obj.kind, obj.namespace, obj.name, dns_state=self.dns_states.get((obj.kind, obj.name), "Ready")
            )
            return
        operation = obj.annotations.get(ANNOTATION_OPERATION)
        if operation == OPERATION_WAIT_FOR_STATE:
            return
        op_type = {
            OPERATION_MIGRATE: OperationType.MIGRATE,
            OPERATION_RESTORE: OperationType.RESTORE,
        }.get(operation, OperationType.RECONCILE)
        store.set_status(
            obj.kind, obj.namespace, obj.name, state=OperationState.SUCCEEDED, operation=op_type
        )


@pytest.fixture
def ctx():
    return OperationContext(interval=0.01, severe_threshold=0.05, timeout=0.5)


@pytest.fixture
def store():
    """A store without reconciler: status changes are made by the test."""
    return InMemoryResourceStore()


@pytest.fixture
def reconciler():
    return AutoReconciler()


@pytest.fixture
def live_store(reconciler):
    """A store whose objects converge as soon as they are written."""
    return InMemoryResourceStore(reconciler=reconciler)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        poll_interval=0.01,
        severe_threshold=0.05,
        wait_timeout=0.5,
        dns_wait_timeout=0.3,
    )


SHOOT_SPEC = {
    "name": "alpha",
    "project": "dev",
    "clusterIdentity": "alpha-1234",
    "region": "eu-west-1",
    "provider": {
        "type": "aws",
        "workers": [
            {
                "name": "pool-a",
                "machine": {"type": "m5.large", "image": {"name": "ubuntu", "version": "22.04"}},
                "cri": {"containerRuntimes": [{"type": "gvisor"}]},
            }
        ],
    },
    "networking": {"type": "calico"},
    "extensions": [{"type": "shoot-cert-service"}],
    "dns": {
        "domain": "alpha.example.com",
        "providers": [{"type": "aws-route53", "secretName": "route53-credentials", "primary": True}],
    },
    "externalDomain": {
        "domain": "example.com",
        "provider": "aws-route53",
        "secretName": "route53-credentials",
    },
    "internalDomain": {
        "domain": "internal.example.net",
        "provider": "aws-route53",
        "secretName": "internal-credentials",
    },
    "apiServerAddress": "10.0.0.1",
}

SECRETS = {
    "route53-credentials": {"accessKeyID": "AKIAEXTERNAL", "secretAccessKey": "external"},
    "internal-credentials": {"accessKeyID": "AKIAINTERNAL", "secretAccessKey": "internal"},
    "gcp-credentials": {"serviceaccount.json": "{}"},
}


@pytest.fixture
def shoot_spec():
    """A mutable copy of a complete shoot description."""
    return copy.deepcopy(SHOOT_SPEC)


@pytest.fixture
def seed():
    return Seed(name="seed-1", provider_type="aws", backup_provider="aws")


@pytest.fixture
def secrets():
    return StaticSecretStore(secrets=copy.deepcopy(SECRETS))


@pytest.fixture
def make_operation(live_store, seed, secrets, settings):
    """Build an Operation against the live store from a shoot description."""

    def _make(spec, **kwargs):
        kwargs.setdefault("secrets", secrets)
        kwargs.setdefault("settings", settings)
        client = kwargs.pop("client", live_store)
        return Operation(Shoot.from_dict(spec), kwargs.pop("seed", seed), client, **kwargs)

    return _make
