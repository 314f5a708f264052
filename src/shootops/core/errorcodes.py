"""
Error codes reported by external reconcilers and their classification.

A reconciler's last error is free text. The classifier maps that text onto
well-known codes so that callers can tell configuration problems (the user
has to act) from system problems (the operators have to act). The patterns
evolve with the reconcilers, so they are a policy object that can be
replaced per resource kind instead of a fixed function.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Mapping

ERR_INFRA_UNAUTHORIZED = "ERR_INFRA_UNAUTHORIZED"
ERR_INFRA_INSUFFICIENT_PRIVILEGES = "ERR_INFRA_INSUFFICIENT_PRIVILEGES"
ERR_INFRA_QUOTA_EXCEEDED = "ERR_INFRA_QUOTA_EXCEEDED"
ERR_INFRA_DEPENDENCIES = "ERR_INFRA_DEPENDENCIES"
ERR_INFRA_RESOURCES_DEPLETED = "ERR_INFRA_RESOURCES_DEPLETED"
ERR_CONFIGURATION_PROBLEM = "ERR_CONFIGURATION_PROBLEM"
ERR_RETRYABLE_CONFIGURATION_PROBLEM = "ERR_RETRYABLE_CONFIGURATION_PROBLEM"
ERR_CLEANUP_CLUSTER_RESOURCES = "ERR_CLEANUP_CLUSTER_RESOURCES"

# Codes the user can fix by changing credentials, quotas or the cluster spec.
USER_ERROR_CODES = frozenset(
    {
        ERR_INFRA_UNAUTHORIZED,
        ERR_INFRA_INSUFFICIENT_PRIVILEGES,
        ERR_INFRA_QUOTA_EXCEEDED,
        ERR_INFRA_DEPENDENCIES,
        ERR_CONFIGURATION_PROBLEM,
        ERR_RETRYABLE_CONFIGURATION_PROBLEM,
    }
)

DEFAULT_PATTERNS: dict[str, str] = {
    ERR_INFRA_UNAUTHORIZED: (
        r"(?i)(unauthorized|invalidclienttokenid|signaturedoesnotmatch|authentication failed"
        r"|authfailure|invalid_grant|invalid_client|cannot fetch token|invalidaccesskeyid"
        r"|invalidsecretaccesskey|error 401)"
    ),
    ERR_INFRA_INSUFFICIENT_PRIVILEGES: (
        r"(?i)(accessdenied|forbidden|not authorized|unauthorizedoperation"
        r"|operationnotallowed|insufficient permissions|error 403)"
    ),
    ERR_INFRA_QUOTA_EXCEEDED: (
        r"(?i)(quota.*exceeded|exceeded quota|quota has been met|quota_exceeded"
        r"|(?<!request)limitexceeded)"
    ),
    ERR_INFRA_RESOURCES_DEPLETED: (
        r"(?i)(out of stock|insufficientinstancecapacity|zone_resource_pool_exhausted"
        r"|resources depleted|allocationfailed)"
    ),
    ERR_INFRA_DEPENDENCIES: (
        r"(?i)(pendingverification|access not configured|dependencyviolation|optinrequired"
        r"|deleteconflict|inactive billing state|is already being used|invalidcidrblock"
        r"|insufficientfreeaddressesinsubnet)"
    ),
    ERR_CONFIGURATION_PROBLEM: (
        r"(?i)(invalid configuration|invalidparametervalue|invalid value|malformed"
        r"|not supported|unsupported)"
    ),
}


class ErrorWithCodes(Exception):
    """An error carrying zero or more classification codes."""

    def __init__(self, message: str, codes: Iterable[str] = ()):
        super().__init__(message)
        self.message = message
        self.codes = tuple(dict.fromkeys(codes))

    def __str__(self) -> str:
        if not self.codes:
            return self.message
        return f"{self.message} (codes: {', '.join(self.codes)})"


@dataclass
class ErrorClassifier:
    """Regex policy mapping free-text error descriptions to error codes."""

    patterns: Mapping[str, str] = field(default_factory=lambda: dict(DEFAULT_PATTERNS))
    _compiled: dict[str, re.Pattern[str]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._compiled = {code: re.compile(expr) for code, expr in self.patterns.items()}

    def codes_for(self, description: str | None) -> tuple[str, ...]:
        """Return every code whose pattern matches the description."""
        if not description:
            return ()
        return tuple(code for code, rx in self._compiled.items() if rx.search(description))

    def with_patterns(self, extra: Mapping[str, str]) -> "ErrorClassifier":
        """Return a classifier with additional or replaced patterns."""
        merged = dict(self.patterns)
        merged.update(extra)
        return ErrorClassifier(patterns=merged)


DEFAULT_CLASSIFIER = ErrorClassifier()


def extract_error_codes(err: BaseException | None) -> tuple[str, ...]:
    """Collect codes from an error and its cause chain."""
    codes: list[str] = []
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        codes.extend(getattr(err, "codes", ()) or ())
        err = err.__cause__
    return tuple(dict.fromkeys(codes))


def is_user_error(codes: Iterable[str]) -> bool:
    """Whether any of the codes points at a problem the user has to fix."""
    return any(code in USER_ERROR_CODES for code in codes)
