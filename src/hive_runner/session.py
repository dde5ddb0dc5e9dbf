"""Execution sessions: identity, active catalog/schema and role grants."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType

HIVE_CATALOG = "hive"
HIVE_BUCKETED_CATALOG = "hive_bucketed"
TPCH_SCHEMA = "tpch"
TPCH_BUCKETED_SCHEMA = "tpch_bucketed"

RUNNER_USER = "hive"
ADMIN_ROLE = "admin"


class RoleType(str, Enum):
    ROLE = "ROLE"
    ALL = "ALL"
    NONE = "NONE"


@dataclass(frozen=True)
class SelectedRole:
    """A role enabled for one catalog (``SET ROLE``)."""

    type: RoleType
    role: str | None = None

    def __post_init__(self) -> None:
        if self.type == RoleType.ROLE and not self.role:
            raise ValueError("role must be set when type is ROLE")
        if self.type != RoleType.ROLE and self.role is not None:
            raise ValueError(f"role must not be set when type is {self.type.value}")

    @classmethod
    def of(cls, role: str) -> SelectedRole:
        return cls(RoleType.ROLE, role)


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class Identity:
    user: str
    connector_roles: Mapping[str, SelectedRole] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "connector_roles", _frozen(self.connector_roles))

    @classmethod
    def for_user(cls, user: str, connector_roles: Mapping[str, SelectedRole] | None = None) -> Identity:
        return cls(user=user, connector_roles=connector_roles or {})


@dataclass(frozen=True)
class Session:
    """Immutable execution context; derive variants with :meth:`replace`."""

    identity: Identity
    catalog: str | None = None
    schema: str | None = None
    catalog_properties: Mapping[str, Mapping[str, str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.schema is not None and self.catalog is None:
            raise ValueError("schema is set but catalog is not")
        object.__setattr__(
            self,
            "catalog_properties",
            _frozen({k: _frozen(v) for k, v in self.catalog_properties.items()}),
        )

    @property
    def user(self) -> str:
        return self.identity.user

    def replace(self, **changes) -> Session:
        return replace(self, **changes)

    def enabled_role(self, catalog: str) -> SelectedRole | None:
        return self.identity.connector_roles.get(catalog)

    def get_catalog_property(self, catalog: str, name: str) -> str | None:
        return self.catalog_properties.get(catalog, {}).get(name)

    def with_catalog_property(self, catalog: str, name: str, value: str) -> Session:
        merged = {k: dict(v) for k, v in self.catalog_properties.items()}
        merged.setdefault(catalog, {})[name] = value
        return replace(self, catalog_properties=merged)


def test_session(
    identity: Identity | None = None,
    catalog: str | None = "tpch",
    schema: str | None = "tiny",
) -> Session:
    """Session for ad-hoc statements against the benchmark catalog."""
    return Session(identity=identity or Identity.for_user("user"), catalog=catalog, schema=schema)


# pytest would otherwise try to collect the helper above
test_session.__test__ = False  # type: ignore[attr-defined]


def create_session(role: SelectedRole | None = None) -> Session:
    """Default runner session, scoped to ``hive.tpch``."""
    roles = {HIVE_CATALOG: role} if role is not None else {}
    return Session(
        identity=Identity.for_user(RUNNER_USER, roles),
        catalog=HIVE_CATALOG,
        schema=TPCH_SCHEMA,
    )


def create_bucketed_session(role: SelectedRole | None = None) -> Session:
    """Session scoped to ``hive_bucketed.tpch_bucketed``; the role applies to both Hive catalogs."""
    roles = {HIVE_CATALOG: role, HIVE_BUCKETED_CATALOG: role} if role is not None else {}
    return Session(
        identity=Identity.for_user(RUNNER_USER, roles),
        catalog=HIVE_BUCKETED_CATALOG,
        schema=TPCH_BUCKETED_SCHEMA,
    )
