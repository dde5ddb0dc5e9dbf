"""Access control for Hive catalogs (``hive.security``)."""

from __future__ import annotations

from hive_runner.connectors.hive.config import ALLOW_ALL, READ_ONLY, SQL_STANDARD
from hive_runner.errors import AccessDeniedError, ConfigurationError
from hive_runner.metastore import Database, PrincipalType
from hive_runner.session import ADMIN_ROLE, RoleType, Session

PUBLIC_ROLE = "public"


def _deny(message: str) -> AccessDeniedError:
    return AccessDeniedError(f"Access Denied: {message}")


class AccessControl:
    """Allows everything."""

    def check_can_create_schema(self, session: Session, schema_name: str) -> None:
        pass

    def check_can_create_table(self, session: Session, database: Database, table_name: str) -> None:
        pass


class ReadOnlyAccessControl(AccessControl):
    def check_can_create_schema(self, session: Session, schema_name: str) -> None:
        raise _deny(f"Cannot create schema {schema_name}")

    def check_can_create_table(self, session: Session, database: Database, table_name: str) -> None:
        raise _deny(f"Cannot create table {database.database_name}.{table_name}")


class SqlStandardAccessControl(AccessControl):
    """Schema owners may create tables in their schema; only ``admin`` may create schemas.

    Every user holds the ``public`` role, so schemas owned by ``public``
    are writable by anyone.
    """

    def __init__(self, catalog_name: str) -> None:
        self.catalog_name = catalog_name

    def _enabled_roles(self, session: Session) -> set[str]:
        selected = session.enabled_role(self.catalog_name)
        roles = {PUBLIC_ROLE}
        if selected is not None and selected.type == RoleType.ROLE:
            roles.add(selected.role)
        return roles

    def is_admin(self, session: Session) -> bool:
        return ADMIN_ROLE in self._enabled_roles(session)

    def is_database_owner(self, session: Session, database: Database) -> bool:
        if self.is_admin(session):
            return True
        if database.owner_type == PrincipalType.USER:
            return database.owner_name == session.user
        if database.owner_type == PrincipalType.ROLE:
            return database.owner_name in self._enabled_roles(session)
        return False

    def check_can_create_schema(self, session: Session, schema_name: str) -> None:
        if not self.is_admin(session):
            raise _deny(f"Cannot create schema {schema_name}")

    def check_can_create_table(self, session: Session, database: Database, table_name: str) -> None:
        if not self.is_database_owner(session, database):
            raise _deny(f"Cannot create table {database.database_name}.{table_name}")


def create_access_control(security: str, catalog_name: str) -> AccessControl:
    if security == ALLOW_ALL:
        return AccessControl()
    if security == READ_ONLY:
        return ReadOnlyAccessControl()
    if security == SQL_STANDARD:
        return SqlStandardAccessControl(catalog_name)
    raise ConfigurationError(f"Unsupported security mode: '{security}'")
