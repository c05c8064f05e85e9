"""Administrator-gated user account management."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Sequence

from tax_qualifications.application.audit import AuditLogger
from tax_qualifications.application.dto import NewUserRequest
from tax_qualifications.domain.errors import AuthorizationError, NotFoundError, UserAccountError
from tax_qualifications.domain.models import Role, UserProfile
from tax_qualifications.domain.rbac import Permission, require
from tax_qualifications.domain.reconciliation import utc_now
from tax_qualifications.domain.repositories import AccountDirectory, UserRepository

LOGGER = logging.getLogger(__name__)


class UserAdministration:
    """Creates, edits and (de)activates accounts.

    Only administrators may call these operations, and this is the only place a
    role is ever assigned; profile edits leave it untouched.
    """

    def __init__(
        self,
        users: UserRepository,
        accounts: AccountDirectory,
        audit: AuditLogger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._users = users
        self._accounts = accounts
        self._audit = audit
        self._clock = clock

    def _target(self, uid: str) -> UserProfile:
        profile = self._users.get(uid)
        if profile is None:
            raise NotFoundError(f"Usuario {uid} no encontrado")
        return profile

    def create_user(self, actor: UserProfile, request: NewUserRequest) -> UserProfile:
        require(actor, Permission.MANAGE_USERS)
        required = (request.first_name, request.last_name, request.national_id, request.email, request.password)
        if not all(value and value.strip() for value in required) or not request.role:
            raise UserAccountError("Faltan campos requeridos")
        try:
            role = Role(request.role)
        except ValueError as exc:
            raise UserAccountError(f"Rol inválido: {request.role}") from exc

        display_name = f"{request.first_name} {request.last_name}".strip()
        uid = self._accounts.create_account(request.email, request.password, display_name)
        profile = UserProfile(
            uid=uid,
            first_name=request.first_name.strip(),
            last_name=request.last_name.strip(),
            national_id=request.national_id.strip(),
            email=request.email.strip().lower(),
            role=role,
            created_at=self._clock(),
            active=True,
            created_by=actor.uid,
        )
        self._users.save(profile)
        LOGGER.info("User %s (%s) created by %s", uid, role.value, actor.uid)
        self._audit.log_user_created(actor, profile)
        return profile

    def bootstrap_admin(self, request: NewUserRequest) -> UserProfile:
        """Create the first administrator; refused once any administrator exists."""
        if any(profile.role is Role.ADMIN for profile in self._users.list_all()):
            raise AuthorizationError("Ya existe un administrador")
        system = UserProfile(
            uid="system", first_name="Sistema", last_name="", national_id="", email="system", role=Role.ADMIN
        )
        return self.create_user(system, replace(request, role=Role.ADMIN.value))

    def update_user(
        self,
        actor: UserProfile,
        uid: str,
        first_name: str | None = None,
        last_name: str | None = None,
        national_id: str | None = None,
    ) -> UserProfile:
        require(actor, Permission.MANAGE_USERS)
        before = self._target(uid)
        after = replace(
            before,
            first_name=first_name.strip() if first_name else before.first_name,
            last_name=last_name.strip() if last_name else before.last_name,
            national_id=national_id.strip() if national_id else before.national_id,
        )
        self._users.save(after)
        self._audit.log_user_updated(actor, before, after)
        return after

    def set_active(self, actor: UserProfile, uid: str, active: bool) -> UserProfile:
        require(actor, Permission.MANAGE_USERS)
        target = self._target(uid)
        self._accounts.set_disabled(uid, not active)
        updated = replace(target, active=active)
        self._users.save(updated)
        self._audit.log_user_toggle_active(actor, updated, active)
        return updated

    def reset_password(self, actor: UserProfile, uid: str, new_password: str) -> None:
        require(actor, Permission.MANAGE_USERS)
        target = self._target(uid)
        self._accounts.reset_password(uid, new_password)
        self._audit.log_password_reset(actor, target)

    def list_users(self, actor: UserProfile) -> Sequence[UserProfile]:
        require(actor, Permission.MANAGE_USERS)
        return self._users.list_all()

    def sign_in(self, email: str, password: str) -> UserProfile:
        uid = self._accounts.verify(email, password)
        profile = self._users.get(uid) if uid else None
        if profile is None or not profile.active:
            raise AuthorizationError("Credenciales inválidas o cuenta desactivada")
        self._audit.log_login(profile)
        return profile

    def sign_out(self, profile: UserProfile) -> None:
        self._audit.log_logout(profile)
