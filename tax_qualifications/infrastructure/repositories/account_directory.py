"""Sign-in accounts kept in the document store with bcrypt password hashes."""
from __future__ import annotations

import logging

from passlib.context import CryptContext

from tax_qualifications.domain.errors import UserAccountError
from tax_qualifications.domain.repositories import AccountDirectory
from tax_qualifications.infrastructure.storage.document_store import DocumentStore

LOGGER = logging.getLogger(__name__)

ACCOUNTS_COLLECTION = "accounts"
MIN_PASSWORD_LENGTH = 6

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class DocumentAccountDirectory(AccountDirectory):
    def __init__(self, store: DocumentStore, collection: str = ACCOUNTS_COLLECTION) -> None:
        self._store = store
        self._collection = collection

    @staticmethod
    def _check_password(password: str) -> None:
        if len(password) < MIN_PASSWORD_LENGTH:
            raise UserAccountError(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres")

    def create_account(self, email: str, password: str, display_name: str) -> str:
        email = email.strip().lower()
        self._check_password(password)
        if self._store.query(self._collection, {"email": email}):
            raise UserAccountError(f"Ya existe una cuenta para {email}")
        uid = self._store.add(
            self._collection,
            {
                "email": email,
                "displayName": display_name,
                "passwordHash": pwd_context.hash(password),
                "disabled": False,
            },
        )
        LOGGER.info("Created account %s for %s", uid, email)
        return uid

    def set_disabled(self, uid: str, disabled: bool) -> None:
        if self._store.get(self._collection, uid) is None:
            raise UserAccountError(f"Cuenta {uid} no encontrada")
        self._store.set(self._collection, uid, {"disabled": disabled}, merge=True)

    def verify(self, email: str, password: str) -> str | None:
        matches = self._store.query(self._collection, {"email": email.strip().lower()})
        if not matches:
            return None
        account = matches[0]
        if account.get("disabled"):
            return None
        expected = account.get("passwordHash")
        if not expected or not pwd_context.verify(password, expected):
            return None
        return account["id"]

    def reset_password(self, uid: str, new_password: str) -> None:
        self._check_password(new_password)
        if self._store.get(self._collection, uid) is None:
            raise UserAccountError(f"Cuenta {uid} no encontrada")
        self._store.set(self._collection, uid, {"passwordHash": pwd_context.hash(new_password)}, merge=True)
