import pytest

from tax_qualifications.application.dto import NewUserRequest
from tax_qualifications.application.services import build_services
from tax_qualifications.domain.errors import AuthorizationError, UserAccountError
from tax_qualifications.domain.models import Role


def make_request(email="corredor@example.com", role="Corredor", password="secreto1") -> NewUserRequest:
    return NewUserRequest(
        first_name="Juan",
        last_name="Soto",
        national_id="12.345.678-9",
        email=email,
        password=password,
        role=role,
    )


@pytest.fixture
def services(store, settings):
    return build_services(store, settings)


@pytest.fixture
def root(services):
    return services.users.bootstrap_admin(make_request(email="root@example.com", role=""))


def test_bootstrap_creates_single_administrator(services, root):
    assert root.role is Role.ADMIN
    assert root.created_by == "system"

    with pytest.raises(AuthorizationError):
        services.users.bootstrap_admin(make_request(email="other@example.com"))


def test_admin_creates_broker_who_can_sign_in(services, store, root):
    created = services.users.create_user(root, make_request(email="Corredor@Example.com"))

    assert created.email == "corredor@example.com"
    assert created.role is Role.BROKER
    assert created.created_by == root.uid
    assert store.get("users", created.uid)["rol"] == "Corredor"

    signed_in = services.users.sign_in("corredor@example.com", "secreto1")
    assert signed_in.uid == created.uid


def test_broker_cannot_manage_users(services, broker):
    with pytest.raises(AuthorizationError):
        services.users.create_user(broker, make_request())


def test_invalid_requests_are_rejected(services, root):
    with pytest.raises(UserAccountError):
        services.users.create_user(root, make_request(role="Invitado"))
    with pytest.raises(UserAccountError):
        services.users.create_user(root, make_request(password="123"))
    with pytest.raises(UserAccountError):
        services.users.create_user(root, make_request(email="  "))


def test_duplicate_email_is_rejected(services, root):
    services.users.create_user(root, make_request())

    with pytest.raises(UserAccountError):
        services.users.create_user(root, make_request(email="CORREDOR@example.com"))


def test_deactivated_user_cannot_sign_in(services, root):
    created = services.users.create_user(root, make_request())

    services.users.set_active(root, created.uid, False)

    with pytest.raises(AuthorizationError):
        services.users.sign_in("corredor@example.com", "secreto1")


def test_wrong_password_is_rejected(services, root):
    services.users.create_user(root, make_request())

    with pytest.raises(AuthorizationError):
        services.users.sign_in("corredor@example.com", "incorrecta")


def test_update_leaves_role_untouched(services, root):
    created = services.users.create_user(root, make_request())

    updated = services.users.update_user(root, created.uid, first_name="Pedro")

    assert updated.first_name == "Pedro"
    assert updated.role is Role.BROKER


def test_reset_password(services, root):
    created = services.users.create_user(root, make_request())

    services.users.reset_password(root, created.uid, "nueva-clave")

    assert services.users.sign_in("corredor@example.com", "nueva-clave").uid == created.uid
