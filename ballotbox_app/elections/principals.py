from __future__ import annotations

from dataclasses import asdict, dataclass
from functools import lru_cache

from django.conf import settings
from django.core import signing
from django.utils.module_loading import import_string

from elections.exceptions import AuthenticationError
from elections.models import Role

PRINCIPAL_TOKEN_SALT = "elections.principal"

ADMIN_ROLES: frozenset[str] = frozenset({Role.chairman, Role.secretary, Role.executive})


@dataclass(frozen=True)
class Principal:
    user_id: str
    organization_id: str
    role: str
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


SYSTEM_USER_ID = "system"


def system_principal(organization_id: str) -> Principal:
    """Principal for operator tooling that drives the normal lifecycle entry
    points without an authenticated request."""

    return Principal(user_id=SYSTEM_USER_ID, organization_id=organization_id, role=Role.chairman)


class PrincipalProvider:
    """Resolve an opaque request credential to the calling principal."""

    def resolve(self, credential: str) -> Principal:
        raise NotImplementedError


class SignedTokenPrincipalProvider(PrincipalProvider):
    """Accept credentials signed with SECRET_KEY by the auth service.

    The payload is trusted as-is once the signature and age check out.
    """

    def __init__(self, max_age: int | None = None) -> None:
        self.max_age = max_age if max_age is not None else settings.ELECTIONS_PRINCIPAL_TOKEN_MAX_AGE

    def resolve(self, credential: str) -> Principal:
        if not credential:
            raise AuthenticationError("No token provided")
        try:
            payload = signing.loads(credential, salt=PRINCIPAL_TOKEN_SALT, max_age=self.max_age)
        except signing.SignatureExpired as exc:
            raise AuthenticationError("Token expired") from exc
        except signing.BadSignature as exc:
            raise AuthenticationError("Invalid token") from exc

        if not isinstance(payload, dict):
            raise AuthenticationError("Invalid token")

        user_id = str(payload.get("user_id") or "").strip()
        organization_id = str(payload.get("organization_id") or "").strip()
        role = str(payload.get("role") or "").strip().lower()
        if not user_id or not organization_id or role not in Role.values:
            raise AuthenticationError("Invalid token")

        return Principal(
            user_id=user_id,
            organization_id=organization_id,
            role=role,
            is_active=bool(payload.get("is_active", True)),
        )


def issue_principal_token(principal: Principal) -> str:
    """Sign a principal the way SignedTokenPrincipalProvider expects it."""

    return signing.dumps(asdict(principal), salt=PRINCIPAL_TOKEN_SALT)


@lru_cache(maxsize=None)
def _provider_class(path: str) -> type[PrincipalProvider]:
    return import_string(path)


def get_principal_provider() -> PrincipalProvider:
    return _provider_class(settings.ELECTIONS_PRINCIPAL_PROVIDER)()
