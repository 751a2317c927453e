import time
import uuid
from types import SimpleNamespace

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from firebase_admin import auth

from identity_admin.auth.dependencies import get_auth_client, get_storage_handle
from identity_admin.services.auth_client import AuthClient

ADMIN_TOKEN = "admin.header.sig"
USER_TOKEN = "user.header.sig"


class FakeFirebaseAuth:
    """
    In-memory stand-in for firebase_admin.auth.Client.

    Raises the SDK's own exception types so error translation is exercised
    exactly as against the real backend. Every call is recorded in `calls`.
    """

    def __init__(self):
        self.users = {}
        self.passwords = {}
        self.id_tokens = {}
        self.calls = []

    def _record(self, uid):
        data = self.users.get(uid)
        if data is None:
            raise auth.UserNotFoundError(f"No user record found for the provided user ID: {uid}.")
        return SimpleNamespace(**data)

    def _find(self, field, value):
        for data in self.users.values():
            if data[field] == value:
                return SimpleNamespace(**data)
        raise auth.UserNotFoundError(f"No user record found for the provided {field}: {value}.")

    def get_user(self, uid):
        self.calls.append(("get_user", uid))
        return self._record(uid)

    def get_user_by_email(self, email):
        self.calls.append(("get_user_by_email", email))
        return self._find("email", email)

    def get_user_by_phone_number(self, phone_number):
        self.calls.append(("get_user_by_phone_number", phone_number))
        return self._find("phone_number", phone_number)

    def create_user(self, **kwargs):
        self.calls.append(("create_user", kwargs))
        uid = kwargs.get("uid") or uuid.uuid4().hex
        if uid in self.users:
            raise auth.UidAlreadyExistsError("The user with the provided uid already exists", None, None)
        for data in self.users.values():
            if kwargs.get("email") and data["email"] == kwargs["email"]:
                raise auth.EmailAlreadyExistsError("The user with the provided email already exists", None, None)
            if kwargs.get("phone_number") and data["phone_number"] == kwargs["phone_number"]:
                raise auth.PhoneNumberAlreadyExistsError(
                    "The user with the provided phone number already exists", None, None
                )
        self.users[uid] = {
            "uid": uid,
            "email": kwargs.get("email"),
            "phone_number": kwargs.get("phone_number"),
            "display_name": kwargs.get("display_name"),
            "photo_url": kwargs.get("photo_url"),
            "disabled": kwargs.get("disabled", False),
            "email_verified": kwargs.get("email_verified", False),
            "custom_claims": None,
            "user_metadata": SimpleNamespace(
                creation_timestamp=int(time.time() * 1000), last_sign_in_timestamp=None
            ),
            "tokens_valid_after_timestamp": 0,
        }
        if "password" in kwargs:
            self.passwords[uid] = kwargs["password"]
        return self._record(uid)

    def update_user(self, uid, **kwargs):
        self.calls.append(("update_user", uid, kwargs))
        data = self.users.get(uid)
        if data is None:
            raise auth.UserNotFoundError(f"No user record found for the provided user ID: {uid}.")
        for name, value in kwargs.items():
            if name == "password":
                self.passwords[uid] = value
            elif value is auth.DELETE_ATTRIBUTE:
                data[name] = None
            else:
                data[name] = value
        return self._record(uid)

    def delete_user(self, uid):
        self.calls.append(("delete_user", uid))
        if uid not in self.users:
            raise auth.UserNotFoundError(f"No user record found for the provided user ID: {uid}.")
        del self.users[uid]

    def set_custom_user_claims(self, uid, custom_claims):
        self.calls.append(("set_custom_user_claims", uid, custom_claims))
        if uid not in self.users:
            raise auth.UserNotFoundError(f"No user record found for the provided user ID: {uid}.")
        self.users[uid]["custom_claims"] = dict(custom_claims) if custom_claims else None

    def revoke_refresh_tokens(self, uid):
        self.calls.append(("revoke_refresh_tokens", uid))
        if uid not in self.users:
            raise auth.UserNotFoundError(f"No user record found for the provided user ID: {uid}.")
        self.users[uid]["tokens_valid_after_timestamp"] = int(time.time()) * 1000

    def list_users(self, page_token=None, max_results=1000):
        self.calls.append(("list_users", page_token, max_results))
        # Ordered by uid; the token is the last uid of the previous page.
        uids = sorted(self.users)
        if page_token:
            uids = [uid for uid in uids if uid > page_token]
        chunk = uids[:max_results]
        more = len(uids) > max_results
        return SimpleNamespace(
            users=[self._record(uid) for uid in chunk],
            next_page_token=chunk[-1] if more else "",
        )

    def create_custom_token(self, uid, developer_claims=None):
        self.calls.append(("create_custom_token", uid, developer_claims))
        return f"custom.{uid}.sig".encode("utf-8")

    def verify_id_token(self, id_token, check_revoked=False):
        self.calls.append(("verify_id_token", id_token, check_revoked))
        result = self.id_tokens.get(id_token)
        if result is None:
            raise auth.InvalidIdTokenError("Could not verify token signature.")
        if isinstance(result, Exception):
            raise result
        return dict(result)


def decoded_token(uid, **claims):
    now = int(time.time())
    decoded = {
        "iss": "https://securetoken.google.com/test-project",
        "aud": "test-project",
        "auth_time": now - 10,
        "user_id": uid,
        "sub": uid,
        "iat": now,
        "exp": now + 3600,
        "email": f"{uid}@example.com",
        "email_verified": True,
        "firebase": {"identities": {}, "sign_in_provider": "password"},
        "uid": uid,
    }
    decoded.update(claims)
    return decoded


@pytest.fixture(scope="session")
def service_account_info():
    # A throwaway key; signing works locally, nothing is sent anywhere.
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    pem = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")
    return {
        "type": "service_account",
        "project_id": "test-project",
        "private_key_id": "test-key-id",
        "private_key": pem,
        "client_email": "firebase-adminsdk@test-project.iam.gserviceaccount.com",
        "client_id": "1234567890",
        "token_uri": "https://oauth2.googleapis.com/token",
    }


@pytest.fixture()
def fake_auth():
    fake = FakeFirebaseAuth()
    fake.id_tokens[ADMIN_TOKEN] = decoded_token("admin-uid", admin=True)
    fake.id_tokens[USER_TOKEN] = decoded_token("user-uid", premiumAccount=True)
    return fake


@pytest.fixture()
def auth_client(fake_auth):
    return AuthClient(fake_auth)


class FakeStorageHandle:
    def __init__(self, default_bucket_name=None):
        self.default_bucket_name = default_bucket_name

    def default_bucket(self):
        from identity_admin.errors import ConfigError

        if not self.default_bucket_name:
            raise ConfigError("No default storage bucket configured.")
        return self.bucket(self.default_bucket_name)

    def bucket(self, name):
        return SimpleNamespace(name=name, path=f"/b/{name}")


@pytest.fixture()
def app(auth_client):
    from identity_admin.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_auth_client] = lambda: auth_client
    fastapi_app.dependency_overrides[get_storage_handle] = lambda: FakeStorageHandle(
        "test-project.appspot.com"
    )
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    """
    Client authenticated as an administrator.
    """
    with TestClient(app, headers={"Authorization": f"Bearer {ADMIN_TOKEN}"}) as c:
        yield c


@pytest.fixture()
def anonymous_client(app):
    with TestClient(app) as c:
        yield c
