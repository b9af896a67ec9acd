import jwt
import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from backend import config, store
from backend.main import _require_admin, _require_auth
from backend.security import create_access_token, hash_password, verify_access_token, verify_password


def test_password_hash_roundtrip():
    encoded = hash_password("StrongPwd123!")
    assert verify_password("StrongPwd123!", encoded) is True
    assert verify_password("WrongPwd123!", encoded) is False


def test_verify_password_rejects_malformed_hash():
    assert verify_password("anything", "not-a-hash") is False
    assert verify_password("anything", "md5$1$abc$def") is False


def test_verify_access_token_rejects_missing_subject():
    token = jwt.encode({"exp": 9999999999}, config.API_JWT_SECRET, algorithm=config.API_JWT_ALGORITHM)
    with pytest.raises(HTTPException) as exc:
        verify_access_token(token)
    assert exc.value.status_code == 401
    assert "subject" in str(exc.value.detail).lower()


def test_verify_access_token_rejects_expired():
    token = jwt.encode({"sub": "x", "exp": 1}, config.API_JWT_SECRET, algorithm=config.API_JWT_ALGORITHM)
    with pytest.raises(HTTPException) as exc:
        verify_access_token(token)
    assert exc.value.status_code == 401


def test_access_token_carries_role():
    claims = verify_access_token(create_access_token("998900000001", "admin"))
    assert claims["sub"] == "998900000001"
    assert claims["role"] == "admin"


def test_require_auth_checks_active_user():
    db = store.reset()
    db.users[config.API_TEACHER_PHONE]["active"] = False
    credentials = HTTPAuthorizationCredentials(
        scheme="Bearer", credentials=create_access_token(config.API_TEACHER_PHONE, "teacher")
    )
    with pytest.raises(HTTPException) as exc:
        _require_auth(credentials)
    assert exc.value.status_code == 403


def test_require_admin_rejects_teacher():
    with pytest.raises(HTTPException) as exc:
        _require_admin({"role": "teacher"})
    assert exc.value.detail == "Admin role required"


def test_validate_security_settings_rejects_weak_production_secret(monkeypatch):
    monkeypatch.setattr(config, "APP_ENV", "prod")
    monkeypatch.setattr(config, "API_JWT_SECRET", "short")
    with pytest.raises(RuntimeError):
        config.validate_security_settings()
