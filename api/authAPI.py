# /api/authAPI.py
# CineTrack - Session endpoints (login, register, logout, me, password)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.auth import AuthService

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginIn(BaseModel):
    email: str
    password: str


class RegisterIn(LoginIn):
    inviteCode: str = ""


class PasswordIn(BaseModel):
    currentPassword: str
    newPassword: str
    confirmPassword: str


def _auth(request: Request) -> AuthService:
    svc = getattr(request.app.state, "auth", None)
    if svc is None:
        raise HTTPException(status_code=503, detail="auth not ready")
    return svc


def _session(svc: AuthService, ok: bool, code: int = 401) -> JSONResponse:
    body = {"ok": ok, "error": svc.error, "user": svc.user if ok else None}
    return JSONResponse(body, status_code=200 if ok else code, headers={"Cache-Control": "no-store"})


@router.post("/login")
def api_login(request: Request, payload: LoginIn) -> JSONResponse:
    svc = _auth(request)
    return _session(svc, svc.login(payload.email.strip(), payload.password))


@router.post("/register")
def api_register(request: Request, payload: RegisterIn) -> JSONResponse:
    svc = _auth(request)
    return _session(svc, svc.register(payload.email.strip(), payload.password, payload.inviteCode.strip()), 400)


@router.post("/logout")
def api_logout(request: Request) -> JSONResponse:
    _auth(request).logout()
    return JSONResponse({"ok": True}, headers={"Cache-Control": "no-store"})


@router.get("/me")
def api_me(request: Request) -> JSONResponse:
    svc = _auth(request)
    ok = svc.verify_session()
    return JSONResponse(
        {"authenticated": ok, "user": svc.user if ok else None},
        headers={"Cache-Control": "no-store"},
    )


@router.put("/password")
def api_password(request: Request, payload: PasswordIn) -> JSONResponse:
    svc = _auth(request)
    ok = svc.change_password(payload.currentPassword, payload.newPassword, payload.confirmPassword)
    return JSONResponse({"ok": ok, "error": svc.password_error}, status_code=200 if ok else 400)
