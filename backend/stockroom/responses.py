# Overview: JSON envelopes returned by every API route.

from __future__ import annotations

from flask import jsonify

from .errors import ServiceError


def success(message: str, data=None, status: int = 200, **extra):
    body = {"success": True, "message": message, "data": data}
    body.update(extra)
    return jsonify(body), status


def failure(message: str, status: int, error: str | None = None, **extra):
    body = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    body.update(extra)
    return jsonify(body), status


def from_service_error(exc: ServiceError):
    return failure(exc.message, exc.status_code, **exc.extra)
