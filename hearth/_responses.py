from __future__ import annotations

import typing as tp

import httpx

__all__ = ("offline_text_response", "offline_json_response", "OFFLINE_STATUS_CODE")

OFFLINE_STATUS_CODE = 503


def offline_text_response() -> httpx.Response:
    return httpx.Response(OFFLINE_STATUS_CODE, text="Offline", extensions={"offline": True})


def offline_json_response(
    message: str,
    cached: tp.Optional[bool] = None,
    expired: tp.Optional[bool] = None,
) -> httpx.Response:
    """
    Synthetic 503 telling the page it is offline.

    `cached` and `expired` are only part of the payload when given, so the
    plain network-first fallback keeps its two-field shape.
    """
    payload: tp.Dict[str, tp.Any] = {"error": "Offline", "message": message}
    if cached is not None:
        payload["cached"] = cached
    if expired is not None:
        payload["expired"] = expired
    return httpx.Response(OFFLINE_STATUS_CODE, json=payload, extensions={"offline": True})
