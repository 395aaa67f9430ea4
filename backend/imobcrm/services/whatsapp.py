"""WhatsApp instance status bookkeeping on top of an Evolution-style REST API.

The provider owns the actual session; this module only tracks which state an
instance is in and refuses transitions that make no sense (asking for a QR
code on an instance that is already connected, for example).
"""
import logging
from datetime import datetime
from typing import Any

import requests
from sqlalchemy.orm import Session

from imobcrm.core.config import get_settings
from imobcrm.core.errors import InvalidTransition
from imobcrm.models.whatsapp import InstanceState, WhatsappInstance

logger = logging.getLogger(__name__)

TRANSITIONS: dict[InstanceState, set[InstanceState]] = {
    InstanceState.disconnected: {InstanceState.connecting, InstanceState.awaiting_qr, InstanceState.connected, InstanceState.error},
    InstanceState.connecting: {InstanceState.awaiting_qr, InstanceState.connected, InstanceState.disconnected, InstanceState.error},
    InstanceState.awaiting_qr: {InstanceState.connecting, InstanceState.connected, InstanceState.disconnected, InstanceState.error},
    InstanceState.connected: {InstanceState.connecting, InstanceState.disconnected, InstanceState.error},
    InstanceState.error: {InstanceState.connecting, InstanceState.awaiting_qr, InstanceState.connected, InstanceState.disconnected},
}

PROVIDER_STATES: dict[str, InstanceState] = {
    "open": InstanceState.connected,
    "connected": InstanceState.connected,
    "close": InstanceState.disconnected,
    "closed": InstanceState.disconnected,
    "disconnected": InstanceState.disconnected,
    "connecting": InstanceState.connecting,
    "qrcode": InstanceState.awaiting_qr,
}


def map_provider_state(raw: str | None) -> InstanceState:
    state = PROVIDER_STATES.get((raw or "").strip().lower())
    if state is None:
        logger.warning("Unknown WhatsApp provider state %r", raw)
        return InstanceState.error
    return state


def can_transition(current: InstanceState, target: InstanceState) -> bool:
    return current == target or target in TRANSITIONS[current]


def transition(instance: WhatsappInstance, target: InstanceState, force: bool = False) -> WhatsappInstance:
    """Move ``instance`` to ``target``; ``force`` skips the table for states reported by the provider."""
    current = InstanceState(instance.state)
    if not force and not can_transition(current, target):
        raise InvalidTransition(current.value, target.value)
    if current != target:
        logger.info("Instance %s: %s -> %s", instance.instance_name, current.value, target.value)
    instance.state = target.value
    if target == InstanceState.connected:
        instance.last_connection = datetime.utcnow()
        instance.qr_code_base64 = None
        instance.last_error = None
    elif target == InstanceState.disconnected:
        instance.qr_code_base64 = None
    return instance


class EvolutionClient:
    def __init__(self, base_url: str | None = None, api_key: str | None = None, timeout: int | None = None):
        settings = get_settings()
        self.base_url = (base_url if base_url is not None else settings.EVOLUTION_API_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.EVOLUTION_API_KEY
        self.timeout = timeout or settings.EVOLUTION_TIMEOUT_SECONDS

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.api_key)

    def _request(self, method: str, endpoint: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.configured:
            return {"status": "not_configured"}
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        headers = {"Content-Type": "application/json", "apikey": self.api_key}
        try:
            response = requests.request(method, url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("WhatsApp API %s %s failed: %s", method, endpoint, exc)
            return {"status": "error", "detail": str(exc)}
        if not response.ok:
            return {"status": "failed", "code": response.status_code, "detail": response.text[:500]}
        try:
            data = response.json()
        except ValueError:
            data = {}
        return {"status": "ok", "data": data}

    def create_instance(self, instance_name: str, webhook_url: str | None = None) -> dict[str, Any]:
        payload: dict[str, Any] = {"instanceName": instance_name, "qrcode": True, "integration": "WHATSAPP-BAILEYS"}
        if webhook_url:
            payload["webhook"] = webhook_url
        return self._request("POST", "instance/create", payload)

    def connect(self, instance_name: str) -> dict[str, Any]:
        return self._request("GET", f"instance/connect/{instance_name}")

    def connection_state(self, instance_name: str) -> dict[str, Any]:
        return self._request("GET", f"instance/connectionState/{instance_name}")

    def logout(self, instance_name: str) -> dict[str, Any]:
        return self._request("DELETE", f"instance/logout/{instance_name}")


def _provider_state(data: dict[str, Any]) -> str | None:
    return (data.get("instance") or {}).get("state") or data.get("state")


def _record_failure(instance: WhatsappInstance, result: dict[str, Any]) -> None:
    instance.last_error = str(result.get("detail") or result.get("status"))
    transition(instance, InstanceState.error)


def get_instance(db: Session, instance_name: str) -> WhatsappInstance | None:
    return db.query(WhatsappInstance).filter(WhatsappInstance.instance_name == instance_name).first()


def create_instance(db: Session, client: EvolutionClient, instance_name: str, user_id: int) -> tuple[WhatsappInstance, dict]:
    instance = WhatsappInstance(instance_name=instance_name, user_id=user_id, state=InstanceState.disconnected.value)
    db.add(instance)
    result = client.create_instance(instance_name, get_settings().WHATSAPP_WEBHOOK_URL or None)
    if result["status"] in ("error", "failed"):
        _record_failure(instance, result)
    db.commit()
    db.refresh(instance)
    return instance, result


def connect_instance(db: Session, client: EvolutionClient, instance: WhatsappInstance) -> dict:
    # Validate before calling out: a connected instance has no QR code to show.
    if not can_transition(InstanceState(instance.state), InstanceState.awaiting_qr):
        raise InvalidTransition(instance.state, InstanceState.awaiting_qr.value)
    result = client.connect(instance.instance_name)
    if result["status"] == "ok":
        transition(instance, InstanceState.connecting)
        data = result.get("data") or {}
        qr = data.get("base64")
        raw = _provider_state(data)
        if qr:
            instance.qr_code_base64 = qr
            transition(instance, InstanceState.awaiting_qr)
        elif raw:
            transition(instance, map_provider_state(raw), force=True)
        else:
            _record_failure(instance, {"detail": "Provider returned no QR code"})
    elif result["status"] != "not_configured":
        _record_failure(instance, result)
    db.commit()
    db.refresh(instance)
    return result


def refresh_instance(db: Session, client: EvolutionClient, instance: WhatsappInstance) -> dict:
    result = client.connection_state(instance.instance_name)
    if result["status"] == "ok":
        # The provider owns the session, so its state wins over ours.
        raw = _provider_state(result.get("data") or {})
        state = map_provider_state(raw)
        transition(instance, state, force=True)
        if raw and state == InstanceState.error:
            instance.last_error = f"Unknown provider state: {raw}"
    elif result["status"] != "not_configured":
        _record_failure(instance, result)
    db.commit()
    db.refresh(instance)
    return result


def disconnect_instance(db: Session, client: EvolutionClient, instance: WhatsappInstance) -> dict:
    if not can_transition(InstanceState(instance.state), InstanceState.disconnected):
        raise InvalidTransition(instance.state, InstanceState.disconnected.value)
    result = client.logout(instance.instance_name)
    if result["status"] in ("ok", "not_configured"):
        transition(instance, InstanceState.disconnected)
    else:
        _record_failure(instance, result)
    db.commit()
    db.refresh(instance)
    return result
