"""Cliente HTTP del proveedor de calendario y resultados (Hyprace vía RapidAPI)."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import httpx

from app.core import config
from app.core.errors import UpstreamError, UpstreamRateLimited

logger = logging.getLogger(__name__)

RATE_LIMIT_STATUS = 429


class ProviderClient:
    """
    Lectura del proveedor. Ante un 429 espera ``backoff * intento`` y reintenta
    hasta ``max_retries`` veces; después falla con ``UpstreamRateLimited``.
    Los 5xx y errores de red siguen la misma política y acaban en ``UpstreamError``.
    """

    def __init__(
        self,
        base_url: str = config.PROVIDER_BASE_URL,
        api_key: str = config.RAPIDAPI_KEY,
        host: str = config.PROVIDER_HOST,
        timeout: float = config.PROVIDER_TIMEOUT,
        max_retries: int = config.PROVIDER_MAX_RETRIES,
        backoff: float = config.PROVIDER_BACKOFF,
        client: httpx.Client | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.max_retries = max(0, max_retries)
        self.backoff = backoff
        self._sleep = sleep
        self._client = client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"X-RapidAPI-Key": api_key, "X-RapidAPI-Host": host},
        )
        self._drivers: dict[str, dict[str, Any]] = {}

    def close(self) -> None:
        self._client.close()

    def get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        attempts = self.max_retries + 1
        for attempt in range(attempts):
            last = attempt >= attempts - 1
            try:
                response = self._client.get(path, params=params)
            except httpx.RequestError as exc:
                logger.warning("Error de red en %s: %s (intento %s/%s)", path, exc, attempt + 1, attempts)
                if last:
                    raise UpstreamError(f"Fallo de red consultando {path}") from exc
                self._sleep(self.backoff)
                continue

            if response.status_code == RATE_LIMIT_STATUS:
                if last:
                    raise UpstreamRateLimited(f"Límite de peticiones agotado en {path} tras {attempts} intentos")
                wait = self.backoff * (attempt + 1)
                logger.warning("429 en %s, esperando %.1fs (intento %s/%s)", path, wait, attempt + 1, attempts)
                self._sleep(wait)
                continue

            if response.status_code >= 500:
                logger.warning("%s devolvió %s (intento %s/%s)", path, response.status_code, attempt + 1, attempts)
                if last:
                    raise UpstreamError(f"{path} devolvió {response.status_code}")
                self._sleep(self.backoff)
                continue

            if response.status_code >= 400:
                raise UpstreamError(f"{path} devolvió {response.status_code}")

            return response.json()

        # No se llega aquí: el último intento siempre devuelve o lanza
        raise UpstreamError(f"Reintentos agotados en {path}")

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------
    def list_events(self, season_year: int) -> list[dict]:
        data = self.get_json("/v2/grands-prix", {"seasonYear": season_year, "pageSize": 25})
        return data.get("items") or []

    def list_race_sessions(self, event_id: str) -> list[dict]:
        data = self.get_json(f"/v2/grands-prix/{event_id}/races")
        return data.get("items") or []

    def list_qualifying_sessions(self, event_id: str) -> list[dict]:
        data = self.get_json(f"/v2/grands-prix/{event_id}/qualifying")
        return data.get("items") or []

    def race_results(self, event_id: str, session_id: str) -> list[dict]:
        data = self.get_json(f"/v2/grands-prix/{event_id}/races/{session_id}/results")
        return data.get("participations") or []

    def qualifying_results(self, event_id: str, session_id: str) -> list[dict]:
        data = self.get_json(f"/v2/grands-prix/{event_id}/qualifying/{session_id}/results")
        return data.get("results") or []

    def driver(self, driver_id: str) -> dict[str, Any]:
        # Los pilotos no cambian en una temporada: memoria por cliente
        if driver_id not in self._drivers:
            data = self.get_json(f"/v2/drivers/{driver_id}")
            items = data.get("items") if isinstance(data, dict) else None
            if items:
                meta = items[0]
            else:
                meta = data.get("driver") or data
            self._drivers[driver_id] = meta
        return self._drivers[driver_id]
