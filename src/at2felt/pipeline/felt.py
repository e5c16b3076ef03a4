"""
FeltLayerManager - Layer Synchronizer

Creates or refreshes a named layer on a Felt map from a public CSV URL.
Felt fetches the URL itself, so the URL must stay reachable until the
layer has been imported.

Endpoints (Felt API v2, bearer token):
    GET  /maps/{map_id}/layers
    GET  /maps/{map_id}/layers/{layer_id}
    POST /maps/{map_id}/upload                      {name, import_url}
    POST /maps/{map_id}/layers/{layer_id}/refresh   {import_url}
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any, Optional

import requests
from pydantic import ValidationError

from ..domain.enums import LayerStatus, SyncAction
from ..domain.models import LayerInfo, SyncResult
from ..types import LayerSyncError

logger = logging.getLogger(__name__)


class FeltLayerManager:
    """
    Layer lifecycle for one Felt map.

    ``sync`` always lists layers before writing, so a layer name never gets
    a second layer: an existing layer is refreshed in place. Layers are
    never deleted here.
    """

    def __init__(
        self,
        api_key: str,
        map_id: str,
        api_url: str = "https://felt.com/api/v2",
        session: Optional[requests.Session] = None,
        timeout_s: float = 30,
    ):
        self.api_key = api_key
        self.map_id = map_id
        self.api_url = api_url.rstrip("/")
        self.timeout_s = timeout_s
        self._session = session or requests.Session()

    # ----------------------------
    # HTTP helpers
    # ----------------------------
    def _url(self, path: str) -> str:
        return f"{self.api_url}/maps/{self.map_id}{path}"

    def _request(self, method: str, path: str, payload: Optional[dict[str, Any]] = None) -> Any:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        url = self._url(path)
        try:
            response = self._session.request(
                method,
                url,
                json=payload,
                headers=headers,
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise LayerSyncError(f"{method} {url} failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise LayerSyncError(
                f"{method} {url} was rejected",
                status_code=response.status_code,
                body=response.text,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise LayerSyncError(
                f"{method} {url} returned invalid JSON",
                status_code=response.status_code,
                body=response.text,
            ) from e

    # ----------------------------
    # Layer operations
    # ----------------------------
    def list_layers(self) -> list[LayerInfo]:
        data = self._request("GET", "/layers")
        if not isinstance(data, list):
            raise LayerSyncError(f"Expected a list of layers, got {type(data).__name__}")
        try:
            return [LayerInfo(id=str(item["id"]), name=item["name"], status=item.get("status")) for item in data]
        except (KeyError, TypeError, ValidationError) as e:
            raise LayerSyncError(f"Malformed layer entry in layer list: {e}") from e

    def find_layer(self, name: str) -> Optional[LayerInfo]:
        """Return the first layer with an exactly matching name, or None."""
        matches = [layer for layer in self.list_layers() if layer.name == name]
        if len(matches) > 1:
            logger.warning(
                f"Map {self.map_id} holds {len(matches)} layers named '{name}'; "
                f"using {matches[0].id}"
            )
        return matches[0] if matches else None

    def get_layer(self, layer_id: str) -> dict[str, Any]:
        data = self._request("GET", f"/layers/{layer_id}")
        if not isinstance(data, dict):
            raise LayerSyncError(f"Expected a layer object for {layer_id}")
        return data

    def create_layer(self, name: str, import_url: str) -> dict[str, Any]:
        logger.info(f"Creating layer '{name}' from {import_url}")
        return self._request("POST", "/upload", {"name": name, "import_url": import_url})

    def refresh_layer(self, layer_id: str, import_url: str) -> dict[str, Any]:
        logger.info(f"Refreshing layer {layer_id} from {import_url}")
        return self._request("POST", f"/layers/{layer_id}/refresh", {"import_url": import_url})

    def sync(self, name: str, import_url: str) -> SyncResult:
        """
        Create the layer if no layer carries ``name``, otherwise refresh it.

        Raises:
            LayerSyncError: On any list, create or refresh failure
        """
        existing = self.find_layer(name)

        if existing is None:
            response = self.create_layer(name, import_url)
            layer_id = _layer_id_from(response)
            logger.info(f"New layer '{name}' created in Felt map {self.map_id}")
            return SyncResult(action=SyncAction.CREATED, layer_id=layer_id, import_url=import_url, response=response)

        response = self.refresh_layer(existing.id, import_url)
        logger.info(f"Layer '{name}' ({existing.id}) refreshed in Felt map {self.map_id}")
        return SyncResult(action=SyncAction.REFRESHED, layer_id=existing.id, import_url=import_url, response=response)

    def wait_until_processed(
        self,
        layer_id: str,
        timeout_s: float = 120,
        interval_s: float = 3,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> Optional[str]:
        """
        Poll the layer until Felt stops processing it or the deadline passes.

        Returns:
            Last status reported by Felt (None if the layer reports none)
        """
        deadline = clock() + timeout_s
        while True:
            status = self.get_layer(layer_id).get("status")
            if status not in LayerStatus.in_flight():
                logger.info(f"Layer {layer_id} status: {status}")
                return status
            if clock() >= deadline:
                logger.warning(f"Layer {layer_id} still '{status}' after {timeout_s:.0f}s")
                return status
            logger.debug(f"Layer {layer_id} is {status}; checking again in {interval_s:.0f}s")
            sleep(interval_s)


def _layer_id_from(response: Any) -> Optional[str]:
    """Felt answers uploads with ``layer_id``; older responses carry ``id``."""
    if not isinstance(response, dict):
        return None
    layer_id = response.get("layer_id") or response.get("id")
    return str(layer_id) if layer_id else None
