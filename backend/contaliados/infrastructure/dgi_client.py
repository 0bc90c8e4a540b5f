"""
Cliente para envío de CFE (comprobante fiscal electrónico) a DGI
================================================================

Sin URL o API key configuradas devuelve un CAE simulado y deja un aviso
en el log.
"""
import random
import time
from typing import Any, Dict, Optional

import httpx

from ..config import settings
from .logging_config import get_logger

logger = get_logger("dgi")


class DGIError(Exception):
    """Error de comunicación o rechazo de DGI"""
    pass


class DGIClient:
    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.url = url if url is not None else settings.dgi_url_webservice
        self.api_key = api_key if api_key is not None else settings.dgi_api_key
        self.timeout = timeout or settings.dgi_timeout_seconds
        self.transport = transport

    @property
    def configurado(self) -> bool:
        return bool(self.url and self.api_key)

    def _simular(self, cfe: Dict[str, Any]) -> Dict[str, Any]:
        logger.warning(
            f"DGI no configurado: se devuelve CAE simulado para CFE {cfe.get('serie')}-{cfe.get('numero')}"
        )
        cae = f"{int(time.time() * 1000)}-{random.randint(100000, 999999)}"
        return {
            "success": True,
            "simulado": True,
            "cae": cae,
            "mensaje": "CFE aceptado por DGI (simulado)",
        }

    def enviar_cfe(self, cfe: Dict[str, Any]) -> Dict[str, Any]:
        """
        Envía el CFE y devuelve {success, cae, mensaje, respuesta}.
        Lanza DGIError si DGI rechaza o no responde.
        """
        if not self.configurado:
            return self._simular(cfe)

        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.url, json=cfe, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Error de comunicación con DGI: {e}")
            raise DGIError(f"Error de comunicación con DGI: {e}")

        try:
            data = response.json()
        except ValueError:
            data = {"raw": response.text}
        if not isinstance(data, dict):
            data = {"raw": data}

        if response.status_code >= 400:
            mensaje = data.get("mensaje") or data.get("error") or response.text
            logger.error(f"DGI rechazó el CFE ({response.status_code}): {mensaje}")
            raise DGIError(f"DGI rechazó el CFE ({response.status_code}): {mensaje}")

        cae = data.get("cae") or data.get("CAE")
        if not cae:
            raise DGIError("Respuesta de DGI sin CAE")
        logger.info(f"CFE {cfe.get('serie')}-{cfe.get('numero')} aceptado por DGI, CAE {cae}")
        return {
            "success": True,
            "simulado": False,
            "cae": cae,
            "mensaje": data.get("mensaje", "CFE aceptado por DGI"),
            "respuesta": data,
        }
