"""
Test helper functions and factory methods for the ETL monitoring portal.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union
from urllib.parse import parse_qsl, urlsplit

import httpx

APPS_SCRIPT_URL = "https://script.google.com/macros/s/test-deployment/exec"
ALLOWED_DOMAIN = "transperuana.com.pe"

ResponseSpec = Union[Dict[str, Any], httpx.Response, Callable[[httpx.Request], httpx.Response]]


@dataclass
class TestUser:
    """Test user data."""
    email: str
    role: str
    name: str = "Usuario de Prueba"


class TestDataFactory:
    """Factory for creating test data."""

    @staticmethod
    def create_test_users() -> List[TestUser]:
        return [
            TestUser(email=f"ana.torres@{ALLOWED_DOMAIN}", role="EJECUTIVO", name="Ana Torres"),
            TestUser(email=f"admin.portal@{ALLOWED_DOMAIN}", role="ADMIN", name="Admin Portal"),
        ]

    @staticmethod
    def create_test_procesos(count: int, *, owner: str = f"ana.torres@{ALLOWED_DOMAIN}", start: int = 0) -> List[Dict[str, Any]]:
        return [
            {
                "idProceso": f"PROC-{start + index:05d}",
                "fechaHoraProceso": "2025-01-15T10:30:00Z",
                "usuario": owner,
                "cliente": "Cliente Demo SAC",
                "compania": "RIMAC",
                "tipoSeguro": "SCTR",
                "registrosTotales": 120,
                "registrosOK": 118,
                "registrosConError": 2,
                "estado": "COMPLETADO",
                "duracionSegundos": 42,
            }
            for index in range(count)
        ]

    @staticmethod
    def create_dashboard_response() -> Dict[str, Any]:
        return {
            "success": True,
            "kpis": {
                "procesosHoy": 12,
                "registrosProcesados": 5400,
                "tasaExito": 98.5,
                "tiempoPromedio": 37,
            },
            "chartData": [],
            "actividadReciente": [],
        }


@dataclass
class UpstreamStub:
    """Programmable fake Apps Script backend for ``httpx.MockTransport``.

    Responses are registered per action; dict specs are returned as JSON with
    status 200. Every request is recorded with its decoded query parameters.
    """

    responses: Dict[str, ResponseSpec] = field(default_factory=dict)
    requests: List[httpx.Request] = field(default_factory=list)

    def on(self, action: str, response: ResponseSpec) -> "UpstreamStub":
        self.responses[action] = response
        return self

    def calls(self, action: Optional[str] = None) -> List[Dict[str, str]]:
        """Decoded query parameters of recorded GETs (optionally for one action)."""
        recorded = [dict(parse_qsl(urlsplit(str(request.url)).query)) for request in self.requests if request.method == "GET"]
        if action is None:
            return recorded
        return [params for params in recorded if params.get("action") == action]

    def posted_bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests if request.method == "POST"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            action = json.loads(request.content).get("action")
        else:
            action = request.url.params.get("action")

        responder = self.responses.get(action)
        if responder is None:
            return httpx.Response(200, json={"success": False, "error": f"Acción desconocida: {action}"})
        if callable(responder):
            return responder(request)
        if isinstance(responder, httpx.Response):
            return responder
        return httpx.Response(200, json=responder)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)
