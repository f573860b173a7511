"""
Refetch cadence shared by the server pages and the client runtime.
"""

from typing import Dict

# Base refetch intervals per resource, in milliseconds
POLLING_INTERVALS: Dict[str, int] = {
    "bitacora": 5000,
    "procesos": 5000,
    "dashboard": 15000,
    "errores": 30000,
    "descargas": 30000,
    "config": 60000,
}
