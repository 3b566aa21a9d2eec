# ==============================================================================
# ENTIDADES DEL DOMINIO - Enumeraciones y estructuras de sincronización
# ==============================================================================
# Los registros del negocio (productos, pedidos, usuarios...) se manejan como
# dicts JSON tal cual viajan a la nube. Aquí viven los valores válidos y las
# estructuras propias del store y de la sincronización.
# ==============================================================================

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now_iso() -> str:
    """Timestamp ISO-8601 en UTC con milisegundos (mismo formato que toISOString)."""
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f'{now.microsecond // 1000:03d}Z'


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class UserRole(str, Enum):
    """Roles de usuario disponibles en la app."""
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"
    DRIVER = "DRIVER"
    CASHIER = "CASHIER"


class UnitType(str, Enum):
    """Unidad de venta de un producto."""
    KG = "KG"        # Stock en gramos, se vende por peso
    UNIT = "UNIT"


class OrderStatus(str, Enum):
    """Estados posibles de un pedido."""
    QUOTE_REQUEST = "QUOTE_REQUEST"
    PENDING = "PENDING"
    PAYMENT_PENDING = "PAYMENT_PENDING"
    PAID = "PAID"
    RECEIVED = "RECEIVED"
    PREPARING = "PREPARING"
    READY_FOR_DELIVERY = "READY_FOR_DELIVERY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    MANUAL_SALE = "MANUAL_SALE"


class ActivityAction(str, Enum):
    """Tipos de entrada del log de actividad."""
    LOGIN = "LOGIN"
    EDIT = "EDIT"
    ORDER = "ORDER"
    POS_SALE = "POS_SALE"
    SYNC = "SYNC"
    PRODUCTION = "PRODUCTION"


class BackupMethod(str, Enum):
    """Destino preferido para archivos (imágenes) subidos desde la app."""
    GOOGLE_DRIVE = "GOOGLE_DRIVE"
    FIREBASE = "FIREBASE"
    CUSTOM_DOMAIN = "CUSTOM_DOMAIN"


class BackendStatus(str, Enum):
    """Resultado de un backend dentro de una sincronización."""
    OK = "OK"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"


# ==============================================================================
# PREVIEW
# ==============================================================================

@dataclass
class PreviewData:
    """
    Copia "sombra" de config/products/posts para previsualizar cambios.

    Nunca se persiste ni se sincroniza. Cada campo es None mientras no se
    haya editado esa sección en la preview.
    """
    config: Optional[Dict[str, Any]] = None
    products: Optional[List[Dict[str, Any]]] = None
    posts: Optional[List[Dict[str, Any]]] = None

    SECTIONS = ('config', 'products', 'posts')

    def merge(self, partial: Dict[str, Any]) -> None:
        """Aplica una actualización parcial (copia profunda de cada sección)."""
        for section in self.SECTIONS:
            if section in partial and partial[section] is not None:
                setattr(self, section, copy.deepcopy(partial[section]))

    def staged_sections(self) -> Dict[str, Any]:
        """Secciones con valor, listas para fusionar al estado canónico."""
        return {
            section: copy.deepcopy(getattr(self, section))
            for section in self.SECTIONS
            if getattr(self, section) is not None
        }

    def to_dict(self) -> Dict[str, Any]:
        return {section: copy.deepcopy(getattr(self, section)) for section in self.SECTIONS}


# ==============================================================================
# RESULTADOS DE SINCRONIZACIÓN
# ==============================================================================

@dataclass
class BackendResult:
    """Estado de un backend tras un intento de sincronización."""
    backend: str
    status: BackendStatus
    message: str = ''
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'backend': self.backend,
            'status': self.status.value,
            'message': self.message,
            'duration_ms': round(self.duration_ms, 2),
        }


@dataclass
class SyncReport:
    """
    Reporte explícito de una sincronización (fan-out a todos los backends).

    Attributes:
        timestamp: Timestamp del sobre enviado
        results: Un BackendResult por backend configurado
        ping: Resultado del ping al servidor (best-effort, no cuenta como fallo)
    """
    timestamp: str
    results: List[BackendResult] = field(default_factory=list)
    ping: Optional[BackendResult] = None
    finished_at: Optional[str] = None

    @property
    def token_expired(self) -> List[str]:
        return [r.backend for r in self.results if r.status == BackendStatus.TOKEN_EXPIRED]

    @property
    def succeeded(self) -> List[str]:
        return [r.backend for r in self.results if r.status == BackendStatus.OK]

    @property
    def failed(self) -> List[str]:
        return [r.backend for r in self.results if r.status == BackendStatus.FAILED]

    def finish(self) -> None:
        self.finished_at = utc_now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp,
            'finished_at': self.finished_at,
            'results': [r.to_dict() for r in self.results],
            'ping': self.ping.to_dict() if self.ping else None,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'token_expired': self.token_expired,
        }
