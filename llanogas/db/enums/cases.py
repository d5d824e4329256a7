from enum import Enum


class CaseState(str, Enum):
    """
    Case lifecycle, in order.

    LISTO_ENVIO sits between legal signature and sending; no exposed
    transition targets it.
    """

    RECIBIDO = "RECIBIDO"
    ASIGNADO = "ASIGNADO"
    EN_REDACCION = "EN_REDACCION"
    EN_REVISION = "EN_REVISION"
    EN_APROBACION = "EN_APROBACION"
    FIRMA_LEGAL = "FIRMA_LEGAL"
    LISTO_ENVIO = "LISTO_ENVIO"
    ENVIADO = "ENVIADO"
    CON_ACUSE = "CON_ACUSE"
    CERRADO = "CERRADO"

    @property
    def order(self) -> int:
        return _STATE_ORDER[self]

    @property
    def is_terminal(self) -> bool:
        return self is CaseState.CERRADO


_STATE_ORDER = {state: index for index, state in enumerate(CaseState)}

# States counted as "open" on the dashboard
OPEN_CASE_STATES = (
    CaseState.RECIBIDO,
    CaseState.ASIGNADO,
    CaseState.EN_REDACCION,
    CaseState.EN_REVISION,
    CaseState.EN_APROBACION,
    CaseState.FIRMA_LEGAL,
    CaseState.LISTO_ENVIO,
)

RESOLVED_CASE_STATES = (
    CaseState.ENVIADO,
    CaseState.CON_ACUSE,
    CaseState.CERRADO,
)


class Priority(str, Enum):
    MUY_ALTA = "MUY_ALTA"
    ALTA = "ALTA"
    MEDIA = "MEDIA"
    BAJA = "BAJA"


class ActivityType(str, Enum):
    """Audit trail entry types."""

    CREACION = "CREACION"
    ASIGNACION = "ASIGNACION"
    CAMBIO_ESTADO = "CAMBIO_ESTADO"
    ENVIO_REVISION = "ENVIO_REVISION"
    REVISION_APROBADA = "REVISION_APROBADA"
    APROBACION = "APROBACION"
    ENVIO_FINAL = "ENVIO_FINAL"
    ACUSE_RECIBO = "ACUSE_RECIBO"
    EMAIL_VINCULADO = "EMAIL_VINCULADO"
    COMENTARIO = "COMENTARIO"


class ReviewState(str, Enum):
    """Sub-state shared by Revision and Approval records."""

    PENDIENTE = "PENDIENTE"
    APROBADA = "APROBADA"
    RECHAZADA = "RECHAZADA"
