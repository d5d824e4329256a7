from enum import Enum


class Role(str, Enum):
    """
    User roles.

    - ADMINISTRADOR_SISTEMA: platform admin (entities, users, mailbox sync)
    - ADMINISTRADOR_ASIGNACIONES: assigns incoming cases to managers
    - GESTOR: drafts responses and drives a case to sending
    - REVISOR_JURIDICO: legal review of drafts
    - APROBADOR: final approval before legal signature
    - ROL_SEGUIMIENTO: follow-up and metrics (read only)
    - AUDITOR: audit trail and metrics (read only)
    """

    ADMINISTRADOR_SISTEMA = "ADMINISTRADOR_SISTEMA"
    ADMINISTRADOR_ASIGNACIONES = "ADMINISTRADOR_ASIGNACIONES"
    GESTOR = "GESTOR"
    REVISOR_JURIDICO = "REVISOR_JURIDICO"
    APROBADOR = "APROBADOR"
    ROL_SEGUIMIENTO = "ROL_SEGUIMIENTO"
    AUDITOR = "AUDITOR"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_
