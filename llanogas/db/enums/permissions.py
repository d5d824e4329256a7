"""Role permission helper sets."""

from llanogas.db.enums.auth import Role

# Administrator roles (receive ingestion notifications, run mailbox sync)
ADMIN_ROLES = {Role.ADMINISTRADOR_SISTEMA, Role.ADMINISTRADOR_ASIGNACIONES}

# Roles that can assign cases to a responsible user
ROLES_CAN_ASSIGN = ADMIN_ROLES

# Roles that create, edit and move cases through drafting and sending
ROLES_CAN_MANAGE_CASES = ADMIN_ROLES | {Role.GESTOR}

# Roles that can approve a legal review
ROLES_CAN_REVIEW = ADMIN_ROLES | {Role.REVISOR_JURIDICO}

# Roles that can give final approval
ROLES_CAN_APPROVE = ADMIN_ROLES | {Role.APROBADOR}

# Roles that can manage regulatory entities
ROLES_CAN_MANAGE_ENTITIES = {Role.ADMINISTRADOR_SISTEMA}

# Roles that can list, create, edit and deactivate users
ROLES_CAN_MANAGE_USERS = {Role.ADMINISTRADOR_SISTEMA}

# Roles that can trigger or control the Gmail sync loop
ROLES_CAN_SYNC_MAIL = ADMIN_ROLES

# Roles that can view metrics
ROLES_CAN_VIEW_METRICS = {
    Role.ADMINISTRADOR_SISTEMA,
    Role.ADMINISTRADOR_ASIGNACIONES,
    Role.ROL_SEGUIMIENTO,
    Role.AUDITOR,
}
