from shared.constants.roles import STAFF_ROLES, Role

__all__ = ["Role", "STAFF_ROLES"]
