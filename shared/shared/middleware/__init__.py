from shared.middleware.error_handler import register_error_handlers
from shared.middleware.request_id import RequestIdLogFilter, request_id_middleware

__all__ = ["RequestIdLogFilter", "register_error_handlers", "request_id_middleware"]
