from django.http import Http404
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import exceptions, status
import logging

logger = logging.getLogger(__name__)


class BusinessLogicException(Exception):
    """
    Raised when a domain rule is violated (e.g. 'Stock not available').
    """
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code="business_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundException(BusinessLogicException):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message, code="not_found"):
        super().__init__(message, code=code)


class InsufficientStockException(BusinessLogicException):
    def __init__(self, message, code="insufficient_stock"):
        super().__init__(message, code=code)


class StockConflictException(BusinessLogicException):
    """
    The conditional decrement matched no row: stock ran out between the
    availability check and the write.
    """

    def __init__(self, message, code="stock_conflict"):
        super().__init__(message, code=code)


def _first_message(detail):
    if isinstance(detail, list) and detail:
        return _first_message(detail[0])
    if isinstance(detail, dict) and detail:
        key, value = next(iter(detail.items()))
        message = _first_message(value)
        return message if key == "non_field_errors" else f"{key}: {message}"
    return str(detail)


def custom_exception_handler(exc, context):
    # Handle custom BusinessLogicException
    if isinstance(exc, BusinessLogicException):
        return Response(
            {"error": exc.message, "code": exc.code},
            status=exc.status_code
        )

    # Call REST framework's default exception handler first
    response = exception_handler(exc, context)

    # If response is None, it's an unhandled server error (500)
    if response is None:
        logger.error(f"Unhandled Exception: {exc}", exc_info=True)
        return Response(
            {"error": "Internal Server Error", "code": "server_error"},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = {
            "error": _first_message(exc.detail),
            "code": "validation_error",
            "details": exc.detail,
        }
    elif isinstance(exc, Http404):
        response.data = {"error": "Not found.", "code": "not_found"}
    elif isinstance(exc, exceptions.APIException):
        detail = exc.detail
        response.data = {
            "error": str(detail),
            "code": getattr(detail, "code", None) or exc.default_code,
        }

    return response
