from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler


class InvalidStateError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The record is not in a state that allows this action."
    default_code = "invalid_state"


class ConfirmationRequired(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "This action must be explicitly confirmed."
    default_code = "confirmation_required"


class ReceiptUploadError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "Failed to upload receipt"
    default_code = "receipt_upload_failed"


def _error_code(exc):
    code = getattr(getattr(exc, "detail", None), "code", None)
    return code or getattr(exc, "default_code", "error")


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(response.data, dict):
        detail = response.data.get("detail", "Request failed")
        fields = {k: v for k, v in response.data.items() if k != "detail"}
    else:
        detail = "Request failed"
        fields = {}

    response.data = {
        "code": _error_code(exc),
        "detail": detail,
        "fields": fields,
    }
    return response
