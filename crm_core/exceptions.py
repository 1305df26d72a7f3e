# crm_core/exceptions.py
from __future__ import annotations

import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotFound, PermissionDenied
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class TransitionDenied(PermissionDenied):
    """
    The validator refused the move. `code` tells role/status denials
    apart from ownership denials.
    """

    default_detail = "You are not allowed to move this customer."
    default_code = "transition_not_allowed"

    def __init__(self, decision):
        super().__init__(detail=decision.reason or self.default_detail, code=decision.code or None)
        self.decision = decision


class CustomerNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Customer not found."
    default_code = "not_found"


class PersistenceFailed(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to update customer status."
    default_code = "persistence_failed"


def _first_code(codes):
    if isinstance(codes, str):
        return codes
    if isinstance(codes, dict):
        for value in codes.values():
            return _first_code(value)
    if isinstance(codes, list) and codes:
        return _first_code(codes[0])
    return "error"


def api_exception_handler(exc, context):
    """
    DRF's handler plus a machine-readable `code` on every error payload:

        {"detail": "...", "code": "not_owner"}

    Field validation errors keep their field map and gain "code": "invalid".
    """
    if isinstance(exc, DjangoPermissionDenied) and not isinstance(exc, APIException):
        exc = PermissionDenied(str(exc) or None)
    elif isinstance(exc, Http404):
        exc = NotFound(str(exc) or None)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, APIException):
        code = _first_code(exc.get_codes())
        if isinstance(response.data, dict):
            if "detail" in response.data:
                response.data["code"] = code
            else:
                response.data = {**response.data, "code": "invalid"}
        elif isinstance(response.data, list):
            response.data = {"detail": response.data, "code": "invalid"}

    if response.status_code >= 500:
        logger.error("API error %s: %s", response.status_code, response.data)

    return response
