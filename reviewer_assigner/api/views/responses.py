import logging

from rest_framework import status
from rest_framework.response import Response

from ..errors import (
    AlreadyExists, Conflict, NoCandidate, NotAssigned, NotFound, OperationCancelled, PRMerged,
    ServiceError, TeamExists,
)

logger = logging.getLogger(__name__)

# Порядок важен: TeamExists проверяется раньше AlreadyExists
STATUS_BY_ERROR = (
    (NotFound, status.HTTP_404_NOT_FOUND),
    (TeamExists, status.HTTP_400_BAD_REQUEST),
    (AlreadyExists, status.HTTP_409_CONFLICT),
    (PRMerged, status.HTTP_409_CONFLICT),
    (NotAssigned, status.HTTP_409_CONFLICT),
    (NoCandidate, status.HTTP_409_CONFLICT),
    (Conflict, status.HTTP_409_CONFLICT),
    (OperationCancelled, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def error_response(code: str, message: str, http_status: int) -> Response:
    return Response({
        'error': {
            'code': code,
            'message': message
        }
    }, status=http_status)


def validation_error(message: str) -> Response:
    return error_response('VALIDATION_ERROR', message, status.HTTP_400_BAD_REQUEST)


def service_error_response(error: ServiceError) -> Response:
    for error_class, http_status in STATUS_BY_ERROR:
        if isinstance(error, error_class):
            logger.info("Request refused: %s %s", error.code, error.message)
            return error_response(error.code, error.message, http_status)
    return server_error_response()


def server_error_response() -> Response:
    return error_response('SERVER_ERROR', 'Internal server error', status.HTTP_500_INTERNAL_SERVER_ERROR)
