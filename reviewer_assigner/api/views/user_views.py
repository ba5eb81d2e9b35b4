import logging

from django.conf import settings
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..errors import ServiceError
from ..serializers import PullRequestShortSerializer, UserSerializer
from ..services import UserService
from .responses import server_error_response, service_error_response, validation_error

logger = logging.getLogger(__name__)


@api_view(['POST'])
def user_set_active(request):
    """POST /users/setIsActive - Установить флаг активности пользователя"""
    try:
        user_id = request.data.get('user_id')
        is_active = request.data.get('is_active')

        if user_id is None or is_active is None:
            return validation_error('user_id and is_active are required')

        if not isinstance(is_active, bool):
            return validation_error('is_active must be a boolean')

        user = UserService.set_user_active(user_id, is_active, timeout=settings.OPERATION_TIMEOUT_SECONDS)
        serializer = UserSerializer(user)

        return Response({
            'user': serializer.data
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("users/setIsActive failed")
        return server_error_response()


@api_view(['GET'])
def users_get_review(request):
    """GET /users/getReview - Получить PR'ы, где пользователь назначен ревьювером"""
    try:
        user_id = request.query_params.get('user_id')

        if not user_id:
            return validation_error('user_id parameter is required')

        assigned_prs = UserService.get_review_assignments(user_id, timeout=settings.OPERATION_TIMEOUT_SECONDS)
        serializer = PullRequestShortSerializer(assigned_prs, many=True)

        return Response({
            'user_id': user_id,
            'pull_requests': serializer.data
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("users/getReview failed")
        return server_error_response()
