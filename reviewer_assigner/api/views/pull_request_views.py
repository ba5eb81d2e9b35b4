import logging

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..errors import ServiceError
from ..serializers import PullRequestSerializer
from ..services import PullRequestService
from .responses import server_error_response, service_error_response, validation_error

logger = logging.getLogger(__name__)


@api_view(['POST'])
def pullrequest_create(request):
    """POST /pullRequest/create - Создать PR и назначить ревьюверов"""
    try:
        pr_id = request.data.get('pull_request_id')
        pr_name = request.data.get('pull_request_name')
        author_id = request.data.get('author_id')

        if not all([pr_id, pr_name, author_id]):
            return validation_error('pull_request_id, pull_request_name, and author_id are required')

        pr = PullRequestService.create_pull_request(
            pr_id, pr_name, author_id, timeout=settings.OPERATION_TIMEOUT_SECONDS
        )
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        }, status=status.HTTP_201_CREATED)

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("pullRequest/create failed")
        return server_error_response()


@api_view(['POST'])
def pullrequest_merge(request):
    """POST /pullRequest/merge - Пометить PR как MERGED"""
    try:
        pr_id = request.data.get('pull_request_id')

        if not pr_id:
            return validation_error('pull_request_id is required')

        pr = PullRequestService.merge_pull_request(pr_id, timeout=settings.OPERATION_TIMEOUT_SECONDS)
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("pullRequest/merge failed")
        return server_error_response()


@api_view(['POST'])
def pullrequest_reassign(request):
    """POST /pullRequest/reassign - Переназначить ревьювера"""
    try:
        pr_id = request.data.get('pull_request_id')
        old_user_id = request.data.get('old_user_id')

        if not all([pr_id, old_user_id]):
            return validation_error('pull_request_id and old_user_id are required')

        pr, new_reviewer_id = PullRequestService.reassign_reviewer(
            pr_id, old_user_id, timeout=settings.OPERATION_TIMEOUT_SECONDS
        )
        serializer = PullRequestSerializer(pr)

        return Response({
            'pr': serializer.data,
            'replaced_by': new_reviewer_id
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("pullRequest/reassign failed")
        return server_error_response()
