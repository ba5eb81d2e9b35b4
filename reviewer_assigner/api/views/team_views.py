import logging

from django.conf import settings
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..errors import ServiceError
from ..serializers import TeamSerializer, UserSerializer
from ..services import TeamService
from .responses import server_error_response, service_error_response, validation_error

logger = logging.getLogger(__name__)


@api_view(['POST'])
def team_add(request):
    """POST /team/add - Создать команду с участниками"""
    try:
        serializer = TeamSerializer(data=request.data)
        if not serializer.is_valid():
            field = next(iter(serializer.errors))
            return validation_error(f"invalid or missing field '{field}'")

        team = TeamService.create_team(
            serializer.validated_data['team_name'],
            serializer.validated_data['members'],
            timeout=settings.OPERATION_TIMEOUT_SECONDS,
        )

        return Response({
            'team': TeamSerializer(team).data
        }, status=status.HTTP_201_CREATED)

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("team/add failed")
        return server_error_response()


@api_view(['GET'])
def team_get(request):
    """GET /team/get - Получить команду с участниками"""
    try:
        team_name = request.query_params.get('team_name')

        if not team_name:
            return validation_error('team_name parameter is required')

        team = TeamService.get_team(team_name, timeout=settings.OPERATION_TIMEOUT_SECONDS)

        return Response(TeamSerializer(team).data)

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("team/get failed")
        return server_error_response()


@api_view(['POST'])
def team_deactivate(request):
    """
    POST /users/deactivateTeam - Деактивировать всех участников команды

    Не атомарно: при ошибке часть участников может остаться деактивированной,
    повторный запрос безопасен.
    """
    try:
        team_name = request.data.get('team_name')

        if not team_name:
            return validation_error('team_name is required')

        users = TeamService.deactivate_team(team_name, timeout=settings.OPERATION_TIMEOUT_SECONDS)

        return Response({
            'team_name': team_name,
            'deactivated': UserSerializer(users, many=True).data
        })

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("users/deactivateTeam failed")
        return server_error_response()
