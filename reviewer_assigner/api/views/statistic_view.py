import logging

from django.conf import settings
from rest_framework.decorators import api_view
from rest_framework.response import Response

from ..errors import ServiceError
from ..serializers import StatsSerializer
from ..services import StatsService
from .responses import server_error_response, service_error_response

logger = logging.getLogger(__name__)


@api_view(['GET'])
def stats_overview(request):
    """
    GET /stats - Общая статистика по PR и пользователям
    """
    try:
        stats = StatsService.get_stats(timeout=settings.OPERATION_TIMEOUT_SECONDS)
        serializer = StatsSerializer(stats)
        return Response({'stats': serializer.data})

    except ServiceError as e:
        return service_error_response(e)
    except Exception:
        logger.exception("stats failed")
        return server_error_response()
