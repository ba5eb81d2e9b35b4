from typing import Optional

from django.core.exceptions import ObjectDoesNotExist


class ServiceError(Exception):
    """
    Базовая ошибка сервиса: код для клиента и человекочитаемое сообщение
    """

    code = 'SERVER_ERROR'
    default_message = 'Internal server error'

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(ServiceError, ObjectDoesNotExist):
    code = 'NOT_FOUND'
    default_message = 'resource not found'


class AlreadyExists(ServiceError):
    code = 'ALREADY_EXISTS'
    default_message = 'resource already exists'


class PRExists(AlreadyExists):
    code = 'PR_EXISTS'
    default_message = 'PR id already exists'


class TeamExists(AlreadyExists):
    code = 'TEAM_EXISTS'
    default_message = 'team_name already exists'


class PRMerged(ServiceError):
    code = 'PR_MERGED'
    default_message = 'cannot reassign on merged PR'


class NotAssigned(ServiceError):
    code = 'NOT_ASSIGNED'
    default_message = 'reviewer is not assigned to this PR'


class NoCandidate(ServiceError):
    code = 'NO_CANDIDATE'
    default_message = 'no active replacement candidate in team'


class Conflict(ServiceError):
    """Запись изменилась между чтением и записью, операцию можно повторить"""

    code = 'CONFLICT'
    default_message = 'PR was modified concurrently, retry the request'


class OperationCancelled(ServiceError):
    code = 'CANCELLED'
    default_message = 'operation deadline exceeded'


class InternalError(ServiceError):
    pass
