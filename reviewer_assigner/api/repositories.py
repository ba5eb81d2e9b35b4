"""
Порты хранилища поверх Django ORM.

Каждый репозиторий принимает и возвращает сущности из entities.py.
Любая DatabaseError, вылетевшая из ORM, заворачивается в InternalError,
чтобы сырые ошибки базы не уходили наружу. Исключения: отмененный по
statement_timeout запрос становится OperationCancelled, а сбой
сериализации транзакции становится Conflict.
"""
import functools
import logging
from dataclasses import replace
from typing import List, Optional

from django.db import DatabaseError, IntegrityError, connection, transaction
from django.db.models import F
from django.utils import timezone

from . import models
from .entities import PullRequest, Team, TeamMember, User
from .errors import AlreadyExists, Conflict, InternalError, NotFound, OperationCancelled
from .policy import roster_order

logger = logging.getLogger(__name__)

# SQLSTATE коды PostgreSQL
QUERY_CANCELED = '57014'
SERIALIZATION_FAILURE = '40001'
DEADLOCK_DETECTED = '40P01'


def _sqlstate(error: DatabaseError) -> Optional[str]:
    # Django оборачивает ошибку драйвера, исходная лежит в __cause__
    for candidate in (error, error.__cause__):
        code = getattr(candidate, 'pgcode', None) or getattr(candidate, 'sqlstate', None)
        if code:
            return code
    return None


def storage_call(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as e:
            sqlstate = _sqlstate(e)
            if sqlstate == QUERY_CANCELED:
                logger.warning("Storage call %s cancelled by statement_timeout", func.__qualname__)
                raise OperationCancelled("storage query cancelled by deadline") from e
            if sqlstate in (SERIALIZATION_FAILURE, DEADLOCK_DETECTED):
                logger.warning("Storage call %s lost a concurrent write (%s)", func.__qualname__, sqlstate)
                raise Conflict("concurrent write detected, retry the request") from e
            logger.exception("Storage call %s failed", func.__qualname__)
            raise InternalError() from e
    return wrapper


@storage_call
def limit_statement_time(seconds: float):
    """
    Ограничивает запросы текущей транзакции оставшимся сроком операции.
    Действует только на PostgreSQL и только внутри transaction.atomic
    """
    if connection.vendor != 'postgresql' or not connection.in_atomic_block:
        return
    with connection.cursor() as cursor:
        cursor.execute(f"SET LOCAL statement_timeout = {max(1, int(seconds * 1000))}")


@storage_call
def begin_snapshot():
    """
    Переводит только что открытую транзакцию в REPEATABLE READ, чтобы все
    чтения видели один снимок. Вложенный atomic (savepoint) не трогаем:
    уровень изоляции меняется только первой командой транзакции
    """
    if connection.vendor != 'postgresql' or not connection.in_atomic_block or connection.savepoint_ids:
        return
    with connection.cursor() as cursor:
        cursor.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ")


def _user_entity(obj: models.User) -> User:
    return User(
        user_id=obj.id,
        username=obj.username,
        team_name=obj.team_id,
        is_active=obj.is_active,
    )


def _pull_request_entity(obj: models.PullRequest) -> PullRequest:
    return PullRequest(
        pull_request_id=obj.id,
        pull_request_name=obj.name,
        author_id=obj.author_id,
        status=obj.status,
        assigned_reviewers=[assignment.reviewer_id for assignment in obj.assignments.all()],
        created_at=obj.created_at,
        merged_at=obj.merged_at,
        version=obj.version,
    )


class UserRepository:

    @storage_call
    def create(self, user: User) -> User:
        """
        Создает пользователя или перезаписывает существующего с тем же user_id
        """
        models.User.objects.update_or_create(
            id=user.user_id,
            defaults={
                'username': user.username,
                'team_id': user.team_name,
                'is_active': user.is_active,
            },
        )
        return user

    @storage_call
    def get_by_id(self, user_id: str) -> User:
        try:
            return _user_entity(models.User.objects.get(id=user_id))
        except models.User.DoesNotExist:
            raise NotFound(f"User '{user_id}' not found")

    @storage_call
    def update(self, user: User) -> User:
        updated = models.User.objects.filter(id=user.user_id).update(
            username=user.username,
            team_id=user.team_name,
            is_active=user.is_active,
        )
        if not updated:
            raise NotFound(f"User '{user.user_id}' not found")
        return user

    @storage_call
    def set_active(self, user_id: str, is_active: bool) -> User:
        """
        Меняет только флаг активности и возвращает пользователя как он
        лежит в базе. Команду и имя не трогает, поэтому параллельный
        team/add не перетирается устаревшим чтением
        """
        with transaction.atomic():
            updated = models.User.objects.filter(id=user_id).update(is_active=is_active)
            if not updated:
                raise NotFound(f"User '{user_id}' not found")
            return _user_entity(models.User.objects.get(id=user_id))

    @storage_call
    def list_by_team(self, team_name: str) -> List[User]:
        # filter(team_id=None) вернул бы пользователей без команды
        if team_name is None:
            return []
        queryset = models.User.objects.filter(team_id=team_name).order_by('id')
        return [_user_entity(obj) for obj in queryset]

    @storage_call
    def list_all(self) -> List[User]:
        return [_user_entity(obj) for obj in models.User.objects.order_by('id')]


class TeamRepository:

    def __init__(self, users: Optional[UserRepository] = None):
        self.users = users or UserRepository()

    @storage_call
    def create(self, team: Team) -> Team:
        """
        Создает команду и в той же транзакции создает/обновляет ее участников

        Raises:
            AlreadyExists: Если команда с таким именем уже есть
        """
        with transaction.atomic():
            if models.Team.objects.filter(name=team.team_name).exists():
                raise AlreadyExists(f"Team '{team.team_name}' already exists")
            try:
                with transaction.atomic():
                    models.Team.objects.create(name=team.team_name)
            except IntegrityError as e:
                raise AlreadyExists(f"Team '{team.team_name}' already exists") from e

            for member in team.members:
                self.users.create(User(
                    user_id=member.user_id,
                    username=member.username,
                    team_name=team.team_name,
                    is_active=member.is_active,
                ))

        return Team(team_name=team.team_name, members=roster_order(team.members))

    @storage_call
    def get_by_name(self, team_name: str) -> Team:
        """
        Команда существует, пока в ней есть хотя бы один участник
        """
        members = [
            TeamMember(user_id=obj.id, username=obj.username, is_active=obj.is_active)
            for obj in models.User.objects.filter(team_id=team_name).order_by('id')
        ]
        if not members:
            raise NotFound(f"Team '{team_name}' not found")
        return Team(team_name=team_name, members=members)

    @storage_call
    def list_all(self) -> List[Team]:
        teams = []
        for obj in models.Team.objects.prefetch_related('members').order_by('name'):
            members = [
                TeamMember(user_id=user.id, username=user.username, is_active=user.is_active)
                for user in obj.members.all()
            ]
            teams.append(Team(team_name=obj.name, members=roster_order(members)))
        return teams


class PullRequestRepository:

    @staticmethod
    def _queryset():
        return models.PullRequest.objects.prefetch_related('assignments')

    @staticmethod
    def _write_reviewers(pr_id: str, reviewer_ids: List[str]):
        models.ReviewAssignment.objects.filter(pull_request_id=pr_id).delete()
        models.ReviewAssignment.objects.bulk_create([
            models.ReviewAssignment(pull_request_id=pr_id, reviewer_id=reviewer_id, position=position)
            for position, reviewer_id in enumerate(reviewer_ids)
        ])

    @storage_call
    def create(self, pr: PullRequest) -> PullRequest:
        """
        Вставляет PR; нарушение первичного ключа превращается в AlreadyExists
        """
        created_at = pr.created_at or timezone.now()
        try:
            with transaction.atomic():
                models.PullRequest.objects.create(
                    id=pr.pull_request_id,
                    name=pr.pull_request_name,
                    author_id=pr.author_id,
                    status=pr.status,
                    created_at=created_at,
                    merged_at=pr.merged_at,
                    version=1,
                )
                self._write_reviewers(pr.pull_request_id, pr.assigned_reviewers)
        except IntegrityError as e:
            if models.PullRequest.objects.filter(id=pr.pull_request_id).exists():
                raise AlreadyExists(f"PR '{pr.pull_request_id}' already exists") from e
            raise
        return replace(pr, created_at=created_at, version=1)

    @storage_call
    def get_by_id(self, pr_id: str) -> PullRequest:
        try:
            return _pull_request_entity(self._queryset().get(id=pr_id))
        except models.PullRequest.DoesNotExist:
            raise NotFound(f"PR '{pr_id}' not found")

    @storage_call
    def update(self, pr: PullRequest) -> PullRequest:
        """
        Compare-and-swap по версии строки: запись проходит, только если
        версия в базе совпадает с pr.version

        Raises:
            NotFound: Если строки больше нет
            Conflict: Если PR успели изменить после чтения
        """
        with transaction.atomic():
            updated = models.PullRequest.objects.filter(
                id=pr.pull_request_id,
                version=pr.version,
            ).update(
                name=pr.pull_request_name,
                status=pr.status,
                merged_at=pr.merged_at,
                version=F('version') + 1,
            )
            if not updated:
                if models.PullRequest.objects.filter(id=pr.pull_request_id).exists():
                    raise Conflict(f"PR '{pr.pull_request_id}' was modified concurrently")
                raise NotFound(f"PR '{pr.pull_request_id}' not found")

            self._write_reviewers(pr.pull_request_id, pr.assigned_reviewers)

        return replace(pr, version=pr.version + 1)

    @storage_call
    def list_by_reviewer(self, user_id: str) -> List[PullRequest]:
        queryset = self._queryset().filter(assignments__reviewer_id=user_id).order_by('created_at', 'id')
        return [_pull_request_entity(obj) for obj in queryset]

    @storage_call
    def list_all(self) -> List[PullRequest]:
        return [_pull_request_entity(obj) for obj in self._queryset().order_by('created_at', 'id')]
