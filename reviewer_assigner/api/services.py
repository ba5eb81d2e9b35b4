import logging
from dataclasses import replace
from typing import List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .deadline import Deadline
from .entities import PullRequest, Stats, Team, TeamMember, User, UserReviewStats
from .errors import (
    AlreadyExists, Conflict, NoCandidate, NotAssigned, NotFound, PRExists, PRMerged, TeamExists,
)
from .models import PRStatus
from .policy import DEFAULT_MAX_REVIEWERS, next_reviewer, pick_reviewers
from .repositories import PullRequestRepository, TeamRepository, UserRepository, begin_snapshot

logger = logging.getLogger(__name__)


def _max_reviewers() -> int:
    return getattr(settings, 'MAX_REVIEWERS_PER_PR', DEFAULT_MAX_REVIEWERS)


class TeamService:
    """
    Сервис для управления командами
    """

    users = UserRepository()
    teams = TeamRepository(users)

    @classmethod
    def create_team(cls, team_name: str, members_data: list, timeout: Optional[float] = None) -> Team:
        """
        Создает команду с пользователями

        Args:
            team_name: Название команды
            members_data: Список словарей с user_id, username, is_active
            timeout: Срок операции в секундах

        Returns:
            Team: Созданная команда

        Raises:
            TeamExists: Если команда уже существует
        """
        deadline = Deadline(timeout)
        members = [
            TeamMember(
                user_id=member_data['user_id'],
                username=member_data['username'],
                is_active=member_data['is_active'],
            )
            for member_data in members_data
        ]

        deadline.check('team create')
        try:
            team = cls.teams.create(Team(team_name=team_name, members=members))
        except AlreadyExists:
            raise TeamExists()

        logger.info("Team %s created with %d members", team_name, len(members))
        return team

    @classmethod
    def get_team(cls, team_name: str, timeout: Optional[float] = None) -> Team:
        Deadline(timeout).check('team read')
        return cls.teams.get_by_name(team_name)

    @classmethod
    def deactivate_team(cls, team_name: str, timeout: Optional[float] = None) -> List[User]:
        """
        Деактивирует всех участников команды.

        Операция не атомарна: каждый пользователь сохраняется отдельно,
        при первой ошибке хранилища она прерывается, а уже сохраненные
        изменения не откатываются. Повторный вызов доводит дело до конца.

        Returns:
            list: Деактивированные пользователи (пустой для пустой команды)
        """
        deadline = Deadline(timeout)
        deadline.check('team members read')
        users = cls.users.list_by_team(team_name)

        deactivated = []
        for user in users:
            deadline.check(f"deactivating {user.user_id}")
            try:
                deactivated.append(cls.users.set_active(user.user_id, False))
            except Exception:
                logger.warning(
                    "Team %s deactivation stopped at %s after %d of %d users",
                    team_name, user.user_id, len(deactivated), len(users),
                )
                raise

        logger.info("Team %s deactivated: %d users", team_name, len(deactivated))
        return deactivated


class UserService:
    """
    Сервис для управления пользователями
    """

    users = UserRepository()
    pull_requests = PullRequestRepository()

    @classmethod
    def set_user_active(cls, user_id: str, is_active: bool, timeout: Optional[float] = None) -> User:
        """
        Устанавливает флаг активности пользователя

        Raises:
            NotFound: Если пользователь не найден
        """
        Deadline(timeout).check('user update')
        user = cls.users.set_active(user_id, is_active)
        logger.info("User %s is_active=%s", user_id, is_active)
        return user

    @classmethod
    def get_review_assignments(cls, user_id: str, timeout: Optional[float] = None) -> List[PullRequest]:
        """
        Получает PR'ы, где пользователь назначен ревьювером

        Raises:
            NotFound: Если пользователь не найден
        """
        deadline = Deadline(timeout)
        deadline.check('user read')
        cls.users.get_by_id(user_id)
        deadline.check('reviewer PRs read')
        return cls.pull_requests.list_by_reviewer(user_id)


class PullRequestService:
    """
    Сервис для управления Pull Request'ами
    """

    users = UserRepository()
    pull_requests = PullRequestRepository()

    @classmethod
    @transaction.atomic
    def create_pull_request(cls, pr_id: str, pr_name: str, author_id: str,
                            timeout: Optional[float] = None) -> PullRequest:
        """
        Создает PR и назначает до MAX_REVIEWERS_PER_PR ревьюверов из команды автора

        Args:
            pr_id: ID PR
            pr_name: Название PR
            author_id: ID автора
            timeout: Срок операции в секундах

        Returns:
            PullRequest: Созданный PR

        Raises:
            PRExists: Если PR уже существует
            NotFound: Если автор не найден или у автора нет команды
        """
        deadline = Deadline(timeout)

        deadline.check('PR lookup')
        try:
            cls.pull_requests.get_by_id(pr_id)
        except NotFound:
            pass
        else:
            raise PRExists()

        deadline.check('author read')
        author = cls.users.get_by_id(author_id)
        if author.team_name is None:
            raise NotFound(f"Author '{author_id}' has no team")

        deadline.check('roster read')
        roster = cls.users.list_by_team(author.team_name)
        reviewers = pick_reviewers(roster, author_id, _max_reviewers())

        pr = PullRequest(
            pull_request_id=pr_id,
            pull_request_name=pr_name,
            author_id=author_id,
            status=PRStatus.OPEN,
            assigned_reviewers=reviewers,
            created_at=timezone.now(),
        )

        deadline.check('PR insert')
        try:
            pr = cls.pull_requests.create(pr)
        except AlreadyExists:
            # Параллельный запрос успел вставить тот же id
            raise PRExists()

        logger.info("PR %s created by %s, reviewers=%s", pr_id, author_id, reviewers)
        return pr

    @classmethod
    @transaction.atomic
    def merge_pull_request(cls, pr_id: str, timeout: Optional[float] = None) -> PullRequest:
        """
        Помечает PR как MERGED. Повторный вызов возвращает PR без изменений

        Raises:
            NotFound: Если PR не найден
        """
        deadline = Deadline(timeout)
        deadline.check('PR read')
        pr = cls.pull_requests.get_by_id(pr_id)

        if pr.is_merged:
            return pr

        merged = replace(pr, status=PRStatus.MERGED, merged_at=timezone.now())
        deadline.check('PR update')
        try:
            merged = cls.pull_requests.update(merged)
        except Conflict:
            # Если PR смержил параллельный запрос, отдаем его запись
            current = cls.pull_requests.get_by_id(pr_id)
            if current.is_merged:
                return current
            raise

        logger.info("PR %s merged", pr_id)
        return merged

    @classmethod
    @transaction.atomic
    def reassign_reviewer(cls, pr_id: str, old_user_id: str,
                          timeout: Optional[float] = None) -> Tuple[PullRequest, str]:
        """
        Заменяет ревьювера на следующего подходящего из команды автора

        Args:
            pr_id: ID PR
            old_user_id: ID заменяемого ревьювера

        Returns:
            tuple: (PullRequest, ID нового ревьювера)

        Raises:
            NotFound: Если PR или его автор не найден
            PRMerged: Если PR уже смержен
            NotAssigned: Если old_user_id не назначен на PR
            NoCandidate: Если заменить некем
            Conflict: Если PR изменили параллельно
        """
        deadline = Deadline(timeout)
        deadline.check('PR read')
        pr = cls.pull_requests.get_by_id(pr_id)

        if pr.is_merged:
            raise PRMerged()

        if old_user_id not in pr.assigned_reviewers:
            raise NotAssigned()

        deadline.check('author read')
        author = cls.users.get_by_id(pr.author_id)
        deadline.check('roster read')
        roster = cls.users.list_by_team(author.team_name)

        remaining = [reviewer_id for reviewer_id in pr.assigned_reviewers if reviewer_id != old_user_id]
        new_reviewer_id = next_reviewer(roster, pr.author_id, remaining, replaced=old_user_id)
        if new_reviewer_id is None:
            raise NoCandidate()

        deadline.check('PR update')
        updated = cls.pull_requests.update(replace(pr, assigned_reviewers=remaining + [new_reviewer_id]))

        logger.info("PR %s: reviewer %s replaced by %s", pr_id, old_user_id, new_reviewer_id)
        return updated, new_reviewer_id


class StatsService:
    """
    Сервис для сбора статистики
    """

    users = UserRepository()
    teams = TeamRepository(users)
    pull_requests = PullRequestRepository()

    @classmethod
    def get_stats(cls, timeout: Optional[float] = None) -> Stats:
        """
        Считает статистику по одному чтению PR, пользователей и команд.
        Ничего не кэширует и ничего не пишет.

        На PostgreSQL чтения идут в одной транзакции REPEATABLE READ;
        остальные операции остаются на уровне изоляции соединения.

        Returns:
            Stats: Счетчики PR и пользователей, среднее число ревьюверов
            и нагрузка по ревьюверам
        """
        deadline = Deadline(timeout)
        with transaction.atomic():
            begin_snapshot()
            deadline.check('PR list')
            prs = cls.pull_requests.list_all()
            deadline.check('user list')
            users = cls.users.list_all()
            deadline.check('team list')
            teams = cls.teams.list_all()

        usernames = {user.user_id: user.username for user in users}
        per_reviewer = {}
        total_reviewers = 0
        for pr in prs:
            total_reviewers += len(pr.assigned_reviewers)
            for reviewer_id in pr.assigned_reviewers:
                entry = per_reviewer.setdefault(
                    reviewer_id,
                    UserReviewStats(user_id=reviewer_id, username=usernames.get(reviewer_id, '')),
                )
                entry.prs_reviewed += 1
                if pr.is_merged:
                    entry.merged_prs_reviewed += 1
                else:
                    entry.open_prs_reviewed += 1

        total_prs = len(prs)
        return Stats(
            total_prs=total_prs,
            total_users=len(users),
            total_teams=len(teams),
            open_prs=sum(1 for pr in prs if pr.status == PRStatus.OPEN),
            merged_prs=sum(1 for pr in prs if pr.status == PRStatus.MERGED),
            active_users=sum(1 for user in users if user.is_active),
            average_reviewers=total_reviewers / total_prs if total_prs else 0.0,
            user_review_stats=sorted(
                per_reviewer.values(),
                key=lambda entry: (-entry.prs_reviewed, entry.user_id),
            ),
        )
