"""
Доменные сущности, которыми обмениваются сервисы и хранилище.

ORM-модели наружу из repositories.py не выходят: сервисы работают
только с этими dataclass'ами.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from .models import PRStatus


@dataclass
class User:
    user_id: str
    username: str
    team_name: Optional[str] = None
    is_active: bool = True


@dataclass
class TeamMember:
    user_id: str
    username: str
    is_active: bool = True


@dataclass
class Team:
    team_name: str
    members: List[TeamMember] = field(default_factory=list)


@dataclass
class PullRequest:
    pull_request_id: str
    pull_request_name: str
    author_id: str
    status: str = PRStatus.OPEN
    assigned_reviewers: List[str] = field(default_factory=list)
    created_at: Optional[datetime] = None
    merged_at: Optional[datetime] = None
    version: int = 1

    @property
    def is_merged(self) -> bool:
        return self.status == PRStatus.MERGED


@dataclass
class UserReviewStats:
    user_id: str
    username: str
    prs_reviewed: int = 0
    open_prs_reviewed: int = 0
    merged_prs_reviewed: int = 0


@dataclass
class Stats:
    total_prs: int
    total_users: int
    total_teams: int
    open_prs: int
    merged_prs: int
    active_users: int
    average_reviewers: float
    user_review_stats: List[UserReviewStats] = field(default_factory=list)
