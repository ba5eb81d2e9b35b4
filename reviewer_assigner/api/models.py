from django.db import models
from django.utils import timezone


class PRStatus(models.TextChoices):
    OPEN = 'OPEN', 'Open'
    MERGED = 'MERGED', 'Merged'


class Team(models.Model):
    name = models.CharField(max_length=100, primary_key=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'teams'


class User(models.Model):
    id = models.CharField(max_length=50, primary_key=True)
    username = models.CharField(max_length=100)
    team = models.ForeignKey(
        Team,
        on_delete=models.SET_NULL,
        related_name='members',
        null=True,
        blank=True,
        db_column='team_name',
    )
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.username} ({self.id})"

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['is_active'], name='users_is_active_idx'),
        ]


class PullRequest(models.Model):
    Status = PRStatus

    id = models.CharField(max_length=100, primary_key=True)
    name = models.CharField(max_length=200)
    author = models.ForeignKey(User, on_delete=models.PROTECT, related_name='authored_prs')
    status = models.CharField(max_length=10, choices=PRStatus.choices, default=PRStatus.OPEN)
    reviewers = models.ManyToManyField(
        User,
        through='ReviewAssignment',
        related_name='assigned_prs',
        blank=True,
    )
    # Версия строки для compare-and-swap при обновлении
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now)
    merged_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return f"{self.name} ({self.id})"

    class Meta:
        db_table = 'pull_requests'
        indexes = [
            models.Index(fields=['status'], name='pull_reques_status_idx'),
        ]


class ReviewAssignment(models.Model):
    pull_request = models.ForeignKey(PullRequest, on_delete=models.CASCADE, related_name='assignments')
    reviewer = models.ForeignKey(User, on_delete=models.CASCADE, related_name='review_assignments')
    position = models.PositiveSmallIntegerField(default=0)

    def __str__(self):
        return f"{self.reviewer_id} -> {self.pull_request_id}"

    class Meta:
        db_table = 'review_assignments'
        ordering = ['position']
        constraints = [
            models.UniqueConstraint(fields=['pull_request', 'reviewer'], name='unique_reviewer_per_pr'),
        ]
