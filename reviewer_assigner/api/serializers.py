from rest_framework import serializers


class TeamMemberSerializer(serializers.Serializer):
    user_id = serializers.CharField(max_length=50)
    username = serializers.CharField(max_length=100)
    is_active = serializers.BooleanField()


class TeamSerializer(serializers.Serializer):
    team_name = serializers.CharField(max_length=100)
    members = TeamMemberSerializer(many=True)

    def validate_members(self, members):
        user_ids = [member['user_id'] for member in members]
        if len(user_ids) != len(set(user_ids)):
            raise serializers.ValidationError('duplicate user_id in members')
        return members


class UserSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    username = serializers.CharField()
    team_name = serializers.CharField(allow_null=True)
    is_active = serializers.BooleanField()


class PullRequestSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField()
    pull_request_name = serializers.CharField()
    author_id = serializers.CharField()
    status = serializers.CharField()
    assigned_reviewers = serializers.ListField(child=serializers.CharField())
    createdAt = serializers.DateTimeField(source='created_at', format='%Y-%m-%dT%H:%M:%SZ')
    mergedAt = serializers.DateTimeField(source='merged_at', format='%Y-%m-%dT%H:%M:%SZ', allow_null=True)


class PullRequestShortSerializer(serializers.Serializer):
    pull_request_id = serializers.CharField()
    pull_request_name = serializers.CharField()
    author_id = serializers.CharField()
    status = serializers.CharField()


class UserReviewStatsSerializer(serializers.Serializer):
    user_id = serializers.CharField()
    username = serializers.CharField()
    prs_reviewed = serializers.IntegerField()
    open_prs_reviewed = serializers.IntegerField()
    merged_prs_reviewed = serializers.IntegerField()


class StatsSerializer(serializers.Serializer):
    total_prs = serializers.IntegerField()
    total_users = serializers.IntegerField()
    total_teams = serializers.IntegerField()
    open_prs = serializers.IntegerField()
    merged_prs = serializers.IntegerField()
    active_users = serializers.IntegerField()
    average_reviewers = serializers.FloatField()
    user_review_stats = UserReviewStatsSerializer(many=True)
