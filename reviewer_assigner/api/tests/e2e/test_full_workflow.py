from unittest.mock import patch

from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from reviewer_assigner.api.errors import InternalError
from reviewer_assigner.api.services import StatsService


class FullWorkflowE2ETest(APITestCase):
    """
    End-to-end
    """

    def _add_team(self, team_name, user_ids, inactive=()):
        team_data = {
            "team_name": team_name,
            "members": [
                {"user_id": user_id, "username": f"Developer {user_id}", "is_active": user_id not in inactive}
                for user_id in user_ids
            ]
        }
        return self.client.post(reverse('api:team-add'), team_data, format='json')

    def test_complete_pr_workflow(self):
        """
        E2E тест: создание команды, PR, переназначение и мерж
        """
        response = self._add_team("backend-team", ["dev1", "dev2", "dev3", "dev4"])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['team']['team_name'], 'backend-team')
        self.assertEqual(len(response.data['team']['members']), 4)

        response = self.client.get(f"{reverse('api:team-get')}?team_name=backend-team")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['team_name'], 'backend-team')
        self.assertEqual([m['user_id'] for m in response.data['members']], ["dev1", "dev2", "dev3", "dev4"])

        pr_data = {
            "pull_request_id": "feature-auth",
            "pull_request_name": "Implement authentication",
            "author_id": "dev1"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['pull_request_id'], 'feature-auth')
        self.assertEqual(response.data['pr']['author_id'], 'dev1')
        self.assertEqual(response.data['pr']['status'], 'OPEN')
        self.assertEqual(response.data['pr']['assigned_reviewers'], ['dev2', 'dev3'])
        self.assertIsNone(response.data['pr']['mergedAt'])

        response = self.client.get(f"{reverse('api:user-get-review')}?user_id=dev2")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user_id'], 'dev2')
        self.assertEqual(len(response.data['pull_requests']), 1)
        self.assertEqual(response.data['pull_requests'][0]['pull_request_id'], 'feature-auth')

        reassign_data = {
            "pull_request_id": "feature-auth",
            "old_user_id": "dev2"
        }
        response = self.client.post(reverse('api:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['replaced_by'], 'dev4')
        self.assertEqual(response.data['pr']['assigned_reviewers'], ['dev3', 'dev4'])

        response = self.client.get(f"{reverse('api:user-get-review')}?user_id=dev2")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['pull_requests']), 0)

        response = self.client.get(f"{reverse('api:user-get-review')}?user_id=dev4")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pull_requests'][0]['pull_request_id'], 'feature-auth')

        merge_data = {"pull_request_id": "feature-auth"}
        response = self.client.post(reverse('api:pr-merge'), merge_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['status'], 'MERGED')
        self.assertIsNotNone(response.data['pr']['mergedAt'])
        merged_at = response.data['pr']['mergedAt']

        # После мержа переназначение запрещено
        reassign_data = {"pull_request_id": "feature-auth", "old_user_id": "dev3"}
        response = self.client.post(reverse('api:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'PR_MERGED')

        # Идемпотентность мержа
        response = self.client.post(reverse('api:pr-merge'), merge_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['pr']['status'], 'MERGED')
        self.assertEqual(response.data['pr']['mergedAt'], merged_at)

    def test_user_activation_workflow(self):
        """
        E2E тест: деактивированный пользователь не назначается ревьювером
        """
        response = self._add_team("qa-team", ["qa1", "qa2", "qa3"])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post(
            reverse('api:user-set-active'), {"user_id": "qa2", "is_active": False}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['user']['is_active'])
        self.assertEqual(response.data['user']['team_name'], 'qa-team')

        pr_data = {"pull_request_id": "test-fix", "pull_request_name": "Fix failing tests", "author_id": "qa1"}
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], ['qa3'])

        response = self.client.post(
            reverse('api:user-set-active'), {"user_id": "qa2", "is_active": True}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['user']['is_active'])

        pr_data_2 = {"pull_request_id": "new-feature", "pull_request_name": "Add new feature", "author_id": "qa3"}
        response = self.client.post(reverse('api:pr-create'), pr_data_2, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], ['qa1', 'qa2'])

    def test_deactivate_team_workflow(self):
        """
        E2E тест: деактивация команды
        """
        self._add_team("ops-team", ["o1", "o2", "o3"])

        response = self.client.post(reverse('api:team-deactivate'), {"team_name": "ops-team"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['team_name'], 'ops-team')
        self.assertEqual([u['user_id'] for u in response.data['deactivated']], ["o1", "o2", "o3"])
        self.assertTrue(all(not u['is_active'] for u in response.data['deactivated']))

        response = self.client.get(f"{reverse('api:team-get')}?team_name=ops-team")
        self.assertTrue(all(not m['is_active'] for m in response.data['members']))

        response = self.client.post(reverse('api:team-deactivate'), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

    def test_error_scenarios_workflow(self):
        """
        E2E тест: различные сценарии ошибок
        """
        response = self._add_team("mobile-team", ["m1"])
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        # Повторное создание команды
        response = self._add_team("mobile-team", ["m2"])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'TEAM_EXISTS')

        pr_data = {"pull_request_id": "invalid-pr", "pull_request_name": "Invalid PR", "author_id": "nonexistent-user"}
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error']['code'], 'NOT_FOUND')

        valid_pr_data = {"pull_request_id": "valid-pr", "pull_request_name": "Valid PR", "author_id": "m1"}
        response = self.client.post(reverse('api:pr-create'), valid_pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.post(reverse('api:pr-create'), valid_pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'PR_EXISTS')

        reassign_data = {"pull_request_id": "valid-pr", "old_user_id": "m2"}
        response = self.client.post(reverse('api:pr-reassign'), reassign_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'NOT_ASSIGNED')

        response = self.client.post(reverse('api:pr-merge'), {"pull_request_id": "ghost"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.get(f"{reverse('api:user-get-review')}?user_id=ghost")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.get(f"{reverse('api:team-get')}?team_name=ghost")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_no_candidate_workflow(self):
        self._add_team("pair", ["p1", "p2"])
        pr_data = {"pull_request_id": "pair-pr", "pull_request_name": "Pair PR", "author_id": "p1"}
        self.client.post(reverse('api:pr-create'), pr_data, format='json')

        response = self.client.post(
            reverse('api:pr-reassign'), {"pull_request_id": "pair-pr", "old_user_id": "p2"}, format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error']['code'], 'NO_CANDIDATE')

    def test_validation_errors(self):
        response = self.client.post(reverse('api:pr-create'), {"pull_request_id": "x"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

        response = self.client.post(reverse('api:team-add'), {"team_name": "t"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error']['code'], 'VALIDATION_ERROR')

        bad_member = {"team_name": "t", "members": [{"user_id": "a", "username": "A"}]}
        response = self.client.post(reverse('api:team-add'), bad_member, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(reverse('api:user-set-active'), {"user_id": "a"}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.get(reverse('api:user-get-review'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_edge_cases_workflow(self):
        """
        E2E тест: граничные случаи
        """
        self._add_team("small-team", ["s1"])
        pr_data = {"pull_request_id": "solo-pr", "pull_request_name": "Solo PR", "author_id": "s1"}
        response = self.client.post(reverse('api:pr-create'), pr_data, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], [])

        self._add_team("inactive-team", ["i1", "i2", "i3"], inactive=("i1", "i2"))
        pr_data_inactive = {
            "pull_request_id": "inactive-team-pr",
            "pull_request_name": "PR for inactive team",
            "author_id": "i3"
        }
        response = self.client.post(reverse('api:pr-create'), pr_data_inactive, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['pr']['assigned_reviewers'], [])


class StatsE2ETest(APITestCase):

    def test_stats(self):
        response = self.client.get(reverse('api:stats'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['stats']['total_prs'], 0)
        self.assertEqual(response.data['stats']['average_reviewers'], 0.0)

        team_data = {
            "team_name": "stats-team",
            "members": [
                {"user_id": "st1", "username": "One", "is_active": True},
                {"user_id": "st2", "username": "Two", "is_active": True},
                {"user_id": "st3", "username": "Three", "is_active": False},
            ]
        }
        self.client.post(reverse('api:team-add'), team_data, format='json')
        for pr_id in ["s-1", "s-2"]:
            self.client.post(
                reverse('api:pr-create'),
                {"pull_request_id": pr_id, "pull_request_name": pr_id, "author_id": "st1"},
                format='json',
            )
        self.client.post(reverse('api:pr-merge'), {"pull_request_id": "s-1"}, format='json')

        response = self.client.get(reverse('api:stats'))
        stats = response.data['stats']
        self.assertEqual(stats['total_prs'], 2)
        self.assertEqual(stats['open_prs'], 1)
        self.assertEqual(stats['merged_prs'], 1)
        self.assertEqual(stats['total_users'], 3)
        self.assertEqual(stats['active_users'], 2)
        self.assertEqual(stats['total_teams'], 1)
        self.assertEqual(stats['average_reviewers'], 1.0)
        self.assertEqual(stats['user_review_stats'][0]['user_id'], 'st2')
        self.assertEqual(stats['user_review_stats'][0]['prs_reviewed'], 2)

    def test_stats_storage_failure(self):
        """Сбой хранилища отдается как 500 без подробностей"""
        with patch.object(StatsService.pull_requests, 'list_all', side_effect=InternalError()):
            response = self.client.get(reverse('api:stats'))

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data['error']['code'], 'SERVER_ERROR')

    @override_settings(OPERATION_TIMEOUT_SECONDS=0)
    def test_deadline_exceeded(self):
        response = self.client.get(reverse('api:stats'))

        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['error']['code'], 'CANCELLED')


class HealthE2ETest(APITestCase):

    def test_health(self):
        response = self.client.get(reverse('api:health-check'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data, {'status': 'healthy'})
