"""Unit tests for the role policy"""
import pytest

from civic_core_lib.core import policy
from civic_core_lib.core.policy import IssueScope
from civic_core_lib.errors import AuthorizationError
from civic_core_lib.models import Comment, Issue, User, UserRole


def make_issue(department="Public Works", assigned_to_id=None) -> Issue:
    return Issue(
        title="Streetlight out",
        description="Streetlight dark for a week near the school",
        department=department,
        latitude=23.61,
        longitude=85.27,
        assigned_to_id=assigned_to_id,
    )


class TestScopeFilter:
    def test_admin_is_unrestricted(self, admin):
        scope = policy.scope_filter(admin)
        assert scope.is_unrestricted
        assert scope.cache_token() == "all"
        assert scope.matches(make_issue(department="Anything"))

    def test_department_head_sees_own_department_only(self, works_head):
        scope = policy.scope_filter(works_head)
        assert scope == IssueScope(department="Public Works")
        assert scope.matches(make_issue(department="Public Works"))
        assert not scope.matches(make_issue(department="Sanitation"))

    def test_team_member_sees_assigned_issues_only(self, crew_member):
        scope = policy.scope_filter(crew_member)
        assert scope == IssueScope(assigned_to_id=crew_member.id)
        assert scope.matches(make_issue(assigned_to_id=crew_member.id))
        assert not scope.matches(make_issue(assigned_to_id="usr_someone_else"))
        assert not scope.matches(make_issue(assigned_to_id=None))

    def test_inactive_actor_sees_nothing(self, retired_member):
        scope = policy.scope_filter(retired_member)
        assert scope.deny_all
        assert scope.cache_token() == "none"
        assert not scope.matches(make_issue(assigned_to_id=retired_member.id))

    def test_scopes_have_distinct_cache_tokens(self, works_head, sanitation_head, crew_member):
        tokens = {
            policy.scope_filter(works_head).cache_token(),
            policy.scope_filter(sanitation_head).cache_token(),
            policy.scope_filter(crew_member).cache_token(),
        }
        assert len(tokens) == 3


class TestCanMutate:
    @pytest.mark.parametrize("field", sorted(policy.MUTABLE_FIELDS))
    def test_admin_may_change_every_field(self, admin, field):
        assert policy.can_mutate(admin, make_issue(), field)

    def test_admin_may_delete(self, admin):
        assert policy.can_delete(admin)

    @pytest.mark.parametrize("field", ["status", "priority", "assigned_to_id", "title"])
    def test_department_head_in_department(self, works_head, field):
        assert policy.can_mutate(works_head, make_issue(), field)

    def test_department_head_cannot_move_department(self, works_head):
        assert not policy.can_mutate(works_head, make_issue(), "department")

    def test_department_head_outside_department(self, sanitation_head):
        assert not policy.can_mutate(sanitation_head, make_issue(department="Public Works"), "status")

    def test_department_head_cannot_delete(self, works_head):
        assert not policy.can_delete(works_head)

    def test_team_member_may_change_status_of_assigned_issue(self, crew_member):
        assert policy.can_mutate(crew_member, make_issue(assigned_to_id=crew_member.id), "status")

    @pytest.mark.parametrize("field", ["priority", "department", "assigned_to_id", "title"])
    def test_team_member_limited_to_status(self, crew_member, field):
        """Even on its own assignment a team member may only move status"""
        assert not policy.can_mutate(crew_member, make_issue(assigned_to_id=crew_member.id), field)

    def test_team_member_cannot_touch_unassigned_issue(self, crew_member):
        assert not policy.can_mutate(crew_member, make_issue(), "status")

    def test_unknown_field_is_denied(self, admin):
        assert not policy.can_mutate(admin, make_issue(), "reported_by_id")

    def test_inactive_admin_is_denied(self):
        dormant = User(id="usr_x", email="x@city.gov", role=UserRole.ADMIN, is_active=False)
        assert not policy.can_mutate(dormant, make_issue(), "status")
        assert not policy.can_delete(dormant)


class TestCommentRules:
    def test_comment_follows_visibility(self, works_head, sanitation_head):
        issue = make_issue()
        assert policy.can_comment(works_head, issue)
        assert not policy.can_comment(sanitation_head, issue)

    def test_author_may_delete_own_comment(self, works_head, crew_member):
        issue = make_issue(assigned_to_id=crew_member.id)
        comment = Comment(issue_id=issue.id, user_id=crew_member.id, content="On site now")
        assert policy.can_delete_comment(crew_member, issue, comment)
        assert not policy.can_delete_comment(works_head, issue, comment)

    def test_admin_may_delete_any_comment(self, admin):
        issue = make_issue()
        comment = Comment(issue_id=issue.id, user_id="usr_someone", content="Noted")
        assert policy.can_delete_comment(admin, issue, comment)


class TestEnsureCanMutate:
    def test_reports_denied_field(self, crew_member):
        issue = make_issue(assigned_to_id=crew_member.id)
        with pytest.raises(AuthorizationError) as exc_info:
            policy.ensure_can_mutate(crew_member, issue, ["status", "priority"])
        assert exc_info.value.field == "priority"
        assert exc_info.value.action == "update"

    def test_passes_when_every_field_allowed(self, works_head):
        policy.ensure_can_mutate(works_head, make_issue(), ["status", "priority", "assigned_to_id"])

    def test_view_denial_names_scope(self, sanitation_head):
        with pytest.raises(AuthorizationError) as exc_info:
            policy.ensure_can_view(sanitation_head, make_issue())
        assert "Sanitation" in exc_info.value.message


class TestAssignmentRules:
    def test_only_team_members_take_assignments(self, admin, works_head, crew_member):
        issue = make_issue()
        assert policy.can_assign_to(admin, issue, crew_member)
        assert not policy.can_assign_to(admin, issue, works_head)
        assert not policy.can_assign_to(admin, issue, admin)

    def test_department_head_assigns_within_department(self, works_head, crew_member, sanitation_member):
        issue = make_issue(department="Public Works")
        assert policy.can_assign_to(works_head, issue, crew_member)
        assert not policy.can_assign_to(works_head, issue, sanitation_member)

    def test_admin_may_assign_across_departments(self, admin, sanitation_member):
        assert policy.can_assign_to(admin, make_issue(department="Public Works"), sanitation_member)


class TestTeamAnalyticsAccess:
    def test_management_roles_only(self, admin, works_head, crew_member):
        assert policy.can_view_team_analytics(admin)
        assert policy.can_view_team_analytics(works_head)
        assert not policy.can_view_team_analytics(crew_member)

    def test_denial_raises(self, crew_member):
        with pytest.raises(AuthorizationError) as exc_info:
            policy.ensure_can_view_team_analytics(crew_member)
        assert exc_info.value.action == "team_analytics"
