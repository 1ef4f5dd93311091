"""Tests for the in-memory repository contract"""
import pytest

from civic_core_lib.core.lifecycle import LifecycleEngine, TransitionPlan
from civic_core_lib.core.policy import IssueScope
from civic_core_lib.models import Comment, Issue, IssueFilters, IssueStatus, User, UserRole
from civic_core_lib.repository.base import RepositoryError, StaleIssueError
from civic_core_lib.repository.memory import InMemoryIssueRepository, _MemoryTransaction


def make_issue(**overrides) -> Issue:
    data = {
        "title": "Fallen tree",
        "description": "Tree fallen across the lane after the storm",
        "department": "Parks",
        "latitude": 23.4,
        "longitude": 85.4,
        "lifecycle": LifecycleEngine().initial_records(),
    }
    data.update(overrides)
    return Issue(**data)


class TestInMemoryIssueRepository:
    @pytest.mark.asyncio
    async def test_reads_are_copies(self):
        repository = InMemoryIssueRepository()
        issue = await repository.create(make_issue())

        fetched = await repository.get(issue.id)
        fetched.title = "Changed locally"

        assert (await repository.get(issue.id)).title == "Fallen tree"

    @pytest.mark.asyncio
    async def test_duplicate_create(self):
        repository = InMemoryIssueRepository()
        issue = await repository.create(make_issue())
        with pytest.raises(RepositoryError):
            await repository.create(issue)

    @pytest.mark.asyncio
    async def test_transaction_bumps_version(self):
        repository = InMemoryIssueRepository()
        issue = await repository.create(make_issue())

        async with repository.transaction(issue.id) as tx:
            loaded = await tx.load()
            updated = await tx.apply(TransitionPlan(field_changes={"status": IssueStatus.RESOLVED}))

        assert loaded.version == 0
        assert updated.version == 1
        assert (await repository.get(issue.id)).status == IssueStatus.RESOLVED

    @pytest.mark.asyncio
    async def test_apply_detects_concurrent_write(self):
        repository = InMemoryIssueRepository()
        issue = await repository.create(make_issue())

        tx = _MemoryTransaction(repository, issue.id)
        await tx.load()
        await repository.add_comment(Comment(issue_id=issue.id, user_id="usr_1", content="Still blocked"))

        with pytest.raises(StaleIssueError) as exc_info:
            await tx.apply(TransitionPlan(field_changes={"title": "Fallen tree on Lake Road"}))
        assert exc_info.value.expected_version == 0
        assert exc_info.value.actual_version == 1

    @pytest.mark.asyncio
    async def test_apply_after_delete_is_stale(self):
        repository = InMemoryIssueRepository()
        issue = await repository.create(make_issue())

        tx = _MemoryTransaction(repository, issue.id)
        await tx.load()
        await repository.delete(issue.id)

        with pytest.raises(StaleIssueError):
            await tx.apply(TransitionPlan(field_changes={"title": "Fallen tree on Lake Road"}))

    @pytest.mark.asyncio
    async def test_find_many_applies_scope_filters_and_paging(self):
        repository = InMemoryIssueRepository()
        for n in range(4):
            await repository.create(make_issue(title=f"Fallen tree {n}", assigned_to_id="usr_a" if n % 2 else None))
        await repository.create(make_issue(department="Roads"))

        parks = IssueScope(department="Parks")
        page, total = await repository.find_many(parks, IssueFilters(), offset=1, limit=2)
        assert total == 4
        assert len(page) == 2

        mine, total = await repository.find_many(IssueScope(assigned_to_id="usr_a"), IssueFilters(search="TREE"))
        assert total == 2
        assert all(issue.assigned_to_id == "usr_a" for issue in mine)

        nothing, total = await repository.find_many(IssueScope(deny_all=True), IssueFilters())
        assert (nothing, total) == ([], 0)

    @pytest.mark.asyncio
    async def test_delete_comment(self):
        repository = InMemoryIssueRepository()
        issue = await repository.create(make_issue())
        comment = await repository.add_comment(Comment(issue_id=issue.id, user_id="usr_1", content="Cleared"))

        assert await repository.delete_comment(issue.id, comment.id) is True
        assert await repository.delete_comment(issue.id, comment.id) is False
        assert await repository.delete_comment("iss_missing", comment.id) is False

    @pytest.mark.asyncio
    async def test_find_users_filters_role_department_and_activity(self):
        repository = InMemoryIssueRepository(
            users=[
                User(id="usr_a", email="a@city.gov", role=UserRole.TEAM_MEMBER, department="Parks"),
                User(id="usr_b", email="b@city.gov", role=UserRole.TEAM_MEMBER, department="Roads"),
                User(
                    id="usr_c", email="c@city.gov", role=UserRole.TEAM_MEMBER,
                    department="Parks", is_active=False,
                ),
                User(id="usr_d", email="d@city.gov", role=UserRole.ADMIN),
            ]
        )

        parks = await repository.find_users(role=UserRole.TEAM_MEMBER, department="Parks")
        assert [user.id for user in parks] == ["usr_a"]

        everyone = await repository.find_users(active_only=False)
        assert {user.id for user in everyone} == {"usr_a", "usr_b", "usr_c", "usr_d"}


class TestIssueLocks:
    """Per-issue locks must not outlive the issue they guard"""

    @pytest.mark.asyncio
    async def test_transaction_on_unknown_issue_leaves_no_lock(self):
        repository = InMemoryIssueRepository()
        for n in range(3):
            async with repository.transaction(f"iss_missing_{n}") as tx:
                assert await tx.load() is None
        assert repository._locks == {}

    @pytest.mark.asyncio
    async def test_comment_on_unknown_issue_leaves_no_lock(self):
        repository = InMemoryIssueRepository()
        with pytest.raises(RepositoryError):
            await repository.add_comment(Comment(issue_id="iss_missing", user_id="usr_1", content="Hello"))
        assert await repository.delete_comment("iss_missing", "cmt_1") is False
        assert await repository.delete("iss_missing") is False
        assert repository._locks == {}

    @pytest.mark.asyncio
    async def test_lock_kept_while_issue_exists_and_dropped_on_delete(self):
        repository = InMemoryIssueRepository()
        issue = await repository.create(make_issue())
        async with repository.transaction(issue.id) as tx:
            await tx.load()
        assert issue.id in repository._locks

        assert await repository.delete(issue.id) is True
        assert repository._locks == {}
