"""
Tests for task service.
"""
import pytest
from sqlalchemy import select

from notetaker.models import Transcript
from notetaker.schemas import TaskCreate, TaskUpdate
from notetaker.services import task_service


async def get_transcript(db, notetaker_id="nt-123"):
    result = await db.execute(select(Transcript).where(Transcript.notetaker_id == notetaker_id))
    return result.scalar_one()


@pytest.mark.unit
class TestTaskService:
    """Test task service database operations."""

    @pytest.mark.asyncio
    async def test_create_task_defaults(self, test_db_session):
        task = await task_service.create_task(test_db_session, TaskCreate(title="Draft budget"))

        assert task.id is not None
        assert task.status == "todo"
        assert task.priority == "medium"
        assert task.completed_at is None

    @pytest.mark.asyncio
    async def test_create_completed_task_sets_completed_at(self, test_db_session):
        task = await task_service.create_task(
            test_db_session, TaskCreate(title="Draft budget", status="completed")
        )
        assert task.completed_at is not None

    @pytest.mark.asyncio
    async def test_status_change_keeps_completed_at_in_step(self, test_db_session):
        task = await task_service.create_task(test_db_session, TaskCreate(title="Draft budget"))

        task = await task_service.update_task(test_db_session, task.id, TaskUpdate(status="completed"))
        assert task.completed_at is not None

        task = await task_service.update_task(test_db_session, task.id, TaskUpdate(status="in-progress"))
        assert task.status == "in-progress"
        assert task.completed_at is None

    @pytest.mark.asyncio
    async def test_partial_update_leaves_other_fields(self, test_db_session):
        task = await task_service.create_task(
            test_db_session, TaskCreate(title="Draft budget", assignee="Maria", priority="high")
        )

        task = await task_service.update_task(test_db_session, task.id, TaskUpdate(description="Q3 numbers"))

        assert task.title == "Draft budget"
        assert task.assignee == "Maria"
        assert task.priority == "high"
        assert task.description == "Q3 numbers"

    @pytest.mark.asyncio
    async def test_update_missing_task(self, test_db_session):
        assert await task_service.update_task(test_db_session, 999, TaskUpdate(status="todo")) is None

    @pytest.mark.asyncio
    async def test_toggle(self, test_db_session):
        task = await task_service.create_task(test_db_session, TaskCreate(title="Draft budget"))

        task = await task_service.toggle_task(test_db_session, task.id)
        assert task.status == "completed"
        assert task.completed_at is not None

        task = await task_service.toggle_task(test_db_session, task.id)
        assert task.status == "todo"
        assert task.completed_at is None

    @pytest.mark.asyncio
    async def test_delete(self, test_db_session):
        task = await task_service.create_task(test_db_session, TaskCreate(title="Draft budget"))

        deleted = await task_service.delete_task(test_db_session, task.id)

        assert deleted.id == task.id
        assert await task_service.get_task(test_db_session, task.id) is None
        assert await task_service.delete_task(test_db_session, task.id) is None

    @pytest.mark.asyncio
    async def test_list_filters_and_order(self, test_db_session):
        first = await task_service.create_task(test_db_session, TaskCreate(title="First", assignee="Maria"))
        second = await task_service.create_task(
            test_db_session, TaskCreate(title="Second", assignee="Bob", status="completed")
        )
        third = await task_service.create_task(test_db_session, TaskCreate(title="Third", assignee="Maria"))

        all_tasks = await task_service.list_tasks(test_db_session)
        maria_tasks = await task_service.list_tasks(test_db_session, assignee="Maria")
        completed = await task_service.list_tasks(test_db_session, status="completed")

        assert [t.id for t in all_tasks] == [third.id, second.id, first.id]
        assert [t.id for t in maria_tasks] == [third.id, first.id]
        assert [t.id for t in completed] == [second.id]


@pytest.mark.unit
class TestTasksFromActionItems:

    @pytest.mark.asyncio
    async def test_one_task_per_item(self, test_db_session, make_session):
        session = await make_session(with_transcript=True)
        transcript = await get_transcript(test_db_session)

        tasks = await task_service.create_tasks_from_action_items(test_db_session, transcript, [
            "Send grant report (Maria - 2025-03-14)",
            "Book the meeting room (Bob)",
            "Review the vendor contracts",
        ])
        await test_db_session.commit()

        assert [t.priority for t in tasks] == ["high", "medium", "low"]
        assert all(t.status == "todo" for t in tasks)
        assert all(t.meeting_id == session.id for t in tasks)
        assert all(t.transcript_id == transcript.id for t in tasks)
        assert tasks[0].title == "Send grant report"
        assert tasks[0].assignee == "Maria"
        assert tasks[0].due_date is not None
        assert tasks[1].assignee == "Bob"
        assert tasks[2].title == "Review the vendor contracts"
        assert tasks[2].description == f"From transcript {transcript.id}"

        listed = await task_service.list_tasks(test_db_session, meeting_id=session.id)
        assert len(listed) == 3

    @pytest.mark.asyncio
    async def test_no_items_no_tasks(self, test_db_session, make_session):
        await make_session(with_transcript=True)
        transcript = await get_transcript(test_db_session)

        assert await task_service.create_tasks_from_action_items(test_db_session, transcript, []) == []
