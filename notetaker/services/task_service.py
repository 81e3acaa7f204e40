"""
Task management service for database operations.
"""
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.logging_config import get_logger
from notetaker.models import Task, TaskStatus, TaskPriority, Transcript
from notetaker.schemas import TaskCreate, TaskUpdate
from notetaker.services.action_items import parse_action_item

logger = get_logger(__name__)

MAX_TASKS = 1000


async def list_tasks(
    db: AsyncSession,
    status: Optional[str] = None,
    assignee: Optional[str] = None,
    meeting_id: Optional[int] = None,
) -> List[Task]:
    """
    List tasks, newest first.

    Args:
        db: Database session
        status: Optional status filter
        assignee: Optional exact assignee filter
        meeting_id: Optional session id filter

    Returns:
        Up to 1000 tasks
    """
    query = select(Task)
    if status:
        query = query.where(Task.status == status)
    if assignee:
        query = query.where(Task.assignee == assignee)
    if meeting_id is not None:
        query = query.where(Task.meeting_id == meeting_id)
    query = query.order_by(Task.created_at.desc(), Task.id.desc()).limit(MAX_TASKS)

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_task(db: AsyncSession, task_id: int) -> Optional[Task]:
    return await db.get(Task, task_id)


async def create_task(db: AsyncSession, data: TaskCreate) -> Task:
    task = Task(
        title=data.title,
        description=data.description,
        priority=data.priority,
        assignee=data.assignee,
        due_date=data.due_date,
        meeting_id=data.meeting_id,
        transcript_id=data.transcript_id,
    )
    task.set_status(data.status)
    db.add(task)
    await db.commit()
    await db.refresh(task)
    logger.info("task_created", task_id=task.id)
    return task


async def update_task(db: AsyncSession, task_id: int, data: TaskUpdate) -> Optional[Task]:
    """
    Apply a partial update.

    Only fields present in the request are changed; a status change keeps
    ``completed_at`` in step.
    """
    task = await db.get(Task, task_id)
    if task is None:
        return None

    updates = data.model_dump(exclude_unset=True)
    status = updates.pop("status", None)
    for field, value in updates.items():
        if field == "title" and not value:
            continue
        setattr(task, field, value)
    if status is not None:
        task.set_status(status)

    await db.commit()
    await db.refresh(task)
    return task


async def delete_task(db: AsyncSession, task_id: int) -> Optional[Task]:
    task = await db.get(Task, task_id)
    if task is None:
        return None
    await db.delete(task)
    await db.commit()
    return task


async def toggle_task(db: AsyncSession, task_id: int) -> Optional[Task]:
    """Flip between completed and todo."""
    task = await db.get(Task, task_id)
    if task is None:
        return None
    next_status = TaskStatus.TODO.value if task.status == TaskStatus.COMPLETED.value else TaskStatus.COMPLETED.value
    task.set_status(next_status)
    await db.commit()
    await db.refresh(task)
    return task


def _priority_for(index: int) -> str:
    if index == 0:
        return TaskPriority.HIGH.value
    if index == 1:
        return TaskPriority.MEDIUM.value
    return TaskPriority.LOW.value


async def create_tasks_from_action_items(db: AsyncSession, transcript: Transcript,
                                         action_items: List[str]) -> List[Task]:
    """
    Create one task per action item, linked to the transcript and its session.

    The caller commits.
    """
    tasks = []
    for index, item in enumerate(action_items):
        parsed = parse_action_item(item)
        task = Task(
            title=parsed.task[:500],
            description=f"From transcript {transcript.id}",
            status=TaskStatus.TODO.value,
            priority=_priority_for(index),
            assignee=parsed.assignee,
            due_date=parsed.due_date,
            meeting_id=transcript.session_id,
            transcript_id=transcript.id,
        )
        db.add(task)
        tasks.append(task)

    if tasks:
        await db.flush()
        logger.info("tasks_created_from_action_items", transcript_id=transcript.id, count=len(tasks))
    return tasks
