"""
Task CRUD endpoints.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from notetaker.db import get_session
from notetaker.models import Task
from notetaker.schemas import TaskCreate, TaskOut, TaskUpdate, TaskStatusLiteral
from notetaker.services import task_service

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def task_to_dict(task: Task) -> dict:
    return TaskOut.model_validate(task).model_dump(by_alias=True, mode="json")


def _require(task: Optional[Task]) -> Task:
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


@router.get("")
async def list_tasks(
    status_filter: Optional[TaskStatusLiteral] = Query(None, alias="status"),
    assignee: Optional[str] = None,
    meeting_id: Optional[int] = Query(None, alias="meetingId"),
    db: AsyncSession = Depends(get_session),
):
    tasks = await task_service.list_tasks(db, status=status_filter, assignee=assignee, meeting_id=meeting_id)
    return {"success": True, "data": [task_to_dict(t) for t in tasks]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(data: TaskCreate, db: AsyncSession = Depends(get_session)):
    task = await task_service.create_task(db, data)
    return {"success": True, "data": task_to_dict(task)}


@router.get("/{task_id}")
async def get_task(task_id: int, db: AsyncSession = Depends(get_session)):
    task = _require(await task_service.get_task(db, task_id))
    return {"success": True, "data": task_to_dict(task)}


@router.patch("/{task_id}")
async def update_task(task_id: int, data: TaskUpdate, db: AsyncSession = Depends(get_session)):
    task = _require(await task_service.update_task(db, task_id, data))
    return {"success": True, "data": task_to_dict(task)}


@router.delete("/{task_id}")
async def delete_task(task_id: int, db: AsyncSession = Depends(get_session)):
    task = _require(await task_service.delete_task(db, task_id))
    return {"success": True, "data": task_to_dict(task)}


@router.patch("/{task_id}/toggle")
async def toggle_task(task_id: int, db: AsyncSession = Depends(get_session)):
    task = _require(await task_service.toggle_task(db, task_id))
    return {"success": True, "data": task_to_dict(task)}
