"""
Kanban board with optimistic updates

The board holds an immutable tuple of task dicts. A move or delete is
applied locally first, then sent to the server; the server's copy is kept
on success and the previous tuple is put back on failure. Last write wins:
there is no version check against concurrent edits.
"""
import logging

from models import TaskStatus
from views import board_snapshot

logger = logging.getLogger(__name__)


class TaskBoard:

    def __init__(self, client, tasks=()):
        self._client = client
        self._tasks = tuple(tasks)

    @classmethod
    def load(cls, client):
        """Board for the logged-in user's owned and assigned tasks"""
        return cls(client, client.me()['tasks'])

    @property
    def tasks(self):
        return self._tasks

    def snapshot(self, search=None):
        return board_snapshot(self._tasks, search=search)

    def get(self, task_id):
        for task in self._tasks:
            if task['id'] == task_id:
                return task
        raise KeyError(task_id)

    def move(self, task_id, status):
        """
        Move a task to another column

        Any column to any column. Dropping a task on its own column does
        nothing and makes no request.
        """
        status = TaskStatus(status).value
        task = self.get(task_id)
        if task['status'] == status:
            return task

        previous = self._tasks
        self._tasks = tuple(
            dict(t, status=status) if t['id'] == task_id else t for t in previous
        )

        try:
            saved = self._client.update_task(task_id, status=status)
        except Exception:
            self._tasks = previous
            logger.warning(f"Moving task {task_id} to {status} failed; board reverted")
            raise

        merged = dict(task, **saved)
        self._tasks = tuple(merged if t['id'] == task_id else t for t in self._tasks)
        return merged

    def delete(self, task_id):
        task = self.get(task_id)
        previous = self._tasks
        self._tasks = tuple(t for t in previous if t['id'] != task_id)

        try:
            self._client.delete_task(task_id)
        except Exception:
            self._tasks = previous
            logger.warning(f"Deleting task {task_id} failed; board reverted")
            raise
        return task
