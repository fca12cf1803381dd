from __future__ import annotations

import logging
from typing import Any, Sequence

import gspread
from google.auth import default
from pydantic import ValidationError

from .dictionaries import TASK_SHEET_HEADERS
from .errors import TaskNotFoundError, TaskStoreError
from .models.task import TaskPriority, TaskRow, TaskStatus

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ("https://www.googleapis.com/auth/spreadsheets",)
STATUS_COLUMN = TASK_SHEET_HEADERS.index("Status") + 1


class SheetsTaskStore:
    """Google Sheets-backed task store.

    Rows live on one worksheet whose first row holds ``TASK_SHEET_HEADERS``.
    """

    def __init__(self, worksheet: Any) -> None:
        self._worksheet = worksheet
        self._headers_checked = False

    @classmethod
    def open(
        cls,
        *,
        sheet_id: str,
        worksheet_name: str = "Tasks",
        service_account_info: dict[str, Any] | None = None,
    ) -> "SheetsTaskStore":
        """Open the task worksheet of a spreadsheet.

        Args:
            sheet_id: Spreadsheet key
            worksheet_name: Worksheet (tab) holding the task rows
            service_account_info: Service account key; application default
                credentials are used when omitted
        """
        if service_account_info:
            client = gspread.service_account_from_dict(service_account_info, scopes=SHEETS_SCOPES)
        else:
            credentials, _ = default(scopes=SHEETS_SCOPES)
            client = gspread.authorize(credentials)
        worksheet = client.open_by_key(sheet_id).worksheet(worksheet_name)
        return cls(worksheet)

    def append_tasks(self, tasks: Sequence[TaskRow]) -> None:
        if not tasks:
            return
        self._ensure_headers()
        rows = [self._to_row(task) for task in tasks]
        self._worksheet.append_rows(
            rows,
            value_input_option="RAW",
            insert_data_option="INSERT_ROWS",
        )
        logger.info(
            "Appended tasks to sheet",
            extra={"job_id": tasks[0].job_id, "tasks_count": len(rows)},
        )

    def list_tasks(self, *, job_id: str | None = None) -> list[TaskRow]:
        values = self._worksheet.get_all_values()
        tasks = [self._from_row(row) for row in values[1:] if any(row)]
        if job_id is None:
            return tasks
        return [task for task in tasks if task.job_id == job_id]

    def update_task_status(self, job_id: str, task: str, status: TaskStatus) -> TaskRow:
        values = self._worksheet.get_all_values()
        for offset, row in enumerate(values[1:]):
            if len(row) > 1 and row[0] == job_id and row[1] == task:
                # Sheet rows are 1-indexed and row 1 is the header.
                row_number = offset + 2
                self._worksheet.update_cell(row_number, STATUS_COLUMN, status.value)
                logger.info(
                    "Updated task status",
                    extra={"job_id": job_id, "task": task, "status": status.value},
                )
                updated = self._from_row(row)
                updated.status = status
                return updated
        raise TaskNotFoundError(f"Task {task!r} for job {job_id} not found")

    def _ensure_headers(self) -> None:
        if self._headers_checked:
            return
        if not self._worksheet.row_values(1):
            self._worksheet.update(range_name="A1:I1", values=[list(TASK_SHEET_HEADERS)])
            logger.info("Initialized task sheet headers")
        self._headers_checked = True

    def _to_row(self, task: TaskRow) -> list[str]:
        return [
            task.job_id,
            task.task,
            task.assignee,
            task.status.value,
            task.due.isoformat(),
            task.category,
            task.priority.value,
            f"{task.estimated_hours:g}",
            task.notes,
        ]

    def _from_row(self, row: Sequence[str]) -> TaskRow:
        cells = list(row) + [""] * (len(TASK_SHEET_HEADERS) - len(row))
        job_id, task, assignee, status, due, category, priority, hours, notes = cells[:9]
        try:
            return TaskRow(
                job_id=job_id,
                task=task,
                assignee=assignee,
                status=TaskStatus(status or TaskStatus.pending.value),
                due=due,
                category=category,
                priority=TaskPriority(priority or TaskPriority.medium.value),
                estimated_hours=float(hours) if hours else 0.0,
                notes=notes,
            )
        except (ValidationError, ValueError) as exc:
            raise TaskStoreError(f"Malformed task row for job {job_id!r}: {exc}") from exc


__all__ = ["SheetsTaskStore"]
