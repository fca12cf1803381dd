from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Callable

from .dictionaries import HOURS_PER_WORKDAY
from .estimation import determine_priority, estimate_hours
from .models.quote import QuoteData, ServiceItem
from .models.task import SchedulingOptions, TaskPriority, TaskRow, TaskStatus


def _format_number(value: float) -> str:
    return f"{value:g}"


class TaskScheduler:
    """Expands an accepted quote into an ordered, dated task list.

    The batch is bracketed by fixed admin tasks: a site visit and materials
    procurement before the service work, a quality inspection and invoicing
    after it. Service tasks follow the quote's service order.
    """

    def __init__(
        self,
        *,
        hours_estimator: Callable[[ServiceItem], float] = estimate_hours,
        priority_resolver: Callable[[ServiceItem], TaskPriority] = determine_priority,
    ) -> None:
        self._estimate_hours = hours_estimator
        self._determine_priority = priority_resolver

    def schedule(self, quote: QuoteData, options: SchedulingOptions | None = None) -> list[TaskRow]:
        options = options or SchedulingOptions()
        base_date = quote.created_at.date() + timedelta(days=options.buffer_days)

        tasks: list[TaskRow] = [
            TaskRow(
                job_id=quote.id,
                task="Schedule site visit and confirm access",
                assignee=options.manager,
                status=TaskStatus.pending,
                due=base_date,
                category="Admin",
                priority=TaskPriority.high,
                estimated_hours=1,
                notes=f"Client: {quote.client_name}, Property: {quote.property.address}",
            ),
            TaskRow(
                job_id=quote.id,
                task="Procure materials and equipment",
                assignee=options.manager,
                status=TaskStatus.pending,
                due=base_date + timedelta(days=1),
                category="Procurement",
                priority=TaskPriority.medium,
                estimated_hours=2,
                notes=f"Total value: ${quote.total:.2f} - Review services list for materials needed",
            ),
        ]

        current_due = base_date + timedelta(days=2)
        services = list(quote.services)
        for index, service in enumerate(services):
            hours = self._estimate_hours(service)
            # Multi-day work pushes the date out before it is recorded.
            if hours > HOURS_PER_WORKDAY:
                current_due += timedelta(days=math.ceil(hours / HOURS_PER_WORKDAY))

            tasks.append(self._service_task(quote, service, options, current_due, hours))

            is_last = index == len(services) - 1
            if not is_last and services[index + 1].category != service.category:
                current_due += timedelta(days=1)

        final_due = current_due + timedelta(days=1)
        tasks.append(
            TaskRow(
                job_id=quote.id,
                task="Quality inspection and client walkthrough",
                assignee=options.manager,
                status=TaskStatus.pending,
                due=final_due,
                category="QA",
                priority=TaskPriority.high,
                estimated_hours=2,
                notes="Final inspection with client before project completion",
            )
        )
        tasks.append(
            TaskRow(
                job_id=quote.id,
                task="Invoice and payment collection",
                assignee=options.accounts_assignee,
                status=TaskStatus.pending,
                due=final_due + timedelta(days=1),
                category="Admin",
                priority=TaskPriority.high,
                estimated_hours=1,
                notes=f"Total amount: ${quote.total:.2f}",
            )
        )
        return tasks

    def _service_task(
        self,
        quote: QuoteData,
        service: ServiceItem,
        options: SchedulingOptions,
        due: date,
        hours: float,
    ) -> TaskRow:
        assignee = options.category_assignees.get(service.category) or options.default_assignee
        notes = (
            f"{_format_number(service.quantity)} {service.unit} "
            f"@ ${service.unit_price:.2f} each. {service.notes or ''}"
        ).strip()
        return TaskRow(
            job_id=quote.id,
            task=service.description,
            assignee=assignee,
            status=TaskStatus.pending,
            due=due,
            category=service.category,
            priority=self._determine_priority(service),
            estimated_hours=hours,
            notes=notes,
        )


__all__ = ["TaskScheduler"]
