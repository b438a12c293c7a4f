"""Timesheet System package.

Feature modules (timesheets, notifications, templates, users) each carry a
thin Flask controller on top of service and repository layers. The approval
workflow lives in ``timesheets.workflow``; its side effects are delivered
through the outbox in ``notifications``.
"""
