from __future__ import annotations

from flask import Flask, jsonify

from ..common.datetime_utils import now_local, parse_iso_date
from ..common.http import current_identity, json_body, make_auth_required
from ..common.validators import require_positive_int
from ..container import Container
from ..hours.calculator.standard_calculator import round_hours
from .serializers import entry_to_dict, timesheet_detail, timesheet_to_dict


def register(app: Flask, container: Container) -> None:
    auth_required = make_auth_required(container.tokens)
    workflow = container.workflow
    entries = container.entry_service

    def _with_owner(timesheets):
        owners = {}
        rows = []
        for ts in timesheets:
            if ts.user_id not in owners:
                owners[ts.user_id] = container.users_repo.get_by_id(ts.user_id)
            rows.append(timesheet_to_dict(ts, owner=owners[ts.user_id]))
        return rows

    def _detail(timesheet_id: int):
        view = workflow.get_for_viewer(timesheet_id=timesheet_id, actor=current_identity())
        return timesheet_detail(view.timesheet, view.entries, container.calculator, owner=view.owner)

    @app.route("/timesheets", methods=["POST"], endpoint="create_timesheet")
    @auth_required
    def create_timesheet():
        body = json_body()
        start = parse_iso_date(body.get("periodStart") or "")
        end = parse_iso_date(body.get("periodEnd") or "")
        timesheet, created = entries.create_for_period(user_id=current_identity().user_id, start=start, end=end)
        return jsonify({"timesheet": _detail(timesheet.timesheet_id)}), 201 if created else 200

    @app.route("/timesheets", methods=["GET"], endpoint="list_timesheets")
    @auth_required
    def list_timesheets():
        return jsonify({"timesheets": _with_owner(workflow.list_for_user(current_identity()))})

    @app.route("/timesheets/current", methods=["GET"], endpoint="current_timesheet")
    @auth_required
    def current_timesheet():
        timesheet = entries.get_or_create_current(user_id=current_identity().user_id, today=now_local().date())
        return jsonify({"timesheet": _detail(timesheet.timesheet_id)})

    @app.route("/timesheets/<int:timesheet_id>", methods=["GET"], endpoint="get_timesheet")
    @auth_required
    def get_timesheet(timesheet_id: int):
        return jsonify({"timesheet": _detail(timesheet_id)})

    @app.route("/timesheets/<int:timesheet_id>/entries/<int:entry_id>", methods=["PATCH"], endpoint="update_entry")
    @auth_required
    def update_entry(timesheet_id: int, entry_id: int):
        entry = entries.update_entry(
            timesheet_id=timesheet_id,
            entry_id=entry_id,
            fields=json_body(),
            acting_user_id=current_identity().user_id,
        )
        return jsonify({"entry": entry_to_dict(entry, container.calculator)})

    @app.route("/timesheets/<int:timesheet_id>/apply-template", methods=["POST"], endpoint="apply_template")
    @auth_required
    def apply_template(timesheet_id: int):
        template_id = require_positive_int(json_body().get("templateId"), "templateId")
        result = entries.apply_template(
            timesheet_id=timesheet_id,
            template_id=template_id,
            acting_user_id=current_identity().user_id,
        )
        return jsonify(
            {
                "message": f"Template '{result.template_name}' applied to {result.entries_updated} entries",
                "timesheet": _detail(timesheet_id),
            }
        )

    def _transition_response(result, message: str):
        return jsonify({"message": message, "timesheet": timesheet_to_dict(result.timesheet)})

    @app.route("/timesheets/<int:timesheet_id>/submit", methods=["POST"], endpoint="submit_timesheet")
    @auth_required
    def submit_timesheet(timesheet_id: int):
        result = workflow.submit(
            timesheet_id=timesheet_id, actor=current_identity(), signature=json_body().get("signature")
        )
        return _transition_response(result, "Timesheet submitted successfully")

    @app.route("/timesheets/<int:timesheet_id>/approve", methods=["POST"], endpoint="manager_approve")
    @auth_required
    def manager_approve(timesheet_id: int):
        result = workflow.manager_approve(
            timesheet_id=timesheet_id, actor=current_identity(), signature=json_body().get("signature")
        )
        return _transition_response(result, "Timesheet approved and sent to HR")

    @app.route("/timesheets/<int:timesheet_id>/deny", methods=["POST"], endpoint="manager_deny")
    @auth_required
    def manager_deny(timesheet_id: int):
        result = workflow.manager_deny(timesheet_id=timesheet_id, actor=current_identity(), note=json_body().get("note"))
        return _transition_response(result, "Timesheet returned to staff")

    @app.route("/timesheets/<int:timesheet_id>/hr-approve", methods=["POST"], endpoint="hr_approve")
    @auth_required
    def hr_approve(timesheet_id: int):
        result = workflow.hr_approve(
            timesheet_id=timesheet_id, actor=current_identity(), signature=json_body().get("signature")
        )
        return _transition_response(result, "Timesheet approved successfully")

    @app.route("/timesheets/<int:timesheet_id>/hr-deny", methods=["POST"], endpoint="hr_deny")
    @auth_required
    def hr_deny(timesheet_id: int):
        result = workflow.hr_deny(timesheet_id=timesheet_id, actor=current_identity(), note=json_body().get("note"))
        return _transition_response(result, "Timesheet returned to staff")

    def _pending_rows(timesheets):
        rows = _with_owner(timesheets)
        for row, ts in zip(rows, timesheets):
            summary = container.calculator.period_summary(container.timesheets_repo.list_entries(ts.timesheet_id))
            row["totalHours"] = str(round_hours(summary.total_hours))
        return rows

    @app.route("/manager/pending-approvals", methods=["GET"], endpoint="manager_pending")
    @auth_required
    def manager_pending():
        return jsonify({"timesheets": _pending_rows(workflow.pending_manager_approvals(current_identity()))})

    @app.route("/hr/pending-approvals", methods=["GET"], endpoint="hr_pending")
    @auth_required
    def hr_pending():
        return jsonify({"timesheets": _pending_rows(workflow.pending_hr_approvals(current_identity()))})
