from __future__ import annotations

import logging
from functools import wraps

from flask import Flask, jsonify, request, session

from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    BatchPreviewError,
    ConfigNotResolvable,
    DataIntegrityError,
    InsufficientData,
    ValidationError,
)
from .model import BatchReport, CommitResult, PromotionConfig, PromotionDecision, PromotionRecord

logger = logging.getLogger(__name__)


def _material_json(ref) -> dict:
    return {"id": ref.material_id, "name": ref.name, "is_core_subject": ref.is_core_subject}


def decision_json(d: PromotionDecision) -> dict:
    return {
        "student_id": d.student_id,
        "academic_year": d.academic_year,
        "stage_id": d.student_stage_id,
        "outcome": d.outcome.value,
        "reason": d.reason.value,
        "annotations": list(d.annotations),
        "failed_count": d.failed_count,
        "carried_count": d.carried_count,
        "failed_materials": [_material_json(m) for m in d.failed_materials],
        "carried_materials": [_material_json(m) for m in d.carried_materials],
        "absence_blocked_materials": [_material_json(m) for m in d.absence_blocked_materials],
    }


def report_json(r: BatchReport) -> dict:
    return {
        "department_id": r.department_id,
        "stage_id": r.stage_id,
        "academic_year": r.academic_year,
        "counts": {outcome.value: n for outcome, n in r.counts.items()},
        "decisions": [decision_json(d) for d in r.decisions],
        "skipped": [{"student_id": s.student_id, "reason": s.reason} for s in r.skipped],
    }


def commit_json(r: CommitResult) -> dict:
    def outcome_json(o) -> dict:
        return {
            "student_id": o.student_id,
            "outcome": o.outcome.value if o.outcome else None,
            "success": o.success,
            "record_id": o.record_id,
            "error": o.error,
        }

    return {
        "from_year": r.academic_year_from,
        "to_year": r.academic_year_to,
        "succeeded": [outcome_json(o) for o in r.succeeded],
        "failed": [outcome_json(o) for o in r.failed],
        "skipped": [{"student_id": s.student_id, "reason": s.reason} for s in r.skipped],
    }


def config_json(c: PromotionConfig) -> dict:
    return {
        "max_carry_subjects": c.max_carry_subjects,
        "fail_threshold_for_repeat": c.fail_threshold_for_repeat,
        "disable_carry_for_final_year": c.disable_carry_for_final_year,
        "block_carry_for_core": c.block_carry_for_core,
        "repeat_mode": c.repeat_mode.value,
    }


def record_json(r: PromotionRecord) -> dict:
    return {
        "record_id": r.record_id,
        "student_id": r.student_id,
        "academic_year_from": r.academic_year_from,
        "academic_year_to": r.academic_year_to,
        "stage_from_id": r.stage_from_id,
        "stage_to_id": r.stage_to_id,
        "outcome": r.outcome.value,
        "reason": r.reason.value,
        "failed_count": r.failed_count,
        "carried_count": r.carried_count,
        "processed_by": r.processed_by,
        "processed_at": r.processed_at.isoformat() if r.processed_at else None,
    }


def register(app: Flask, container) -> None:
    service = container.promotion_service

    def _fail(message: str, status: int, **extra):
        body = {"success": False, "message": message}
        body.update(extra)
        return jsonify(body), status

    def admin_api(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return _fail("Authentication required", 401)
            if session.get("role") != Role.ADMIN.value:
                return _fail("Admin access required", 403)
            try:
                return view(*args, **kwargs)
            except (ValidationError, InsufficientData) as e:
                return _fail(str(e), 422 if isinstance(e, InsufficientData) else 400)
            except AuthorizationError as e:
                return _fail(str(e), 403)
            except ConfigNotResolvable as e:
                return _fail(str(e), 404)
            except BatchPreviewError as e:
                errors = [{"student_id": sid, "error": str(err)} for sid, err in e.errors]
                unresolvable = all(isinstance(err, ConfigNotResolvable) for _, err in e.errors)
                return _fail(str(e), 404 if unresolvable else 409, errors=errors)
            except DataIntegrityError as e:
                return _fail(str(e), 409)
            except Exception:
                logger.exception("Unhandled error in %s", request.path)
                return _fail("Internal error while processing promotion request", 500)

        return wrapper

    def _required_int(source, name: str) -> int:
        raw = source.get(name)
        if raw is None or str(raw).strip() == "":
            raise ValidationError(f"{name} is required")
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be an integer")

    def _required_str(source, name: str) -> str:
        raw = source.get(name)
        if raw is None or not str(raw).strip():
            raise ValidationError(f"{name} is required")
        return str(raw).strip()

    def _optional_str(source, name: str):
        raw = source.get(name)
        if raw is None:
            return None
        if not isinstance(raw, str):
            raise ValidationError(f"{name} must be a string")
        return raw.strip() or None

    def _optional_int_list(source, name: str):
        raw = source.get(name)
        if raw is None:
            return None
        if not isinstance(raw, list) or not all(isinstance(v, int) and not isinstance(v, bool) for v in raw):
            raise ValidationError(f"{name} must be a list of integers")
        return raw

    @app.route("/api/v1/promotion/preview", methods=["GET"], endpoint="promotion_preview")
    @admin_api
    def promotion_preview():
        report = service.preview_batch(
            _required_int(request.args, "department_id"),
            _required_int(request.args, "stage_id"),
            _required_str(request.args, "academic_year"),
        )
        return jsonify({"success": True, "data": report_json(report)})

    @app.route("/api/v1/promotion/execute", methods=["POST"], endpoint="promotion_execute")
    @admin_api
    def promotion_execute():
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            raise ValidationError("JSON object body is required")
        result = service.commit_batch(
            _required_int(body, "department_id"),
            _required_int(body, "stage_id"),
            _required_str(body, "from_year"),
            to_year=_optional_str(body, "to_year"),
            processed_by=session.get("name") or "Admin",
            student_ids=_optional_int_list(body, "student_ids"),
        )
        return jsonify({"success": True, "message": "Promotion process completed", "data": commit_json(result)})

    @app.route("/api/v1/promotion/evaluate/<int:student_id>", methods=["GET"], endpoint="promotion_evaluate")
    @admin_api
    def promotion_evaluate(student_id: int):
        decision = service.evaluate(student_id, _required_str(request.args, "academic_year"))
        return jsonify({"success": True, "data": decision_json(decision)})

    @app.route("/api/v1/promotion/history/<int:student_id>", methods=["GET"], endpoint="promotion_history")
    @admin_api
    def promotion_history(student_id: int):
        records = service.get_history(student_id)
        return jsonify({"success": True, "data": [record_json(r) for r in records]})

    @app.route("/api/v1/promotion/config/<int:department_id>", methods=["GET"], endpoint="promotion_config_get")
    @admin_api
    def promotion_config_get(department_id: int):
        return jsonify({"success": True, "data": config_json(service.get_config(department_id))})

    @app.route("/api/v1/promotion/config/<int:department_id>", methods=["PUT"], endpoint="promotion_config_put")
    @admin_api
    def promotion_config_put(department_id: int):
        body = request.get_json(silent=True)
        if not isinstance(body, dict):
            raise ValidationError("JSON object body is required")
        config = service.update_config(department_id, body)
        return jsonify({"success": True, "message": "Promotion config updated successfully", "data": config_json(config)})
