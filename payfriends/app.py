from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

from flask import Flask, current_app, g, jsonify, request
from flask_cors import CORS
from flask_mail import BadHeaderError

from . import ledger
from .aggregator import OWER_METRICS, aggregate_pending, owed_totals, summarize
from .auth import TokenVerifier, bearer_token, firebase_token_verifier, require_member, token_matches
from .config import Config, config
from .db import Database
from .errors import LedgerError, StorageError, ValidationError
from .mailer import Mailer
from .reports import MailSender, send_report_emails, send_test_email
from .scheduler import start_report_scheduler

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Config
    store: Any
    mailer: MailSender
    verify_token: TokenVerifier


def configure_logging(settings: Config) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="[%(levelname)s] %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Config] = None,
    store: Any = None,
    mailer: Optional[MailSender] = None,
    verify_token: Optional[TokenVerifier] = None,
) -> Flask:
    settings = settings or config
    configure_logging(settings)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = settings.SECRET_KEY
    app.config.update(settings.mail_settings())

    CORS(
        app,
        resources={r"/api/*": {"origins": settings.CORS_ORIGINS}},
    )

    if store is None or mailer is None:
        settings.validate()
    if store is None:
        store = Database.from_config(settings)
    if mailer is None:
        mailer = Mailer.init_app(app, timeout=settings.MAIL_SEND_TIMEOUT)

    services = Services(
        settings=settings,
        store=store,
        mailer=mailer,
        verify_token=verify_token or firebase_token_verifier,
    )
    app.extensions["payfriends"] = services

    register_error_handlers(app)
    register_routes(app)

    if settings.SCHEDULER_ENABLED:
        start_report_scheduler(lambda: run_scheduled_reports(services), settings)

    return app


def run_scheduled_reports(services: Services) -> None:
    logger.info("Running scheduled report email job...")
    try:
        send_report_emails(services.store, services.mailer, services.settings)
    except StorageError as exc:
        logger.error("Error sending report emails: %s", exc)


def _services() -> Services:
    return current_app.extensions["payfriends"]


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("invalid_body")
    return payload


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        return jsonify({"error": exc.code}), exc.status_code

    @app.errorhandler(StorageError)
    def handle_storage_error(exc: StorageError):
        logger.error("Storage failure: %s", exc)
        return jsonify({"error": "storage_unavailable"}), 500


def register_routes(app: Flask) -> None:
    @app.get("/")
    def index():
        return "Welcome to Pay Your Friends!"

    @app.get("/send-test-email")
    def test_email():
        services = _services()
        recipient = services.settings.TEST_EMAIL_RECIPIENT
        if not recipient:
            logger.error("Failed to send test email: TEST_EMAIL_RECIPIENT is not set")
            return "Failed to send test email.", 500
        try:
            send_test_email(services.mailer, recipient)
        except (OSError, BadHeaderError) as exc:
            logger.error("Failed to send test email: %s", exc)
            return "Failed to send test email.", 500
        return "Test email sent successfully!"

    @app.route("/send-reports", methods=["GET", "POST"])
    @app.route("/api/scheduled-report", methods=["GET", "POST"])
    def send_reports():
        services = _services()
        if not token_matches(bearer_token(), services.settings.REPORT_TOKEN):
            return "Unauthorized", 401
        try:
            result = send_report_emails(services.store, services.mailer, services.settings)
        except StorageError as exc:
            logger.error("Error sending report emails: %s", exc)
            return "Error sending report emails.", 500
        return f"Report emails sent successfully! ({result.summary()})"

    @app.get("/api/session")
    @require_member
    def get_session():
        member = g.member
        return jsonify({"name": member.name, "email": member.email, "group": member.group})

    @app.get("/api/members")
    @require_member
    def list_members():
        return jsonify(_services().store.member_names())

    @app.get("/api/expenses")
    @require_member
    def list_expenses():
        order = request.args.get("order", "desc")
        if order not in ("asc", "desc"):
            return jsonify({"error": "invalid_order"}), 400
        records = sorted(
            _services().store.list_expenses(),
            key=lambda record: record.date or date.min,
            reverse=order == "desc",
        )
        return jsonify([record.to_json() for record in records])

    @app.post("/api/expenses")
    @require_member
    def add_expense():
        payload = _json_body()
        friends = payload.get("involved") or []
        if not isinstance(friends, list):
            return jsonify({"error": "invalid_involved"}), 400

        record = ledger.new_expense(
            fronted_by=g.member.name,
            expense_date=payload.get("date"),
            description=payload.get("description") or payload.get("transaction") or "",
            amount=payload.get("amount"),
            friends=friends,
        )
        record = _services().store.add_expense(record)
        return jsonify(record.to_json()), 201

    @app.patch("/api/expenses/<expense_id>")
    @require_member
    def edit_expense(expense_id: str):
        payload = _json_body()
        store = _services().store
        record = ledger.edit_expense(
            store.get_expense(expense_id),
            actor=g.member.name,
            expense_date=payload.get("date"),
            description=payload.get("description"),
            amount=payload.get("amount"),
        )
        store.update_expense(record)
        return jsonify(record.to_json())

    @app.post("/api/expenses/<expense_id>/toggle")
    @require_member
    def toggle_payment(expense_id: str):
        payload = _json_body()
        person = payload.get("person")
        if not isinstance(person, str) or not person.strip():
            return jsonify({"error": "missing_fields"}), 400

        store = _services().store
        record = ledger.toggle_payment(store.get_expense(expense_id), person.strip(), actor=g.member.name)
        store.update_payment_status(record)
        return jsonify(record.to_json())

    @app.delete("/api/expenses/<expense_id>")
    @require_member
    def delete_expense(expense_id: str):
        store = _services().store
        ledger.ensure_deletable(store.get_expense(expense_id), actor=g.member.name)
        store.delete_expense(expense_id)
        return jsonify({"status": "deleted"})

    @app.get("/api/analytics")
    @require_member
    def analytics():
        metric = request.args.get("metric", "amount")
        if metric not in OWER_METRICS:
            return jsonify({"error": "invalid_metric"}), 400
        records = _services().store.list_expenses()
        return jsonify(summarize(records, date.today(), ower_metric=metric).to_json())

    @app.get("/api/balances")
    @require_member
    def balances():
        records = _services().store.list_expenses()
        pending = aggregate_pending(records)
        return jsonify(
            {
                "pending": {
                    person: [detail.to_json() for detail in details]
                    for person, details in pending.items()
                },
                "owed": {person: float(total) for person, total in owed_totals(records).items()},
            }
        )


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", 3000)))
