"""Flask application factory for inspecting a task manager.

The ``create_app`` function wraps a ``TaskManager`` (a fresh one if
none is given) and returns a Flask app with read-only JSON endpoints:

- ``GET /api/tasks`` — every task's status, start time and whether it is current.
- ``GET /api/resources`` — every resource's total and available units.
- ``GET /api/safety`` — safe sequence (or null) and deadlocked tasks.
- ``GET /api/tasks/<id>`` — one task's report plus its holdings.
"""

from __future__ import annotations

from flask import Flask, Response, jsonify

from py_taskcore.manager import TaskManager

_HTTP_NOT_FOUND = 404


def create_app(manager: TaskManager | None = None) -> Flask:
    """Create and configure the Flask application.

    Args:
        manager: The manager to expose (a new, empty one if omitted).

    Returns:
        A configured Flask application ready to serve.

    """
    manager = manager if manager is not None else TaskManager()
    app = Flask(__name__)

    @app.route("/api/tasks")
    def tasks() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return a summary of every task."""
        return jsonify(
            [
                {
                    "task_id": tcb.task_id,
                    "status": str(tcb.status),
                    "start_time": tcb.start_time,
                    "current": tcb.task_id == manager.current,
                }
                for tcb in manager.tasks()
            ]
        )

    @app.route("/api/tasks/<int:task_id>")
    def task(task_id: int) -> tuple[Response, int] | Response:  # pyright: ignore[reportUnusedFunction]
        """Return one task's report and what it holds."""
        try:
            stats = manager.task_info(task_id)
        except ValueError as e:
            return jsonify({"error": str(e)}), _HTTP_NOT_FOUND
        ledger = manager.ledger
        holdings = {
            str(identity): {
                "allocated": ledger.allocated(task_id, identity),
                "max": ledger.maximum(task_id, identity),
                "need": ledger.need(task_id, identity),
            }
            for identity in ledger.resources()
        }
        return jsonify(
            {
                "task_id": task_id,
                "status": str(stats.status),
                "time": stats.time,
                "syscalls": {str(i): n for i, n in enumerate(stats.syscall_times) if n},
                "resources": holdings,
            }
        )

    @app.route("/api/resources")
    def resources() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return every registered resource with its totals."""
        ledger = manager.ledger
        return jsonify(
            [
                {
                    "identity": str(identity),
                    "slot": ledger.resource_id(identity),
                    "total": ledger.total(identity),
                    "available": ledger.available(identity),
                }
                for identity in ledger.resources()
            ]
        )

    @app.route("/api/safety")
    def safety() -> Response:  # pyright: ignore[reportUnusedFunction]
        """Return the current safety verdict."""
        ledger = manager.ledger
        return jsonify(
            {
                "safe": ledger.is_safe(),
                "sequence": ledger.safe_sequence(),
                "deadlocked": sorted(ledger.detect_deadlock()),
            }
        )

    return app


def main() -> None:
    """Run the inspection server.

    This is the ``py-taskcore-web`` console entry point.
    """
    app = create_app()
    app.run(debug=True, port=8080)
