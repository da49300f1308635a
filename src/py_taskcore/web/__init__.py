"""Browser-facing inspection API for the task core.

This package provides a Flask application that exposes a task manager's
state as JSON.  It is an **optional** extra — install with::

    pip install py-taskcore[web]

The ``create_app`` factory in ``app.py`` wraps a manager and serves
``/api/tasks``, ``/api/tasks/<id>``, ``/api/resources`` and
``/api/safety``.
"""
