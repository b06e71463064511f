"""Task engine: document model, store, dependency graph, priority pipeline,
status state machine and the change watcher.

Import the concrete modules directly; the public facade is
:class:`agentic_tasks.task_engine.engine.TaskEngine`.
"""
