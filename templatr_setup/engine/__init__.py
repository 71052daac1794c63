"""
Planning and execution engine.

- version: requirement matching
- detector: installed tool detection
- plan / display: plan construction and rendering
- orchestrator / session: plan execution, optionally on a worker thread
"""
