"""Engine — input normalization, revenue stream, and run orchestration.

Entry point: ``carbon_engine.engine.orchestrator.run_model``.
"""
