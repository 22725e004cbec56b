"""Matter workflows.

Workflow automation for a practice-management system:
- workflow definitions (trigger, conditions, ordered actions) as plain data
- an engine that matches events, runs action chains and records executions
- local JSON persistence, a small CLI and a REST API
"""

__version__ = "0.1.0"

from matter_workflows.config import WorkflowSettings

__all__ = ["__version__", "WorkflowSettings"]
