# ============================================================================
# src/lab_reconciliation/__init__.py
# ============================================================================
"""
Lab Report Reconciliation Engine

Ingests parsed lab reports and files their readings under the right family
member: continuation pages, profile resolution, biomarker matching, unit
conversion, duplicate rejection and the pending-name prompt.

Usage:
    from lab_reconciliation import create_orchestrator, ExternalUser

    orchestrator = create_orchestrator(on_outcome=send_to_chat)
    await orchestrator.submit_upload(ExternalUser("42"), data, "image/jpeg", "report.jpg")
"""

__version__ = "0.1.0"

from .core.models import ExternalUser
from .core.outcomes import IngestionOutcome, OutcomeKind
from .core.orchestrator import IngestionOrchestrator, create_orchestrator
