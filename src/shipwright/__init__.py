"""
Shipwright - deploy a backend service, verify it live, roll back on failure.

Packages:
- shipwright.core: Errors and settings
- shipwright.logging: Structured logging (structlog)
- shipwright.deploy: Orchestrators, probes, readiness polling
- shipwright.cli: Typer command-line interface
"""

__version__ = "0.1.0"
