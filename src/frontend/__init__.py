"""Flask UI (frontend.web) and command-line report (python -m frontend) for the triage engine."""
