"""Interview scheduling and meeting-provider orchestration.

Attendee resolution, provider gateway, meeting orchestrator, lifecycle
state machine and best-effort side-effect dispatch.
"""
