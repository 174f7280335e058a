"""tto_server — FastAPI REST API for the TTO interview protocol.

Exposes the InterviewEngine as a stateless HTTP API with session
management, step navigation, response capture, quality review, offline
action replay, and reference data endpoints.
"""
