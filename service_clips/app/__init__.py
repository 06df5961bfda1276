"""
Clips Service package.

Short-lived text sharing: clients submit text ("clips"), receive a token,
and redeem the token to read the content until it expires. It provides:

- app.main: HTTP surface for creating, reading, inspecting and deleting clips.
- app.storage: Hybrid memory + Redis clip store and the expiry sweeper.
- app.security: Token generation and password hashing.
- app.models: Clip data model and request/response schemas.

Guidelines:
- Redis is optional; the service must run fully without it.
- Policy rejections are reported as "not found", never as errors.
- Never log clip content or passwords.
"""
