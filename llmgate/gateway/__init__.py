"""LLM Provider Request Gateway.

Turns a logical "call this model with this payload" request into a correctly
shaped, authenticated and timed HTTP call to one of several LLM APIs:
  - Endpoint Adapters (wire shape per endpoint kind)
  - Timeout/Fallback Policy Resolver (per-kind timeouts, call-time override)
  - Request Dispatcher (one httpx attempt, outcome classification)
  - LLM Client Gateway (credential decryption, fallback sequence, typed errors)
"""
