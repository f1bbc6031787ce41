"""
Proxy Package
=============

Relays ``/api/*`` traffic to the upstream API.

Main Components:
----------------
- forwarder.py: pure request mapping, response replay, upstream client
- identity.py: account id/email extraction from upstream payloads
- routes.py: FastAPI router classifying requests by path

Usage:
------
    from gate_proxy.app.proxy.routes import proxy_router
    app.include_router(proxy_router, prefix="/api")
"""
