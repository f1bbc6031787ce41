"""
Gate Proxy Application Package

Reverse proxy in front of the upstream API that keeps deleted accounts out:
account deletion is recorded locally and every later login for that account
is refused.
"""
