"""auth/ -- Users, credentials and sessions for the POS backend.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from main.py. The CLI and the desktop shell import from
auth/, not the other way around.
"""
