"""auth/ -- Credential and one-time-code challenge core.

Layer rule: auth/ imports only stdlib + third-party libraries (fastapi only in
dependencies.py). It does NOT import from api/, lessons/, or notify/.
api/ imports from auth/, not the other way around.
"""
