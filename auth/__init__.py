"""auth/ -- Credential and token subsystem for Tracker.

Layer rule: auth/ imports only stdlib + third-party libraries, with one
exception: auth/tokens.py reads core.config.Settings in
TokenConfig.from_settings(). It does NOT import from api/.
api/ imports from auth/, not the other way around.
"""
