"""
Domain logic for the portal: sessions, sign-in policy, owner scoping,
the proxy, uploads and the authentication gate.
"""
