"""
ETL monitoring portal service package.

The portal fronts the Apps Script backend, enforcing:
- Authentication: Google sign-in restricted to the corporate domain
- Authorization: allow-list lookup and owner-scoped row visibility
- Caching: short-TTL read-through caches for pages and the proxy

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.adapters: Clients for Apps Script, Google OAuth and Google Drive.
- app.caching: Response caches and the cached Apps Script client.
- app.domain: Sessions, sign-in policy, owner scope, proxy and uploads.
- app.pages: Server-rendered page data and HTML shells.
"""
