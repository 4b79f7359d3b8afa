"""
Main Application Entry Point

This script boots the server-rendered web application.

Key Responsibilities:
---------------------
- Sets up unified structured logging.
- Loads and validates configuration, classifies the environment.
- Starts the data store connection and assembles the request pipeline:
  nonce or security headers, compression, service worker routes, static
  bundle and public assets, the GraphQL endpoint, the render catch-all and the
  error boundary.
- Listens on the configured port.

Application Lifecycle:
-----------------------
- startup: create the posts table once the data store is connected.
- shutdown: close the data store connection.

Typical Use:
------------
Run from the repository root:

    APP_ENV=development DATABASE_URI=postgresql://localhost/app python backend/main.py

or through the installed `app-server` console script.
"""
from app.lifecycle.orchestrator import main

if __name__ == "__main__":
    main()
