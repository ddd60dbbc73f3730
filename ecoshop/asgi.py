"""
ASGI entrypoint: expose `app` pour les process managers / déploiements.

- En production, un process manager (ex: gunicorn -k uvicorn.workers.UvicornWorker) importe
  `ecoshop.asgi:app`.
- Le worker d'événements tourne dans un processus séparé: `python -m ecoshop.events`.
"""

from ecoshop.app import app

if __name__ == "__main__":
    import os
    import uvicorn
    uvicorn.run(
        "ecoshop.asgi:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
