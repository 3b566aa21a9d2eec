# ==============================================================================
# WSGI Entry Point - Para Gunicorn en producción
# ==============================================================================
# USO:
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT
#
# ESTRUCTURA DEL PROYECTO:
#   repo_root/           <- Directorio de trabajo (en sys.path automáticamente)
#   ├── wsgi.py          <- Este archivo
#   ├── pyproject.toml
#   └── meat_depot/      <- Paquete Python
#       ├── main.py      (create_app)
#       ├── services/
#       ├── backends/
#       └── repositories/
#
# La configuración sale del entorno (MD_DATA_DIR, MD_SECRET_KEY, ...),
# ver meat_depot/settings.py
# ==============================================================================

from meat_depot.main import create_app

app = create_app()

if __name__ == '__main__':
    app.run(debug=True, host='0.0.0.0', port=5000)
