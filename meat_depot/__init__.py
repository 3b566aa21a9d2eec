# ==============================================================================
# MEAT DEPOT - Estado central de la app y sincronización con la nube
# ==============================================================================
# Paquete principal. Ver wsgi.py en la raíz del repositorio para el punto de
# entrada en producción (gunicorn wsgi:app).
# ==============================================================================

__version__ = '1.1.0'
