# ==============================================================================
# APP SHOP - Carrito, checkout y pedidos de la tienda online
# ==============================================================================
# Capas:
#   models/        -> entidades (dataclasses)
#   repositories/  -> persistencia en archivos JSON
#   services/      -> reglas de negocio
#   main.py        -> rutas Flask
# ==============================================================================

__version__ = '1.0.0'
