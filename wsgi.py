# ==============================================================================
# ARRANQUE DE LA TIENDA
# ==============================================================================
#   gunicorn wsgi:app --bind 0.0.0.0:$PORT     (producción)
#   python wsgi.py                              (desarrollo, SHOP_PORT o 5000)
#
# Al importar se crea el impuesto "Default VAT" (5%) si todavía no existe.
# Variables de entorno: ver app_shop/config.py
# ==============================================================================

import logging
import os

from app_shop.main import app, container

logger = logging.getLogger('app_shop.wsgi')


def bootstrap():
    """Datos mínimos para poder cobrar y avisos de configuración incompleta."""
    shop = container()
    shop.tax_service.create_default_taxes()
    if not shop.settings.stripe_secret_key:
        logger.warning('STRIPE_SECRET_KEY vacía: el checkout con tarjeta fallará')
    if not shop.settings.stripe_webhook_secret:
        logger.warning('STRIPE_WEBHOOK_SECRET vacío: todos los webhooks se rechazarán')


bootstrap()


if __name__ == '__main__':
    app.run(
        debug=not container().settings.production_mode,
        host='0.0.0.0',
        port=int(os.environ.get('SHOP_PORT', 5000)),
    )
