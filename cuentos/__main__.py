"""
Application entry point: python -m cuentos
"""
import logging
import sys

import uvicorn

from cuentos.main import app
from cuentos.settings import AppConfig

logger = logging.getLogger("cuentos-app")

SAMPLE_QUERY = "personaje=un pirata galactico&lugar=un asteroide abandonado&objeto=un mapa estelar holografico"


def main() -> int:
    if not AppConfig.get_google_api_key():
        logger.error("Error: GEMINI_API_KEY is not defined in the environment or the .env file.")
        logger.error("Create a .env file and paste your API key there as GEMINI_API_KEY=...")
        return 1

    host = AppConfig.get_value("host")
    port = AppConfig.get_int("port")

    logger.info(f"Servidor escuchando en http://localhost:{port}")
    logger.info("Puedes probar el servicio de cuento e imagen en:")
    logger.info(f"http://localhost:{port}/create-story?{SAMPLE_QUERY}")
    logger.info("Puedes probar el servicio de cuento, imagen y audio en:")
    logger.info(f"http://localhost:{port}/create-story-audio?{SAMPLE_QUERY}")

    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


if __name__ == "__main__":
    sys.exit(main())
