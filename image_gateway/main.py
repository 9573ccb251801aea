import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from image_gateway.api.routes import router
from image_gateway.core.config import Config
from image_gateway.core.describer import OpenAIVisionDescriber, VisionDescriber
from image_gateway.core.transcoder import WebPTranscoder
from image_gateway.middleware.error_handler import ErrorHandlerMiddleware
from image_gateway.middleware.request_logger import RequestLoggerMiddleware
from image_gateway.middleware.timeout import TimeoutMiddleware
from image_gateway.utils.memory import process_memory_mb


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.transcoder.shutdown()
    await app.state.describer.close()


def create_app(config: Optional[Config] = None, describer: Optional[VisionDescriber] = None) -> FastAPI:
    """Build the application with its collaborators attached to ``app.state``."""
    config = config or Config()

    app = FastAPI(
        title="Image Gateway API",
        description="Upload images, convert them to WebP or base64, and describe them with a vision model",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.transcoder = WebPTranscoder(config)
    app.state.describer = describer or OpenAIVisionDescriber(config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Registered last runs first: the timeout wraps everything else
    app.add_middleware(RequestLoggerMiddleware)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(TimeoutMiddleware)

    app.include_router(router)
    app.add_api_route("/health", health_check, methods=["GET"])

    logging.info("Image gateway application created")
    return app


async def health_check(request: Request):
    config: Config = request.app.state.config
    try:
        memory_mb = process_memory_mb()
        memory_status = "healthy" if memory_mb < config.memory_threshold_mb else "warning"
        return {
            "status": "healthy",
            "memory": {
                "current_mb": round(memory_mb, 1),
                "threshold_mb": config.memory_threshold_mb,
                "status": memory_status
            },
        }
    except Exception as e:
        logging.warning(f"Health check could not read memory usage: {str(e)}")
        return {
            "status": "healthy",
            "memory": {
                "error": str(e)
            }
        }


def main():
    """Run the API server."""
    import uvicorn

    # .env in the working directory; real environment variables win
    load_dotenv(find_dotenv(usecwd=True))
    config = Config()
    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
