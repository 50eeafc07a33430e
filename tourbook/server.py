import asyncio
import logging
import os
import signal
import sys
import threading

import uvicorn

from . import config

logger = logging.getLogger(__name__)

crashed = threading.Event()


def shut_down():
    crashed.set()
    # lets uvicorn close its listeners before the process exits
    os.kill(os.getpid(), signal.SIGTERM)


def log_uncaught(exc_type, exc, tb):
    logger.critical("UNCAUGHT EXCEPTION! Shutting down...", exc_info=(exc_type, exc, tb))


def shutdown_on_thread_error(args):
    logger.critical(
        "UNHANDLED ERROR in %s! Shutting down...",
        args.thread.name if args.thread else "thread",
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )
    shut_down()


def shutdown_on_loop_error(loop, context):
    """Event loop exception handler: unawaited task failures and callback errors."""
    exc = context.get("exception")
    logger.critical(
        "UNHANDLED REJECTION! %s Shutting down...",
        context.get("message", ""),
        exc_info=(type(exc), exc, exc.__traceback__) if exc is not None else None,
    )
    shut_down()


async def serve():
    asyncio.get_running_loop().set_exception_handler(shutdown_on_loop_error)
    server = uvicorn.Server(uvicorn.Config("tourbook.main:app", host=config.HOST, port=config.PORT))
    await server.serve()


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.excepthook = log_uncaught
    threading.excepthook = shutdown_on_thread_error

    logger.info("Tourbook running on port %d (%s)", config.PORT, config.APP_ENV)
    asyncio.run(serve())
    sys.exit(1 if crashed.is_set() else 0)


if __name__ == "__main__":
    main()
