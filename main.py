import asyncio
import logging

import httpx
import uvicorn

from clients.impl.meli_client import MeliClient
from clients.impl.telegram_client import TelegramClient
from clients.impl.whatsapp_client import WhatsAppClient
from logic.auth import MeliAuthHandler, TokenStore
from logic.processor import Processor
from logic.scheduler import PollScheduler
from services.meli_service import MeliService
from services.notification_service import LogOnlyTransport, NotificationService, Transport
from services.state_store import LeaderStateStore
from utils.config import Settings, load_settings
from web.app import create_app


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_transport(settings: Settings, http_client: httpx.AsyncClient) -> Transport:
    if settings.NOTIFIER == "telegram":
        return TelegramClient(
            http_client=http_client,
            bot_token=settings.TELEGRAM_BOT_TOKEN,
            chat_id=settings.TELEGRAM_CHAT_ID,
            api_url=settings.TELEGRAM_API_URL,
        )
    if settings.NOTIFIER == "whatsapp":
        return WhatsAppClient(
            http_client=http_client,
            phone=settings.WHATSAPP_PHONE,
            api_key=settings.WHATSAPP_API_KEY,
            api_url=settings.WHATSAPP_API_URL,
        )
    return LogOnlyTransport()


async def main(settings: Settings):
    """
    Builds the shared HTTP client and every service, then runs the poller and the debug server together.
    """
    connection_limits = httpx.Limits(max_keepalive_connections=5, max_connections=10)

    async with httpx.AsyncClient(limits=connection_limits, timeout=settings.HTTP_TIMEOUT) as shared_http_client:
        logging.info("Shared HTTP client pool init.")

        auth_handler = MeliAuthHandler(settings, shared_http_client, TokenStore(settings.TOKEN_FILE))
        meli_client = MeliClient(base_url=settings.BASE_URL, http_client=shared_http_client,
                                 auth_handler=auth_handler)
        meli_service = MeliService(
            meli_client=meli_client,
            competition_source=settings.COMPETITION_SOURCE,
            title_lookup_workers=settings.TITLE_LOOKUP_WORKERS,
            lookup_timeout=settings.LOOKUP_TIMEOUT,
        )
        state_store = LeaderStateStore(settings.STATE_FILE)
        notification_service = NotificationService(
            transport=build_transport(settings, shared_http_client),
            meli_service=meli_service,
            leader_key=settings.LEADER_KEY,
        )
        processor = Processor(
            meli_service=meli_service,
            state_store=state_store,
            notification_service=notification_service,
            leader_key=settings.LEADER_KEY,
            top_n=settings.TOP_N,
        )

        scheduler = None
        if settings.PRODUCT_ID:
            scheduler = PollScheduler(
                cycle=lambda: processor.run_cycle(settings.PRODUCT_ID),
                interval=settings.SLEEP_TIME,
                cycle_timeout=settings.CYCLE_TIMEOUT,
            )
        else:
            logging.warning("PRODUCT_ID is not set, polling disabled. Only the HTTP endpoints will run.")

        app = create_app(settings, auth_handler, meli_service, state_store, scheduler)
        server = uvicorn.Server(uvicorn.Config(app, host=settings.HOST, port=settings.PORT, log_level="warning"))
        logging.info(f"Server listening on port {settings.PORT}")

        poller = asyncio.create_task(scheduler.run_forever()) if scheduler is not None else None
        try:
            # uvicorn handles SIGINT/SIGTERM, the poller stops with it
            await server.serve()
        finally:
            if poller is not None:
                poller.cancel()
                await asyncio.gather(poller, return_exceptions=True)


if __name__ == "__main__":
    app_settings = load_settings()
    setup_logging(app_settings.LOG_LEVEL)

    try:
        asyncio.run(main(app_settings))
    except KeyboardInterrupt:
        logging.info("Stop by user.")
