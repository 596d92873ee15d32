import logging
from aiohttp import web

logger = logging.getLogger(__name__)


def _coordinator(request):
    coordinator = request.app.get('coordinator')
    if coordinator is None:
        raise web.HTTPServiceUnavailable(
            text='{"status": "error", "message": "Coordinator not available"}',
            content_type='application/json'
        )
    return coordinator


async def clock_handler(request):
    """
    Current logical time of the coordinator.
    """
    clock = _coordinator(request).clock
    return web.json_response({
        "now": clock.now(),
        "pretty": clock.pretty_now(),
        "offset": clock.offset()
    })


async def peers_handler(request):
    """
    Registered peers, in the order they are polled.
    """
    status = _coordinator(request).status()
    return web.json_response({"count": len(status["peers"]), "peers": status["peers"]})


async def status_handler(request):
    return web.json_response(_coordinator(request).status())


async def sync_trigger_handler(request):
    """
    Run a synchronization cycle right away. Waits for any cycle already in
    progress, so a manual trigger never overlaps the scheduled one.
    """
    coordinator = _coordinator(request)
    try:
        record = await coordinator.synchronize_once()
    except Exception as e:
        logger.error(f"Manual synchronization failed: {e}")
        return web.json_response({"status": "error", "message": str(e)}, status=500)

    logger.info(f"Manual synchronization cycle {record.number} {record.status.value}")
    return web.json_response({"status": "ok", "cycle": record.to_dict()})
