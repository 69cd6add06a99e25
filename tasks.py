import asyncio
import logging
import threading
from celery import shared_task
from celery.signals import worker_process_shutdown

from seo_probes.browser import BrowserResource, close_browser, get_browser_resource
from seo_scan import execute_seo_scan

logger = logging.getLogger('seo_health')

# One event loop per worker process, so the shared browser outlives a single task
_worker_loop = None


def get_worker_loop():
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        _worker_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(_worker_loop)
    return _worker_loop


@shared_task(bind=True)
def run_seo_scan(self, scan_id, url, keywords=None):
    """
    Celery task running one SEO scan to COMPLETE or FAILED.

    Args:
        scan_id: ID of the ENQUEUED scan record
        url: The URL to scan
        keywords: Optional seed keywords to check alongside the page's own
    """
    logger.info(f"CELERY TASK STARTED: {self.request.id} for {url} (Scan: {scan_id})")
    loop = get_worker_loop()
    scan = loop.run_until_complete(
        execute_seo_scan(scan_id, url, keywords, browser=get_browser_resource())
    )
    logger.info(f"CELERY TASK FINISHED: {self.request.id} (Scan: {scan_id}, status: {scan.status.value})")
    return {
        "status": scan.status.value,
        "scan_id": scan_id,
        "url": url,
        "error": scan.error_message,
    }


@worker_process_shutdown.connect
def release_browser(**kwargs):
    global _worker_loop
    if _worker_loop is None or _worker_loop.is_closed():
        return
    try:
        _worker_loop.run_until_complete(close_browser())
    except Exception as e:
        logger.warning(f"Error releasing browser on worker shutdown: {str(e)}")
    finally:
        _worker_loop.close()
        _worker_loop = None


def run_scan_sync(scan_id, url, keywords=None):
    """Run a scan in the calling thread, for when no Celery worker is available.

    Each call owns its browser; the shared one belongs to the worker loop.
    """
    logger.info(f"Running synchronous scan {scan_id} for {url}")
    browser = BrowserResource()

    async def scan_and_release():
        try:
            return await execute_seo_scan(scan_id, url, keywords, browser=browser)
        finally:
            await browser.close()

    return asyncio.run(scan_and_release())


def start_background_scan(scan_id, url, keywords=None):
    """Fire-and-forget thread running run_scan_sync."""
    thread = threading.Thread(target=run_scan_sync, args=(scan_id, url, keywords), daemon=True)
    thread.start()
    return thread
