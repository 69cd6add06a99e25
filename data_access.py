import os
import json
import logging
from typing import Any, Dict, Optional

import supabase_config
from domain_utils import extract_domain
from exceptions import InvalidScanTransition
from models import Scan, ScanStatus
from scan_config import get_results_dir

logger = logging.getLogger('seo_health')

# Scans live in a local JSON file per scan; Supabase gets a best-effort mirror.
# The worker and the web process both write through here, with the service client.


def _scan_path(scan_id: str) -> str:
    results_dir = get_results_dir()
    os.makedirs(results_dir, exist_ok=True)
    return os.path.join(results_dir, f"{scan_id}.json")


def _write_local(scan: Scan) -> None:
    path = _scan_path(scan.id)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, 'w') as f:
        json.dump(scan.to_dict(), f, indent=2, default=str)
    os.replace(tmp_path, path)


def _read_local(scan_id: str) -> Optional[Scan]:
    path = _scan_path(scan_id)
    if not os.path.exists(path):
        return None
    try:
        with open(path, 'r') as f:
            return Scan.from_dict(json.load(f))
    except (OSError, ValueError) as e:
        logger.error(f"Error reading local scan file {path}: {str(e)}")
        return None


def _mirror_to_supabase(scan: Scan, insert: bool = False) -> None:
    if not supabase_config.is_supabase_configured(use_service_role=True):
        return
    try:
        table = supabase_config.get_supabase_client(use_service_role=True).table(supabase_config.SCANS_TABLE)
        if insert:
            response = table.insert(scan.to_dict()).execute()
        else:
            response = table.update(scan.to_dict()).eq('id', scan.id).execute()
        if not response.data:
            logger.warning(f"Supabase {'insert' if insert else 'update'} for scan {scan.id} returned no data")
    except Exception as e:
        logger.warning(f"Supabase mirror error for scan {scan.id}: {str(e)}")


def _read_from_supabase(scan_id: str) -> Optional[Scan]:
    if not supabase_config.is_supabase_configured(use_service_role=True):
        return None
    try:
        client = supabase_config.get_supabase_client(use_service_role=True)
        response = client.table(supabase_config.SCANS_TABLE).select('*').eq('id', scan_id).maybe_single().execute()
    except Exception as e:
        logger.warning(f"Error retrieving scan {scan_id} from Supabase: {str(e)}")
        return None
    if response is None or not response.data:
        return None
    logger.info(f"Retrieved scan {scan_id} from Supabase")
    return Scan.from_dict(response.data)


def save_scan(scan: Scan, insert: bool = False) -> Scan:
    _write_local(scan)
    _mirror_to_supabase(scan, insert=insert)
    return scan


def create_scan(url: str, scan_id: Optional[str] = None) -> Scan:
    """New ENQUEUED scan for url."""
    scan = Scan(url=url, domain=extract_domain(url))
    if scan_id:
        scan.id = scan_id
    save_scan(scan, insert=True)
    logger.info(f"Created scan {scan.id} for {scan.domain}")
    return scan


def get_scan(scan_id: str) -> Optional[Scan]:
    """Local file first, then Supabase."""
    scan = _read_local(scan_id)
    if scan is None:
        scan = _read_from_supabase(scan_id)
    if scan is None:
        logger.warning(f"Scan not found locally or in Supabase: {scan_id}")
    return scan


def _load_for_update(scan_id: str) -> Scan:
    scan = get_scan(scan_id)
    if scan is None:
        raise KeyError(scan_id)
    if scan.status.is_terminal:
        raise InvalidScanTransition(scan.status.value, 'update')
    return scan


def update_scan(scan_id: str, **fields: Any) -> Scan:
    """Plain field update; a COMPLETE or FAILED scan is never changed again."""
    scan = _load_for_update(scan_id)
    for name, value in fields.items():
        if name not in Scan.__dataclass_fields__ or name in ('id', 'status'):
            raise ValueError(f"Cannot update scan field {name!r}")
        setattr(scan, name, value)
    return save_scan(scan)


def mark_scan_scanning(scan_id: str) -> Scan:
    scan = _load_for_update(scan_id)
    scan.transition(ScanStatus.SCANNING)
    scan.current_step = 'Starting scan'
    return save_scan(scan)


def update_scan_progress(scan_id: str, progress: int, current_step: str) -> Scan:
    scan = _load_for_update(scan_id)
    scan.advance(progress, current_step)
    logger.info(f"Scan {scan_id}: {scan.progress}% - {current_step}")
    return save_scan(scan)


def mark_scan_complete(scan_id: str, results: Dict[str, Any]) -> Scan:
    scan = _load_for_update(scan_id)
    scan.transition(ScanStatus.COMPLETE)
    scan.progress = 100
    scan.current_step = 'Complete'
    scan.results = results
    return save_scan(scan)


def mark_scan_failed(scan_id: str, error_message: str) -> Scan:
    scan = _load_for_update(scan_id)
    scan.transition(ScanStatus.FAILED)
    scan.current_step = 'Failed'
    scan.error_message = error_message
    return save_scan(scan)
