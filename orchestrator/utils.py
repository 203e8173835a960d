# orchestrator/utils.py
import time
import logging

log = logging.getLogger("orchestrator.utils")


def retry(fn, retries=3, delay=2, retry_on=(Exception,), sleep=time.sleep):
    """
    Call fn until it succeeds, retrying only on the given exception types.
    The last failure is re-raised.
    """
    for i in range(retries):
        try:
            return fn()
        except retry_on as e:
            if i == retries - 1:
                raise
            log.warning(f"Retry {i+1}/{retries} failed: {e}")
            sleep(delay)
