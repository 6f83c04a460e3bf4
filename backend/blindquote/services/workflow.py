import requests
import logging
import os
import time
from typing import Dict, Any, List

logger = logging.getLogger(__name__)

DEFAULT_N8N = os.getenv("N8N_WEBHOOK_URL", "http://n8n:5678/webhook-test/blinds-quote")
DEFAULT_MAX_RETRIES = int(os.getenv("WEBHOOK_MAX_RETRIES", "3"))


class WorkflowClient:
    def __init__(self, webhook_url: str = None, max_retries: int = None, timeout: float = 5):
        self.webhook = webhook_url or DEFAULT_N8N
        self.max_retries = max_retries if max_retries is not None else DEFAULT_MAX_RETRIES
        self.timeout = timeout
        logger.debug("WorkflowClient initialized with webhook=%s max_retries=%s", self.webhook, self.max_retries)

    def candidates(self) -> List[str]:
        """Configured webhook URL followed by its fallbacks."""
        candidates = [self.webhook]

        # /webhook vs /webhook-test variants and localhost fallback for local testing
        extra = []
        for c in list(candidates):
            if '/webhook-test/' in c:
                extra.append(c.replace('/webhook-test/', '/webhook/'))
            elif '/webhook/' in c:
                extra.append(c.replace('/webhook/', '/webhook-test/'))
        candidates.extend(extra)
        for c in list(candidates):
            # backend running outside compose
            if '://n8n' in c:
                candidates.append(c.replace('://n8n', '://localhost'))

        # Ensure uniqueness and preserve order
        seen = set()
        return [c for c in candidates if not (c in seen or seen.add(c))]

    def trigger(self, payload: Dict[str, Any]) -> bool:
        headers = {"Content-Type": "application/json"}
        # idempotency key so a resent quote is not processed twice
        if "quoteNumber" in payload:
            headers["Idempotency-Key"] = f"quote-{payload['quoteNumber']}"

        candidates = self.candidates()
        for attempt in range(1, self.max_retries + 1):
            for url in candidates:
                try:
                    logger.debug("Sending quote attempt=%s url=%s", attempt, url)
                    resp = requests.post(url, json=payload, timeout=self.timeout, headers=headers)
                    resp.raise_for_status()
                    logger.info("Sent quote=%s url=%s status=%s", payload.get("quoteNumber"), url, resp.status_code)
                    return True
                except requests.RequestException as e:
                    logger.warning("Attempt %s url=%s: Failed to send quote: %s", attempt, url, e)
            if attempt < self.max_retries:
                time.sleep(0.5 * attempt)
        logger.error("All attempts to send quote=%s failed after trying candidates: %s",
                     payload.get("quoteNumber"), candidates)
        return False
