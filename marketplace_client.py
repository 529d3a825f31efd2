"""Freelance marketplace API client.

A thin wrapper around the REST API for scripts and integrations.  It
uses the ``requests`` library and mirrors the routes mounted under
``/api/v1``:

* :meth:`login` - obtain a bearer token and keep it for later calls.
* :meth:`get_budget` / :meth:`create_budget` - job budgets.
* :meth:`update_milestone_status` / :meth:`pay_milestone` - milestone workflow.
* :meth:`convert_currency` - currency conversion.
* :meth:`search_profiles` - profile search.

Every method returns a tuple ``(data, error)``.  On success ``error`` is
``None``; on failure ``data`` is ``None`` (or empty) and ``error`` is a
dictionary with ``status_code`` and ``message``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

Result = Tuple[Optional[Any], Optional[Dict[str, Any]]]


class MarketplaceAPI:
    """Client for the freelance marketplace API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        """Initialise the client.

        Args:
            base_url: Server URL, e.g. ``http://localhost:8000``.  The
                ``/api/v1`` prefix is added automatically.
            api_key: Optional bearer token sent with every request.
            session: Optional requests session, created when omitted.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/") + "/api/v1"
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Low level HTTP helpers
    # ------------------------------------------------------------------
    def _request(
        self, method: str, path: str, *, params: Dict[str, Any] | None = None,
        json_body: Any | None = None
    ) -> Result:
        url = f"{self.base_url}{path}"
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            message = ""
            if exc.response is not None:
                try:
                    err_json = exc.response.json()
                    message = err_json.get("detail") or err_json.get("message") or str(err_json)
                except ValueError:
                    message = exc.response.text
            if not message:
                message = str(exc)
            logger.error("API request failed (%s): %s", status, message)
            return None, {"status_code": status, "message": message}
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def login(self, email: str, password: str) -> Result:
        """Log in and remember the returned token for subsequent calls."""
        data, error = self._request("POST", "/users/login", json_body={"email": email, "password": password})
        if error:
            return None, error
        self.api_key = data.get("access_token") if isinstance(data, dict) else None
        return data, None

    # ------------------------------------------------------------------
    # Budgets and milestones
    # ------------------------------------------------------------------
    def get_budget(self, job_id: int) -> Result:
        return self._request("GET", f"/budgets/{job_id}")

    def create_budget(self, job_id: int, payload: Dict[str, Any]) -> Result:
        """Create a budget.  ``payload`` uses the API's camelCase keys."""
        return self._request("POST", f"/budgets/{job_id}", json_body=payload)

    def update_milestone_status(self, milestone_id: int, status: str, notes: Optional[str] = None) -> Result:
        body: Dict[str, Any] = {"status": status}
        if notes:
            body["notes"] = notes
        return self._request("PUT", f"/budgets/milestones/{milestone_id}/status", json_body=body)

    def pay_milestone(self, milestone_id: int, amount: float, currency: str = "USD", **extra: Any) -> Result:
        body = {"amount": amount, "currency": currency, **extra}
        return self._request("POST", f"/budgets/milestones/{milestone_id}/payments", json_body=body)

    # ------------------------------------------------------------------
    # Currencies
    # ------------------------------------------------------------------
    def convert_currency(self, amount: float, from_currency: str, to_currency: str) -> Result:
        body = {"amount": amount, "fromCurrency": from_currency, "toCurrency": to_currency}
        return self._request("POST", "/currencies/convert", json_body=body)

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------
    def search_profiles(self, query: str, **filters: Any) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
        """Search profiles and return only the result items.

        Extra keyword arguments are passed as query parameters, e.g.
        ``minExperience=3`` or ``skills="Python,React"``.
        """
        data, error = self._request("GET", "/profiles/search", params={"query": query, **filters})
        if error:
            return [], error
        if isinstance(data, dict) and isinstance(data.get("results"), list):
            return data["results"], None
        return [], None
